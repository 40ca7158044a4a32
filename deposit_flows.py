"""Flows to deposit local MyST articles on Zenodo.

Articles are handled strictly one after another: the create-or-update
decision reads and then writes the project's ``myst.yml``, so two
deposits must never run against the same project at once.
"""

import logging
import math
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from deposit_errors import ConfigurationError, DepositError, UploadError
from deposit_tasks import (
    build_deposit_metadata,
    read_deposit_binding,
    reconcile_issue_data,
    save_result_csv,
    write_deposit_binding,
)
from models.myst import ArticleContext, IssueData
from models.zenodo import DepositMetadata, PersistedResult, UploadType
from zenodo_uploader import ZenodoClient

logger = logging.getLogger("zenodo_deposit.flows")


def first_page_key(article: ArticleContext) -> Tuple[int, float]:
    """Sort key on the numeric first page; unnumbered articles go last."""
    try:
        page = float(article.frontmatter.first_page)
    except (TypeError, ValueError):
        page = math.nan
    if math.isnan(page):
        return (1, 0.0)
    return (0, page)


def sort_articles(articles: Sequence[ArticleContext]) -> List[ArticleContext]:
    return sorted(articles, key=first_page_key)


def upload_with_retry(client: ZenodoClient, deposit_id: int, file_path: str) -> Dict[str, Any]:
    """Upload one file, retrying exactly once.

    Raises:
        UploadError: If the retry fails too.
    """
    try:
        return client.upload_file(deposit_id, file_path)
    except (DepositError, OSError, ValueError) as exc:
        logger.warning("Upload of %s failed: %s. Retrying once...", Path(file_path).name, exc)

    try:
        return client.upload_file(deposit_id, file_path)
    except (DepositError, OSError, ValueError) as exc:
        logger.error("Upload of %s failed again: %s", Path(file_path).name, exc)
        raise UploadError(file_path, deposit_id) from exc


def submit_deposit(
    client: ZenodoClient,
    article: ArticleContext,
    metadata: DepositMetadata,
) -> Tuple[int, Dict[str, Any]]:
    """Create the deposition, or update the one the project is bound to.

    A newly created deposition is recorded in ``myst.yml`` before this
    function returns, so a later failure cannot lead to a duplicate.

    Returns:
        The deposition id and the API response.
    """
    binding = read_deposit_binding(article.config_file)

    if binding is not None:
        if binding.sandbox != client.sandbox:
            raise ConfigurationError(
                f"{article.config_file} is bound to {binding.url}, which is not on "
                f"{'the sandbox' if client.sandbox else 'production Zenodo'}"
            )
        logger.info("Updating deposit %s", binding.deposit_id)
        response = client.update_deposit(binding.deposit_id, metadata)
        return binding.deposit_id, response

    logger.info("Creating deposit...")
    response = client.create_deposit(metadata)
    deposit_id = response.get("id") if response else None
    if not deposit_id:
        raise ValueError("No deposit ID returned from deposit creation")

    write_deposit_binding(article.config_file, deposit_id, client.sandbox)
    logger.info(
        "Created deposit %s. See the record at:\n%s",
        deposit_id,
        (response.get("links") or {}).get("html", ""),
    )
    return deposit_id, response


def upload_article_files(client: ZenodoClient, article: ArticleContext, deposit_id: int) -> int:
    """Upload every local download of the article, in order.

    Returns:
        The number of files uploaded.
    """
    files = [download.file for download in article.frontmatter.downloads if download.file]
    skipped = len(article.frontmatter.downloads) - len(files)
    if skipped:
        logger.debug("Skipping %d remote download(s)", skipped)

    logger.info("Uploading %d file(s)...", len(files))
    for i, file in enumerate(files, 1):
        file_path = Path(article.project_dir) / file
        size_mb = file_path.stat().st_size / (1024 * 1024) if file_path.is_file() else 0.0
        logger.info("  [%d/%d] Uploading %s (%.2f MB)...", i, len(files), file_path.name, size_mb)

        start_time = time.time()
        upload_with_retry(client, deposit_id, str(file_path))
        logger.info("  Uploaded in %.1fs", time.time() - start_time)

    return len(files)


def deposit_article(
    client: ZenodoClient,
    article: ArticleContext,
    upload_type: Union[str, UploadType],
    issue: IssueData,
    publish: bool = False,
) -> PersistedResult:
    """Build, submit, upload and optionally publish one article.

    Returns:
        The result to persist for this article.
    """
    metadata = build_deposit_metadata(article, upload_type, issue)
    deposit_id, response = submit_deposit(client, article, metadata)

    result = PersistedResult(source_file=article.source_file)
    result.update(response or {})
    result.files = upload_article_files(client, article, deposit_id)

    if publish:
        logger.info("Publishing deposit %s...", deposit_id)
        result.update(client.publish_deposit(deposit_id) or {})
        logger.info("Deposit published")

    return result


def deposit_articles(
    client: ZenodoClient,
    articles: Sequence[ArticleContext],
    upload_type: Union[str, UploadType],
    publish: bool = False,
    results_file: Optional[str] = None,
) -> List[PersistedResult]:
    """Deposit every article of an issue on Zenodo.

    The shared issue data is reconciled first, then the articles are
    processed in first-page order.  Any failure stops the run; articles
    deposited before it stay deposited.

    Args:
        client: Zenodo client.
        articles: Collected articles.
        upload_type: Zenodo upload type for every article.
        publish: Publish each deposition once its files are uploaded.
        results_file: Optional CSV file to append one row per article to.

    Returns:
        The results, in processing order.
    """
    issue = reconcile_issue_data(articles)
    ordered = sort_articles(articles)

    results = []
    for i, article in enumerate(ordered, 1):
        logger.info("Processing %d/%d: %s", i, len(ordered), article.source_file)
        result = deposit_article(client, article, upload_type, issue, publish=publish)
        if results_file:
            save_result_csv(results_file, result)
        results.append(result)

    return results


def preview_articles(
    articles: Sequence[ArticleContext],
    upload_type: Union[str, UploadType],
) -> List[Tuple[ArticleContext, DepositMetadata]]:
    """Build the metadata of every article without contacting Zenodo."""
    issue = reconcile_issue_data(articles)
    return [
        (article, build_deposit_metadata(article, upload_type, issue))
        for article in sort_articles(articles)
    ]
