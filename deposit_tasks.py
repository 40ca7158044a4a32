"""Deposit building blocks: issue reconciliation, metadata construction,
the local deposit binding in ``myst.yml`` and result tracking.

Every function here is a plain synchronous function with no network
access; ``deposit_flows`` strings them together with the Zenodo client.
"""

import csv
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import urlparse

import html2text
import yaml

from deposit_errors import ConflictError, InputError
from models.myst import ArticleContext, Author, Frontmatter, IssueData, ResolvedPerson
from models.zenodo import (
    CODE_REPOSITORY_KEY,
    Contributor,
    Creator,
    DepositMetadata,
    PersistedResult,
    RelatedIdentifier,
    UploadType,
)
from myst_project import load_project_config, render_abstract_html

logger = logging.getLogger("zenodo_deposit.tasks")

# (IssueData attribute, frontmatter section, key in that section)
ISSUE_FIELDS: Tuple[Tuple[str, str, str], ...] = (
    ("venue_title", "venue", "title"),
    ("venue_short_title", "venue", "short_title"),
    ("venue_doi", "venue", "doi"),
    ("venue_url", "venue", "url"),
    ("venue_series", "venue", "series"),
    ("venue_issn", "venue", "issn"),
    ("venue_number", "venue", "number"),
    ("venue_date", "venue", "date"),
    ("venue_location", "venue", "location"),
    ("venue_publisher", "venue", "publisher"),
    ("volume_number", "volume", "number"),
    ("volume_doi", "volume", "doi"),
    ("volume_title", "volume", "title"),
    ("volume_subject", "volume", "subject"),
    ("issue_number", "issue", "number"),
    ("issue_doi", "issue", "doi"),
)

_PROJECT_KEY = re.compile(r"^project:\s*(#.*)?$")


# ===================================================================
#  Issue reconciliation
# ===================================================================

def _issue_value(frontmatter: Frontmatter, section: str, key: str) -> Optional[str]:
    container = getattr(frontmatter, section)
    if container is None:
        return None
    value = getattr(container, key)
    if value is None or str(value).strip() == "":
        return None
    return value


def resolve_person(frontmatter: Frontmatter, person: Author) -> ResolvedPerson:
    """Resolve a person's affiliation ids against their own article."""
    affiliations = frontmatter.affiliation_names(person.affiliations)
    return ResolvedPerson(
        name=person.formatted_name(),
        affiliation=", ".join(affiliations) if affiliations else None,
        orcid=person.orcid,
    )


def resolve_editors(articles: Sequence[ArticleContext]) -> Tuple[ResolvedPerson, ...]:
    """Resolve the editors of an issue.

    The last article with a non-empty ``editors`` list decides the result;
    editor lists are not compared across articles.

    Raises:
        InputError: If an editor id matches no contributor or author.
    """
    editors: Tuple[ResolvedPerson, ...] = ()
    for article in articles:
        frontmatter = article.frontmatter
        if not frontmatter.editors:
            continue
        resolved = []
        for editor_id in frontmatter.editors:
            person = frontmatter.find_person(editor_id)
            if person is None:
                raise InputError(
                    f"Editor '{editor_id}' in {article.source_file} is not a listed contributor"
                )
            resolved.append(resolve_person(frontmatter, person))
        editors = tuple(resolved)
    return editors


def collect_conflicts(
    articles: Sequence[ArticleContext],
) -> Tuple[IssueData, List[ConflictError]]:
    """Fold the venue, volume and issue fields of all articles into one set.

    The first value seen for a field wins.  Every later value must match
    it as text, otherwise a conflict is recorded.

    Args:
        articles: Articles of one issue, in input order.

    Returns:
        The reconciled issue data and every conflict found, in the order
        they were encountered.
    """
    resolved: Dict[str, str] = {}
    conflicts: List[ConflictError] = []

    for article in articles:
        for attribute, section, key in ISSUE_FIELDS:
            value = _issue_value(article.frontmatter, section, key)
            if value is None:
                continue
            if attribute not in resolved:
                resolved[attribute] = value
            elif str(value) != str(resolved[attribute]):
                conflicts.append(
                    ConflictError(f"{section}.{key}", resolved[attribute], value)
                )

    issue = IssueData(**resolved, editors=resolve_editors(articles))
    return issue, conflicts


def reconcile_issue_data(articles: Sequence[ArticleContext]) -> IssueData:
    """Reconcile the shared issue data, failing on the first conflict.

    Raises:
        ConflictError: If two articles disagree on a field.
    """
    issue, conflicts = collect_conflicts(articles)
    if conflicts:
        for conflict in conflicts[1:]:
            logger.error("%s", conflict)
        raise conflicts[0]
    return issue


# ===================================================================
#  Deposit metadata builders
# ===================================================================

def build_creators(article: ArticleContext) -> List[Creator]:
    """Map the article authors to Zenodo creators, keeping author order."""
    creators = []
    for author in article.frontmatter.authors:
        person = resolve_person(article.frontmatter, author)
        creators.append(
            Creator(name=person.name, affiliation=person.affiliation, orcid=person.orcid)
        )
    return creators


def build_editor_contributors(issue: IssueData) -> List[Contributor]:
    return [
        Contributor(
            name=editor.name,
            affiliation=editor.affiliation,
            orcid=editor.orcid,
            type="Editor",
        )
        for editor in issue.editors
    ]


def build_related_identifiers(article: ArticleContext) -> List[RelatedIdentifier]:
    """One ``cites`` relation per cited DOI, ordered by citation key."""
    return [
        RelatedIdentifier(identifier=doi, relation="cites", scheme="doi")
        for _, doi in sorted(article.dois.items())
    ]


def _presentation_fields(article: ArticleContext, issue: IssueData) -> Dict[str, Any]:
    fields: Dict[str, Any] = {
        "conference_title": issue.venue_title,
        "conference_acronym": issue.venue_short_title,
        "conference_url": issue.venue_url,
        "conference_dates": issue.venue_date,
        "conference_place": issue.venue_location,
    }
    contributors = build_editor_contributors(issue)
    if contributors:
        fields["contributors"] = contributors
    if article.frontmatter.github:
        fields["custom"] = {CODE_REPOSITORY_KEY: article.frontmatter.github}
    return fields


def _no_type_fields(article: ArticleContext, issue: IssueData) -> Dict[str, Any]:
    return {}


# Field population per upload type; every UploadType has an entry.
TYPE_FIELD_BUILDERS: Dict[UploadType, Callable[[ArticleContext, IssueData], Dict[str, Any]]] = {
    UploadType.PUBLICATION: _no_type_fields,
    UploadType.POSTER: _no_type_fields,
    UploadType.PRESENTATION: _presentation_fields,
    UploadType.DATASET: _no_type_fields,
    UploadType.IMAGE: _no_type_fields,
    UploadType.VIDEO: _no_type_fields,
    UploadType.SOFTWARE: _no_type_fields,
    UploadType.LESSON: _no_type_fields,
    UploadType.PHYSICALOBJECT: _no_type_fields,
    UploadType.OTHER: _no_type_fields,
}


def parse_upload_type(value: Union[str, UploadType, None]) -> UploadType:
    """Convert user input into an UploadType.

    Raises:
        InputError: If the value is empty or not a Zenodo upload type.
    """
    if isinstance(value, UploadType):
        return value
    if not value or not value.strip():
        raise InputError("A deposit type is required")
    try:
        return UploadType(value.strip().lower())
    except ValueError as exc:
        choices = ", ".join(upload_type.value for upload_type in UploadType)
        raise InputError(f"Unknown deposit type '{value}'. Choose one of: {choices}") from exc


def build_deposit_metadata(
    article: ArticleContext,
    upload_type: Union[str, UploadType],
    issue: IssueData,
) -> DepositMetadata:
    """Build the Zenodo deposit metadata for one article.

    Args:
        article: The collected article.
        upload_type: Requested Zenodo upload type.
        issue: Reconciled venue, volume and issue data.

    Returns:
        DepositMetadata ready for the Zenodo API.

    Raises:
        InputError: If the article has no title or no abstract, or the
            upload type is unknown.
    """
    upload_type = parse_upload_type(upload_type)
    frontmatter = article.frontmatter

    if not frontmatter.title:
        raise InputError(f"No title found for {article.source_file}")
    if not article.abstract:
        raise InputError(f"No abstract found for {article.source_file}")

    related_identifiers = build_related_identifiers(article)

    fields: Dict[str, Any] = {
        "upload_type": upload_type,
        "title": frontmatter.title,
        "description": render_abstract_html(article.abstract),
        "publication_date": frontmatter.date,
        "doi": frontmatter.doi,
        "imprint_publisher": issue.venue_short_title or issue.venue_title,
        "creators": build_creators(article),
        "keywords": frontmatter.keywords or None,
        "license": frontmatter.license,
        "related_identifiers": related_identifiers or None,
    }

    builder = TYPE_FIELD_BUILDERS.get(upload_type)
    if builder is None:
        raise InputError(f"No field rules for deposit type '{upload_type.value}'")
    fields.update(builder(article, issue))

    return DepositMetadata(**fields)


def description_preview(description: str) -> str:
    """Convert an HTML description into plain Markdown for terminal output."""
    converter = html2text.HTML2Text()
    converter.body_width = 0
    converter.unicode_snob = True
    converter.inline_links = True
    converter.protect_links = True
    markdown = converter.handle(description)
    return re.sub(r"\n{3,}", "\n\n", markdown).strip()


# ===================================================================
#  Local deposit binding
# ===================================================================

@dataclass
class DepositBinding:
    """The Zenodo deposition a local project is bound to.

    Attributes:
        deposit_id: Zenodo deposition id.
        sandbox: Whether the deposition lives on the sandbox.
        url: The URL recorded in ``myst.yml``.
    """

    deposit_id: int
    sandbox: bool
    url: str


def deposit_url(deposit_id: int, sandbox: bool = False) -> str:
    host = "sandbox.zenodo.org" if sandbox else "zenodo.org"
    return f"https://{host}/deposit/{deposit_id}"


def read_deposit_binding(config_file: Optional[str]) -> Optional[DepositBinding]:
    """Read the ``project.zenodo`` deposit URL from a project configuration.

    Returns:
        The binding, or ``None`` when the project has not been deposited yet.

    Raises:
        InputError: If the recorded URL does not end in a numeric id.
    """
    if not config_file:
        return None

    config = load_project_config(config_file)
    url = (config.get("project") or {}).get("zenodo")
    if not url:
        return None

    url = str(url).strip()
    last_segment = url.rstrip("/").rsplit("/", 1)[-1]
    if not last_segment.isdigit():
        raise InputError(f"Cannot read a deposit id from '{url}' in {config_file}")

    return DepositBinding(
        deposit_id=int(last_segment),
        sandbox=urlparse(url).netloc.startswith("sandbox."),
        url=url,
    )


def write_deposit_binding(
    config_file: Optional[str], deposit_id: int, sandbox: bool = False
) -> bool:
    """Record a new deposition under the ``project:`` key of ``myst.yml``.

    The line is inserted directly after ``project:`` using the indentation
    of the block, and nothing else in the file is touched.  A flow-style
    ``project: {...}`` mapping cannot take a line insert, so the file is
    rewritten with PyYAML instead.  An existing binding is never replaced.

    Returns:
        True if the binding was written.
    """
    if not config_file:
        return False

    if read_deposit_binding(config_file) is not None:
        logger.info("Deposit binding already present in %s", config_file)
        return False

    config = load_project_config(config_file)
    config_path = Path(config_file)
    lines = config_path.read_text(encoding="utf-8").split("\n")
    project_index = next(
        (index for index, line in enumerate(lines) if _PROJECT_KEY.match(line)), None
    )

    if project_index is None and "project" in config:
        project = config.get("project") or {}
        if not isinstance(project, dict):
            raise InputError(f"'project' in {config_file} is not a mapping")
        project["zenodo"] = deposit_url(deposit_id, sandbox)
        config["project"] = project
        config_path.write_text(
            yaml.safe_dump(config, sort_keys=False, allow_unicode=True), encoding="utf-8"
        )
        logger.warning(
            "Rewrote %s to record deposit %s; comments were not kept", config_path, deposit_id
        )
        return True

    if project_index is None:
        while lines and not lines[-1].strip():
            lines.pop()
        lines += ["project:", f"  zenodo: {deposit_url(deposit_id, sandbox)}", ""]
    else:
        indent = "  "
        for line in lines[project_index + 1:]:
            if line.strip() and not line.lstrip().startswith("#"):
                leading = line[: len(line) - len(line.lstrip())]
                if leading:
                    indent = leading
                break
        lines.insert(project_index + 1, f"{indent}zenodo: {deposit_url(deposit_id, sandbox)}")

    config_path.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Recorded deposit %s in %s", deposit_id, config_path)
    return True


# ===================================================================
#  Result persistence
# ===================================================================

def save_result_csv(file: str, result: PersistedResult) -> None:
    """Append a deposit result to a local CSV file.

    Creates the file and writes a header row if it does not yet exist.

    Args:
        file: CSV file path.
        result: Deposit result to persist.

    Raises:
        ValueError: If file path is empty.
    """
    if not file:
        raise ValueError("Invalid file path for result CSV")

    output_file = Path(file)
    new_file = not output_file.exists()

    if new_file:
        logger.info("Creating results CSV: %s", file)
        output_file.parent.mkdir(exist_ok=True, parents=True)

    result_dict = result.model_dump()

    with open(file, mode="a", encoding="utf-8", newline="") as csv_file:
        writer = csv.DictWriter(csv_file, fieldnames=result_dict.keys())
        if new_file:
            writer.writeheader()
        writer.writerow(result_dict)
