"""Collects article metadata from local MyST projects.

A project is a directory holding a ``myst.yml`` file whose ``project:``
block supplies frontmatter defaults for every page.  Each deposited
article is one Markdown source document inside such a project; its own
``---`` frontmatter block overrides the project values.
"""

import html
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import bibtexparser
import yaml
from bibtexparser.bparser import BibTexParser
from pydantic import ValidationError

from deposit_errors import InputError
from models.myst import ArticleContext, Frontmatter

logger = logging.getLogger("zenodo_deposit.project")

PROJECT_CONFIG_NAMES = ("myst.yml", "myst.yaml")
SOURCE_SUFFIXES = (".md", ".myst")

# Directories never searched for projects
_SKIP_DIRS = {"_build", "node_modules", "__pycache__", "site-packages"}

_CITE_ROLE = re.compile(r"\{cite(?::[a-z]+)?\}`([^`]+)`")
_CITE_BRACKET = re.compile(r"\[([^\[\]]*@[^\[\]]+)\]")
_CITE_KEY = re.compile(r"-?@([\w:.#$%&+?<>~/-]+)")
_ABSTRACT_PART = re.compile(
    r"^\+\+\+[ \t]*(\{[^\n]*\})[ \t]*\n(.*?)(?=^\+\+\+|\Z)", re.MULTILINE | re.DOTALL
)
_ABSTRACT_HEADING = re.compile(
    r"^#{1,6}[ \t]+Abstract[ \t]*\n(.*?)(?=^#{1,6}[ \t]|\Z)",
    re.MULTILINE | re.DOTALL | re.IGNORECASE,
)
_DOI_PREFIX = re.compile(r"^(https?://(dx\.)?doi\.org/|doi:)", re.IGNORECASE)
_FRONTMATTER = re.compile(r"\A---[ \t]*\n(.*?)^---[ \t]*$\n?", re.MULTILINE | re.DOTALL)


# ===================================================================
#  Project configuration
# ===================================================================

def load_project_config(config_file: str) -> Dict[str, Any]:
    """Load a ``myst.yml`` project configuration.

    Args:
        config_file: Path to the configuration file.

    Returns:
        Parsed YAML dictionary.

    Raises:
        InputError: If the file is not valid YAML or not a mapping.
    """
    config_path = Path(config_file)
    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            config = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise InputError(f"Invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(config, dict):
        raise InputError(f"Project config is not a mapping: {config_path}")

    logger.debug("Loaded project config: %s", config_path)
    return config


def find_project_config(start: Path) -> Optional[Path]:
    """Walk up from ``start`` to the closest project configuration file."""
    directory = start if start.is_dir() else start.parent
    for candidate_dir in [directory.resolve(), *directory.resolve().parents]:
        for name in PROJECT_CONFIG_NAMES:
            candidate = candidate_dir / name
            if candidate.is_file():
                return candidate
    return None


def find_project_configs(root: Path) -> List[Path]:
    """Find every project configuration below ``root``, sorted by path."""
    configs = []
    for name in PROJECT_CONFIG_NAMES:
        for path in root.rglob(name):
            relative_parts = path.relative_to(root).parts[:-1]
            if any(part in _SKIP_DIRS or part.startswith(".") for part in relative_parts):
                continue
            configs.append(path)
    return sorted(configs)


def project_source_file(config_file: Path, config: Dict[str, Any]) -> Optional[Path]:
    """Pick the article source document of a project.

    The first ``file`` entry of ``project.toc`` wins, then ``index.md``,
    then the first Markdown file in the project directory.
    """
    project_dir = config_file.parent
    project = config.get("project") or {}

    for entry in project.get("toc") or []:
        if isinstance(entry, dict) and entry.get("file"):
            return project_dir / entry["file"]

    index = project_dir / "index.md"
    if index.is_file():
        return index

    candidates = sorted(
        path
        for path in project_dir.iterdir()
        if path.suffix in SOURCE_SUFFIXES and path.name.lower() != "readme.md"
    )
    return candidates[0] if candidates else None


# ===================================================================
#  Frontmatter and abstract
# ===================================================================

def parse_frontmatter(content: str) -> Tuple[Dict[str, Any], str]:
    """Parse YAML frontmatter from Markdown content.

    Args:
        content: Full Markdown file content.

    Returns:
        Tuple of (frontmatter dict, body content).

    Raises:
        InputError: If the frontmatter block is not valid YAML.
    """
    match = _FRONTMATTER.match(content)
    if match is None:
        return {}, content

    try:
        frontmatter = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        raise InputError(f"Invalid frontmatter: {exc}") from exc

    if not isinstance(frontmatter, dict):
        raise InputError("Frontmatter is not a mapping")

    return frontmatter, content[match.end():]


def extract_abstract(
    frontmatter: Dict[str, Any],
    body: str,
    project_dir: Optional[Path] = None,
) -> Optional[str]:
    """Find the abstract of a document.

    Looks, in order, at the ``abstract`` frontmatter key (text, or a path
    to a Markdown file inside the project), a ``+++ {"part": "abstract"}``
    block, and an ``Abstract`` heading section.

    Returns:
        The abstract as Markdown text, or ``None``.
    """
    value = frontmatter.get("abstract")
    if isinstance(value, str) and value.strip():
        if project_dir is not None and value.strip().endswith(SOURCE_SUFFIXES):
            abstract_file = project_dir / value.strip()
            if abstract_file.is_file():
                _, abstract_body = parse_frontmatter(
                    abstract_file.read_text(encoding="utf-8")
                )
                return abstract_body.strip() or None
        return value.strip()

    for match in _ABSTRACT_PART.finditer(body):
        try:
            block_meta = json.loads(match.group(1))
        except json.JSONDecodeError:
            continue
        if isinstance(block_meta, dict) and block_meta.get("part") == "abstract":
            return match.group(2).strip() or None

    match = _ABSTRACT_HEADING.search(body)
    if match:
        return match.group(1).strip() or None

    return None


def render_abstract_html(abstract: str) -> str:
    """Render Markdown abstract text as HTML paragraphs."""
    paragraphs = [
        " ".join(line.strip() for line in block.splitlines() if line.strip())
        for block in re.split(r"\n\s*\n", abstract.strip())
    ]
    return "".join(f"<p>{html.escape(text)}</p>" for text in paragraphs if text)


# ===================================================================
#  Citations
# ===================================================================

def find_citation_keys(body: str) -> List[str]:
    """Return cited keys in order of first appearance.

    Recognises ``{cite}`key1,key2``` roles and ``[@key1; @key2]`` brackets.
    """
    keys: List[str] = []

    def add(key: str) -> None:
        key = key.strip()
        if key and key not in keys:
            keys.append(key)

    for match in _CITE_ROLE.finditer(body):
        for key in re.split(r"[,;]", match.group(1)):
            add(key)
    for match in _CITE_BRACKET.finditer(body):
        for key in _CITE_KEY.findall(match.group(1)):
            add(key.rstrip(".,;:"))
    return keys


def load_bibliography(bib_files: List[Path]) -> Dict[str, Dict[str, str]]:
    """Load BibTeX entries from every file, keyed by citation key."""
    entries: Dict[str, Dict[str, str]] = {}
    for bib_file in bib_files:
        parser = BibTexParser(common_strings=True)
        parser.customization = None
        with open(bib_file, encoding="utf-8") as fh:
            database = bibtexparser.load(fh, parser=parser)
        logger.debug("Loaded %d entries from %s", len(database.entries), bib_file)
        for entry in database.entries:
            entries[entry["ID"]] = entry
    return entries


def normalize_doi(doi: str) -> str:
    return _DOI_PREFIX.sub("", doi.strip())


def resolve_citation_dois(
    keys: List[str], entries: Dict[str, Dict[str, str]]
) -> Dict[str, str]:
    """Map citation keys to DOIs.

    Citations without a bibliography entry or without a DOI are logged
    and left out.
    """
    dois: Dict[str, str] = {}
    for key in keys:
        entry = entries.get(key)
        if entry is None:
            logger.warning("Citation '%s' not found in bibliography", key)
            continue
        doi = entry.get("doi", "").strip()
        if not doi:
            logger.warning("Citation '%s' has no DOI and is omitted", key)
            continue
        dois[key] = normalize_doi(doi)
    return dois


# ===================================================================
#  Articles
# ===================================================================

def load_article(source_file: Path, config_file: Optional[Path] = None) -> ArticleContext:
    """Build the article context for one source document.

    Args:
        source_file: The Markdown source document.
        config_file: The project ``myst.yml``.  Looked up from the source
            file's directory when not given.

    Returns:
        ArticleContext for the document.

    Raises:
        InputError: If the document does not exist or its metadata is invalid.
    """
    if not source_file.is_file():
        raise InputError(f"Source file not found: {source_file}")

    if config_file is None:
        config_file = find_project_config(source_file)

    project_frontmatter: Dict[str, Any] = {}
    project_dir = source_file.parent
    if config_file is not None:
        config = load_project_config(str(config_file))
        project_frontmatter = dict(config.get("project") or {})
        project_dir = config_file.parent

    page_frontmatter, body = parse_frontmatter(source_file.read_text(encoding="utf-8"))
    merged = {**project_frontmatter, **page_frontmatter}

    try:
        frontmatter = Frontmatter.model_validate(merged)
    except ValidationError as exc:
        raise InputError(f"Invalid frontmatter in {source_file}:\n{exc}") from exc

    bib_files = [
        project_dir / bib for bib in frontmatter.bibliography
        if (project_dir / bib).is_file()
    ]
    if not bib_files:
        bib_files = sorted(project_dir.glob("*.bib"))

    keys = find_citation_keys(body)
    dois = resolve_citation_dois(keys, load_bibliography(bib_files)) if keys else {}

    article = ArticleContext(
        frontmatter=frontmatter,
        abstract=extract_abstract(merged, body, project_dir),
        dois=dois,
        source_file=str(source_file),
        config_file=str(config_file) if config_file is not None else None,
        project_dir=str(project_dir),
    )
    logger.info("Collected article: %s", source_file)
    return article


def collect_articles(root: Path, source_file: Optional[Path] = None) -> List[ArticleContext]:
    """Collect the articles to deposit.

    Args:
        root: Directory searched for projects when no source file is given.
        source_file: A single source document to deposit.

    Returns:
        One ArticleContext per source document.

    Raises:
        InputError: If no source documents are found.
    """
    if source_file is not None:
        return [load_article(source_file)]

    articles = []
    for config_file in find_project_configs(root):
        config = load_project_config(str(config_file))
        if "project" not in config:
            continue
        source = project_source_file(config_file, config)
        if source is None or not source.is_file():
            logger.warning("No source document found for project %s", config_file)
            continue
        articles.append(load_article(source, config_file))

    if not articles:
        raise InputError(f"No source documents found under {root}")

    return articles
