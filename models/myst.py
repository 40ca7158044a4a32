"""MyST project and frontmatter models."""

from datetime import date, datetime
from typing import Optional, List, Dict, Any, Tuple

from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator, model_validator


def _as_text(value: Any) -> Any:
    """YAML hands back ints and dates for some scalars; keep them as strings."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (date, datetime)):
        return value.isoformat()[:10]
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return value


def _as_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, (str, dict)):
        return [value]
    return value


class Affiliation(BaseModel):
    """
    An institution that authors and editors refer to by id.

    Attributes:
        id (Optional[str]): Identifier referenced from ``Author.affiliations``.
        name (Optional[str]): The name of the organisation or institution.
        institution (Optional[str]): Parent institution, used when ``name`` is absent.
    """

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: Optional[str] = None
    institution: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"id": data, "name": data}
        return data

    @field_validator("id", "name", "institution", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Any:
        return _as_text(value)

    def label(self) -> str:
        return self.name or self.institution or ""


class Author(BaseModel):
    """
    A person listed as an author, contributor or editor.

    ``name`` may be written as ``"Jane Doe"``, ``"Doe, Jane"`` or as a
    mapping with ``given`` and ``family`` keys.
    """

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: Optional[str] = None
    given: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("given", "given_name")
    )
    family: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("family", "family_name")
    )
    orcid: Optional[str] = None
    email: Optional[str] = None
    corresponding: Optional[bool] = None
    affiliations: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"name": data}
        if isinstance(data, dict) and isinstance(data.get("name"), dict):
            data = dict(data)
            parsed = data.pop("name")
            data.setdefault("given", parsed.get("given"))
            data.setdefault("family", parsed.get("family"))
            if parsed.get("literal"):
                data["name"] = parsed["literal"]
        return data

    @field_validator("id", "orcid", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Any:
        return _as_text(value)

    @field_validator("affiliations", mode="before")
    @classmethod
    def _affiliation_ids(cls, value: Any) -> Any:
        ids = []
        for entry in _as_list(value):
            if isinstance(entry, dict):
                entry = entry.get("id") or entry.get("name") or ""
            ids.append(str(entry))
        return ids

    def formatted_name(self) -> str:
        """Returns the name as "Family, Given"."""
        if self.family:
            return f"{self.family}, {self.given}" if self.given else self.family
        name = (self.name or "").strip()
        if not name or "," in name:
            return name
        given, _, family = name.rpartition(" ")
        return f"{family}, {given}" if given else family


class Venue(BaseModel):
    """
    The conference or journal an article appears in.

    Attributes:
        title (Optional[str]): Full venue title.
        short_title (Optional[str]): Acronym, e.g. ``SciPy 2024``.
        doi (Optional[str]): Venue DOI.
        url (Optional[str]): Venue URL.
        series (Optional[str]): Series the venue belongs to.
        issn (Optional[str]): ISSN of the venue.
        number (Optional[str]): Event number.
        date (Optional[str]): Event date(s), free text.
        location (Optional[str]): Event place, "city, country".
        publisher (Optional[str]): Publisher name.
    """

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    short_title: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("short_title", "acronym")
    )
    doi: Optional[str] = None
    url: Optional[str] = None
    series: Optional[str] = None
    issn: Optional[str] = None
    number: Optional[str] = None
    date: Optional[str] = None
    location: Optional[str] = None
    publisher: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"title": data}
        return data

    @field_validator(
        "title", "short_title", "doi", "url", "series", "issn", "number", "date",
        "location", "publisher",
        mode="before",
    )
    @classmethod
    def _text(cls, value: Any) -> Any:
        return _as_text(value)


class Volume(BaseModel):
    """
    The volume of a venue.

    Attributes:
        number (Optional[str]): Volume number, kept as text.
        doi (Optional[str]): Volume DOI.
        title (Optional[str]): Volume title.
        subject (Optional[str]): Volume subject.
    """

    model_config = ConfigDict(extra="ignore")

    number: Optional[str] = None
    doi: Optional[str] = None
    title: Optional[str] = None
    subject: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_scalar(cls, data: Any) -> Any:
        if data is not None and not isinstance(data, dict):
            return {"number": data}
        return data

    @field_validator("number", "doi", "title", "subject", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Any:
        return _as_text(value)


class Issue(BaseModel):
    """
    The issue of a volume.

    Attributes:
        number (Optional[str]): Issue number, kept as text.
        doi (Optional[str]): Issue DOI.
    """

    model_config = ConfigDict(extra="ignore")

    number: Optional[str] = None
    doi: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_scalar(cls, data: Any) -> Any:
        if data is not None and not isinstance(data, dict):
            return {"number": data}
        return data

    @field_validator("number", "doi", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Any:
        return _as_text(value)


class Download(BaseModel):
    """
    A file offered alongside the article.

    Attributes:
        file (Optional[str]): Local path, relative to the project directory.
        url (Optional[str]): Remote URL, for downloads that are not local files.
        title (Optional[str]): Display title.
    """

    model_config = ConfigDict(extra="ignore")

    file: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"file": data}
        return data


class Frontmatter(BaseModel):
    """
    The page frontmatter of a source document, merged over the project
    frontmatter from ``myst.yml``.
    """

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    subtitle: Optional[str] = None
    short_title: Optional[str] = None
    date: Optional[str] = None
    doi: Optional[str] = None
    abstract: Optional[str] = None
    license: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    github: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("github", "code_repository")
    )
    authors: List[Author] = Field(default_factory=list)
    contributors: List[Author] = Field(default_factory=list)
    affiliations: List[Affiliation] = Field(default_factory=list)
    editors: List[str] = Field(default_factory=list)
    venue: Optional[Venue] = None
    volume: Optional[Volume] = None
    issue: Optional[Issue] = None
    first_page: Optional[Any] = Field(
        default=None, validation_alias=AliasChoices("first_page", "firstpage")
    )
    last_page: Optional[Any] = None
    downloads: List[Download] = Field(default_factory=list)
    bibliography: List[str] = Field(default_factory=list)

    @field_validator(
        "keywords", "authors", "contributors", "affiliations", "downloads",
        mode="before",
    )
    @classmethod
    def _lists(cls, value: Any) -> Any:
        return _as_list(value)

    @field_validator("editors", "bibliography", mode="before")
    @classmethod
    def _string_lists(cls, value: Any) -> Any:
        return [str(entry) for entry in _as_list(value)]

    @field_validator("date", "doi", "title", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Any:
        return _as_text(value)

    @field_validator("license", mode="before")
    @classmethod
    def _license_id(cls, value: Any) -> Any:
        # MyST allows {content: ..., code: ...}; Zenodo takes one license id.
        if isinstance(value, dict):
            content = value.get("content")
            if isinstance(content, dict):
                return content.get("id")
            return content
        return value

    def find_person(self, person_id: str) -> Optional[Author]:
        """Looks up a contributor, then an author, by id."""
        for person in [*self.contributors, *self.authors]:
            if person.id == person_id:
                return person
        return None

    def affiliation_names(self, ids: List[str]) -> List[str]:
        """Resolves affiliation ids to names, dropping unknown or empty ones."""
        by_id = {aff.id: aff.label() for aff in self.affiliations if aff.id}
        names = [by_id.get(aff_id, "") for aff_id in ids]
        return [name for name in names if name and name.strip()]


class ArticleContext(BaseModel):
    """
    The data collected for one source document.

    Attributes:
        frontmatter (Frontmatter): Page frontmatter merged over project frontmatter.
        abstract (Optional[str]): The abstract as Markdown text.
        dois (Dict[str, str]): DOIs of the cited works, by citation key.
        source_file (str): The source document.
        config_file (Optional[str]): The ``myst.yml`` holding the deposit binding.
        project_dir (str): Directory that download paths are relative to.
    """

    frontmatter: Frontmatter
    abstract: Optional[str] = None
    dois: Dict[str, str] = Field(default_factory=dict)
    source_file: str
    config_file: Optional[str] = None
    project_dir: str


class ResolvedPerson(BaseModel):
    """
    A person whose affiliation ids were resolved against their own article.

    Attributes:
        name (str): Name as "Family, Given".
        affiliation (Optional[str]): Comma-joined affiliation names.
        orcid (Optional[str]): ORCID identifier.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    affiliation: Optional[str] = None
    orcid: Optional[str] = None


class IssueData(BaseModel):
    """
    Venue, volume and issue fields shared by every article of one issue.
    """

    model_config = ConfigDict(frozen=True)

    venue_title: Optional[str] = None
    venue_short_title: Optional[str] = None
    venue_doi: Optional[str] = None
    venue_url: Optional[str] = None
    venue_series: Optional[str] = None
    venue_issn: Optional[str] = None
    venue_number: Optional[str] = None
    venue_date: Optional[str] = None
    venue_location: Optional[str] = None
    venue_publisher: Optional[str] = None
    volume_number: Optional[str] = None
    volume_doi: Optional[str] = None
    volume_title: Optional[str] = None
    volume_subject: Optional[str] = None
    issue_number: Optional[str] = None
    issue_doi: Optional[str] = None
    editors: Tuple[ResolvedPerson, ...] = ()
