"""Zenodo deposit REST API models."""

from typing import List, Dict, Optional, Any, Literal, Union
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class UploadType(str, Enum):
    """
    * PUBLICATION: Publication.
    * POSTER: Poster.
    * PRESENTATION: Presentation.
    * DATASET: Dataset.
    * IMAGE: Image.
    * VIDEO: Video/Audio.
    * SOFTWARE: Software.
    * LESSON: Lesson.
    * PHYSICALOBJECT: Physical object.
    * OTHER: Other.
    """

    PUBLICATION = "publication"
    POSTER = "poster"
    PRESENTATION = "presentation"
    DATASET = "dataset"
    IMAGE = "image"
    VIDEO = "video"
    SOFTWARE = "software"
    LESSON = "lesson"
    PHYSICALOBJECT = "physicalobject"
    OTHER = "other"


class PublicationType(str, Enum):
    """Publication types, required by Zenodo when the upload type is publication."""

    ANNOTATIONCOLLECTION = "annotationcollection"
    BOOK = "book"
    SECTION = "section"
    CONFERENCEPAPER = "conferencepaper"
    DATAMANAGEMENTPLAN = "datamanagementplan"
    ARTICLE = "article"
    PATENT = "patent"
    PREPRINT = "preprint"
    DELIVERABLE = "deliverable"
    MILESTONE = "milestone"
    PROPOSAL = "proposal"
    REPORT = "report"
    SOFTWAREDOCUMENTATION = "softwaredocumentation"
    TAXONOMICTREATMENT = "taxonomictreatment"
    TECHNICALNOTE = "technicalnote"
    THESIS = "thesis"
    WORKINGPAPER = "workingpaper"
    OTHER = "other"


class AccessRight(str, Enum):
    """
    * OPEN: Open Access, the default.
    * EMBARGOED: Embargoed Access.
    * RESTRICTED: Restricted Access.
    * CLOSED: Closed Access.
    """

    OPEN = "open"
    EMBARGOED = "embargoed"
    RESTRICTED = "restricted"
    CLOSED = "closed"


ImageType = Literal["figure", "plot", "drawing", "diagram", "photo", "other"]

ContributorType = Literal[
    "ContactPerson",
    "DataCollector",
    "DataCurator",
    "DataManager",
    "Distributor",
    "Editor",
    "HostingInstitution",
    "Producer",
    "ProjectLeader",
    "ProjectManager",
    "ProjectMember",
    "RegistrationAgency",
    "RegistrationAuthority",
    "RelatedPerson",
    "Researcher",
    "ResearchGroup",
    "RightsHolder",
    "Supervisor",
    "Sponsor",
    "WorkPackageLeader",
    "Other",
]

CODE_REPOSITORY_KEY = "code:codeRepository"
PROGRAMMING_LANGUAGE_KEY = "code:programmingLanguage"


class Creator(BaseModel):
    """
    A creator/author of the deposition.

    Attributes:
        name (str): Name of creator in the format "Family name, Given names".
        affiliation (Optional[str]): Affiliation of creator.
        orcid (Optional[str]): ORCID identifier of creator.
        gnd (Optional[str]): GND identifier of creator.
    """

    name: str
    affiliation: Optional[str] = None
    orcid: Optional[str] = None
    gnd: Optional[str] = None


class Contributor(Creator):
    """
    A contributor of the deposition.

    Attributes:
        type (ContributorType): Type of contributor from the controlled vocabulary.
    """

    type: ContributorType


class Community(BaseModel):
    """
    A community where the deposition appears.

    Attributes:
        identifier (str): Community identifier.
    """

    identifier: str


class Grant(BaseModel):
    """
    An OpenAIRE-supported grant, e.g. ``10.13039/501100000780::283595``.

    Attributes:
        id (str): The grant id, optionally funder DOI-prefixed.
    """

    id: str


class Subject(BaseModel):
    """
    A subject from a taxonomy or controlled vocabulary.

    Attributes:
        term (str): Term from taxonomy or controlled vocabulary.
        identifier (str): Unique identifier for term.
        scheme (Optional[str]): Persistent identifier scheme for id.
    """

    term: str
    identifier: str
    scheme: Optional[str] = None


class Location(BaseModel):
    """
    A location related to the record.

    Attributes:
        place (str): Place's name.
        lat (Optional[float]): Latitude.
        lon (Optional[float]): Longitude.
        description (Optional[str]): Place's description.
    """

    place: str
    lat: Optional[float] = None
    lon: Optional[float] = None
    description: Optional[str] = None


class DateInterval(BaseModel):
    """
    A date interval. At least a start or end date must be given.

    Attributes:
        type (str): Collected, Valid or Withdrawn.
        start (Optional[str]): ISO start date.
        end (Optional[str]): ISO end date.
        description (Optional[str]): The interval's description.
    """

    type: Literal["Collected", "Valid", "Withdrawn"]
    start: Optional[str] = None
    end: Optional[str] = None
    description: Optional[str] = None


class RelatedIdentifier(BaseModel):
    """
    Identifier of a related resource.

    Attributes:
        identifier (str): The identifier value, e.g. a DOI.
        relation (str): Relationship to this record, e.g. ``cites``.
        scheme (Optional[str]): The identifier scheme, e.g. ``doi``.
        resource_type (Optional[str]): Type of the related resource.
    """

    identifier: str
    relation: str
    scheme: Optional[str] = None
    resource_type: Optional[str] = None


class ReservedDoi(BaseModel):
    """A DOI reserved by Zenodo ahead of publishing."""

    doi: str


class DepositMetadata(BaseModel):
    """
    The metadata of a deposition.

    ``publication_type`` and ``image_type`` are required by Zenodo for
    publications and images; they are left for the service to validate.
    ``extensions`` holds keys Zenodo accepts that are not modelled here and
    is merged into the submitted payload.
    """

    model_config = ConfigDict(use_enum_values=True)

    upload_type: UploadType
    title: str
    description: str
    creators: List[Creator] = Field(default_factory=list)
    publication_type: Optional[PublicationType] = None
    image_type: Optional[ImageType] = None
    publication_date: Optional[str] = None
    access_right: Optional[AccessRight] = None
    license: Optional[str] = None
    embargo_date: Optional[str] = None
    access_conditions: Optional[str] = None
    doi: Optional[str] = None
    prereserve_doi: Optional[Union[bool, ReservedDoi]] = None
    keywords: Optional[List[str]] = None
    notes: Optional[str] = None
    contributors: Optional[List[Contributor]] = None
    references: Optional[List[str]] = None
    communities: Optional[List[Community]] = None
    grants: Optional[List[Grant]] = None
    related_identifiers: Optional[List[RelatedIdentifier]] = None
    journal_title: Optional[str] = None
    journal_volume: Optional[str] = None
    journal_issue: Optional[str] = None
    journal_pages: Optional[str] = None
    conference_title: Optional[str] = None
    conference_acronym: Optional[str] = None
    conference_dates: Optional[str] = None
    conference_place: Optional[str] = None
    conference_url: Optional[str] = None
    conference_session: Optional[str] = None
    conference_session_part: Optional[str] = None
    imprint_publisher: Optional[str] = None
    imprint_isbn: Optional[str] = None
    imprint_place: Optional[str] = None
    partof_title: Optional[str] = None
    partof_pages: Optional[str] = None
    thesis_supervisors: Optional[List[Creator]] = None
    thesis_university: Optional[str] = None
    subjects: Optional[List[Subject]] = None
    version: Optional[str] = None
    language: Optional[str] = None
    locations: Optional[List[Location]] = None
    dates: Optional[List[DateInterval]] = None
    method: Optional[str] = None
    custom: Optional[Dict[str, Any]] = None
    extensions: Dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """
        Converts the model to a JSON-compatible dictionary.
        """
        known = self.model_dump(mode="json", exclude_none=True, exclude={"extensions"})
        return {**self.extensions, **known}


class PersistedResult(BaseModel):
    """
    Data from a deposit result to persist locally.

    Attributes:
        source_file (Optional[str]): The deposited source document.
        id (Optional[int]): Deposition identifier.
        doi (Optional[str]): Digital Object Identifier (DOI).
        recid (Optional[str]): Record identifier.
        created (Optional[str]): The creation time of the deposition.
        modified (Optional[str]): Last modification time of deposition.
        state (Optional[str]): The state of the deposition (inprogress, done or error).
        submitted (Optional[bool]): True if the deposition has been published, False otherwise.
        link (Optional[str]): Link of the created or published deposition.
        files (Optional[int]): Number of files uploaded in this run.
    """

    source_file: Optional[str] = None
    id: Optional[int] = None
    doi: Optional[str] = None
    recid: Optional[str] = None
    created: Optional[str] = None
    modified: Optional[str] = None
    state: Optional[str] = None
    submitted: Optional[bool] = None
    link: Optional[str] = None
    files: Optional[int] = None

    def update(self, json: Dict[str, Any]) -> None:
        """
        Updates the model with values from a deposition JSON dictionary.
        """
        for key in ("id", "doi", "created", "modified", "state", "submitted"):
            if key in json:
                setattr(self, key, json[key])
        if "record_id" in json:
            self.recid = str(json["record_id"])
        links = json.get("links") or {}
        if "html" in links:
            self.link = links["html"]
