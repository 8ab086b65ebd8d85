"""Source and document records.

Sources are what the user registers and what gets persisted. Documents are
derived from sources on every catalog refresh and never stored. Both are
tagged on ``kind`` so code can match on the variant instead of probing for
optional fields.

The persisted wire format uses the field names of the original browser store
(``type``, ``repo``, ``name``, ``addedAt``); pydantic aliases map them onto
the Python attribute names.
"""
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from urllib.parse import unquote, urlsplit

import httpx
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, TypeAdapter, computed_field

GITHUB_WEB_URL = "https://github.com"
UNKNOWN_SIZE = "Unknown"
LINK_VERSION_LABEL = "Link"


class SourceKind(str, Enum):
    REPO_RELEASE = "github"
    DIRECT_LINK = "link"


def _require_text(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


def _require_url(value: str) -> str:
    value = _require_text(value)
    try:
        parsed = httpx.URL(value)
    except httpx.InvalidURL as exc:
        raise ValueError(f"not a valid URL: {value!r}") from exc
    if not parsed.scheme or not parsed.host:
        raise ValueError(f"URL needs a scheme and a host: {value!r}")
    return value


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


NonBlank = Annotated[str, AfterValidator(_require_text)]
ParseableUrl = Annotated[str, AfterValidator(_require_url)]
AwareDatetime = Annotated[datetime, AfterValidator(_as_aware)]


class _SourceBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    added_at: AwareDatetime = Field(alias="addedAt")


class RepoReleaseSource(_SourceBase):
    kind: Literal[SourceKind.REPO_RELEASE] = Field(default=SourceKind.REPO_RELEASE, alias="type")
    owner: NonBlank
    repo_name: NonBlank = Field(alias="repo")

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo_name}"

    def matches(self, owner: str, repo_name: str) -> bool:
        return (
            self.owner.lower() == owner.strip().lower()
            and self.repo_name.lower() == repo_name.strip().lower()
        )


class DirectLinkSource(_SourceBase):
    kind: Literal[SourceKind.DIRECT_LINK] = Field(default=SourceKind.DIRECT_LINK, alias="type")
    url: ParseableUrl
    display_name: NonBlank = Field(alias="name")

    @property
    def host(self) -> str:
        return httpx.URL(self.url).host


Source = Annotated[Union[RepoReleaseSource, DirectLinkSource], Field(discriminator="kind")]
SourceList = TypeAdapter(List[Source])


class RepoReleaseDraft(BaseModel):
    owner: str
    repo_name: str


class DirectLinkDraft(BaseModel):
    url: str
    display_name: Optional[str] = None


SourceDraft = Union[RepoReleaseDraft, DirectLinkDraft]


class _DocumentBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    unique_key: str
    display_name: str
    download_url: str
    size_label: str
    published_at: datetime
    version_label: str
    origin_label: str

    @computed_field
    @property
    def date_label(self) -> str:
        # %x follows the process locale, like toLocaleDateString in a browser
        return self.published_at.astimezone().strftime("%x")


class RepoReleaseDocument(_DocumentBase):
    kind: Literal[SourceKind.REPO_RELEASE] = SourceKind.REPO_RELEASE
    owner: str
    repo_name: str
    release_url: Optional[str] = None

    @computed_field
    @property
    def repository_url(self) -> str:
        return f"{GITHUB_WEB_URL}/{self.owner}/{self.repo_name}"


class DirectLinkDocument(_DocumentBase):
    kind: Literal[SourceKind.DIRECT_LINK] = SourceKind.DIRECT_LINK


Document = Annotated[Union[RepoReleaseDocument, DirectLinkDocument], Field(discriminator="kind")]


def format_size(size_bytes: int) -> str:
    return f"{size_bytes / 1024 / 1024:.2f} MB"


def display_name_from_url(url: str, extension: str = ".pdf", placeholder: str = "Untitled document") -> str:
    """Derive a document name from the last path segment of ``url``.

    The target extension is stripped case-insensitively and the remainder is
    percent-decoded. A path that ends in ``/`` gives ``placeholder``. An
    unparseable URL gives an empty string so callers can tell the two apart.
    """
    if not url:
        return ""
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return ""
    if not parts.scheme or not parts.netloc:
        return ""
    filename = parts.path.rsplit("/", 1)[-1]
    if extension:
        filename = re.sub(re.escape(extension) + r"$", "", filename, flags=re.IGNORECASE)
    return unquote(filename) or placeholder
