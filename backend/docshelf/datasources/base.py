from datetime import datetime
from typing import List, Optional, Protocol

from pydantic import BaseModel, Field


class RepoSummary(BaseModel):
    """The part of a repository object the suggestion search needs."""

    name: str


class SearchPage(BaseModel):
    items: List[RepoSummary] = Field(default_factory=list)


class ReleaseAsset(BaseModel):
    id: int
    name: str
    browser_download_url: str
    size: int
    created_at: datetime


class Release(BaseModel):
    tag_name: str
    html_url: Optional[str] = None
    assets: List[ReleaseAsset] = Field(default_factory=list)


class RepoDetail(BaseModel):
    full_name: str
    html_url: Optional[str] = None
    description: Optional[str] = None
    topics: List[str] = Field(default_factory=list)


class HostingSource(Protocol):
    async def list_owner_repositories(self, owner: str, per_page: int = 30) -> List[str]:
        ...

    async def search_owner_repositories(self, owner: str, term: str, per_page: int = 30) -> List[str]:
        ...

    async def get_latest_release(self, owner: str, repo: str) -> Release:
        ...

    async def get_repository(self, owner: str, repo: str) -> Optional[RepoDetail]:
        ...
