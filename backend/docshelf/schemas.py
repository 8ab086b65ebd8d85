from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from .models import Document


class RepoSourceCreate(BaseModel):
    owner: str
    repo: str


class LinkSourceCreate(BaseModel):
    url: str
    name: Optional[str] = None  # derived from the URL when omitted


class RenameRequest(BaseModel):
    name: str


class RemoveResponse(BaseModel):
    id: int
    removed: bool


class CatalogResponse(BaseModel):
    documents: List[Document]
    notice: Optional[str] = None
    failed_sources: List[int] = []
    loading: bool = False
    refreshed_at: Optional[datetime] = None
