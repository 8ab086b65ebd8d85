import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .config import get_settings
from .datasources.base import RepoDetail
from .exceptions import SourceKindError, SourceValidationError
from .models import DirectLinkDraft, DirectLinkSource, RepoReleaseDraft, Source
from .schemas import CatalogResponse, LinkSourceCreate, RemoveResponse, RenameRequest, RepoSourceCreate
from .services.library import Library
from .services.storage import JsonFileStore
from .services.suggestions import SuggestionOutcome


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


settings = get_settings()
library = Library(JsonFileStore(settings.storage_path), settings)


def get_library() -> Library:
    return library


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    logger.info(f"[host] storage at {settings.storage_path}, {len(library.registry)} sources")
    await library.startup()
    yield
    await library.aclose()


app = FastAPI(title="docshelf", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/sources", response_model=List[Source])
async def list_sources(lib: Library = Depends(get_library)):
    return lib.sources


@app.post("/sources/github", response_model=Source, status_code=201)
async def add_repo_source(body: RepoSourceCreate, lib: Library = Depends(get_library)):
    try:
        return lib.add_source(RepoReleaseDraft(owner=body.owner, repo_name=body.repo))
    except SourceValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@app.post("/sources/link", response_model=Source, status_code=201)
async def add_link_source(body: LinkSourceCreate, lib: Library = Depends(get_library)):
    try:
        return lib.add_source(DirectLinkDraft(url=body.url, display_name=body.name))
    except SourceValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@app.delete("/sources/{source_id}", response_model=RemoveResponse)
async def remove_source(source_id: int, lib: Library = Depends(get_library)):
    return RemoveResponse(id=source_id, removed=lib.remove_source(source_id))


@app.patch("/sources/{source_id}", response_model=DirectLinkSource)
async def rename_source(source_id: int, body: RenameRequest, lib: Library = Depends(get_library)):
    try:
        updated = lib.rename_source(source_id, body.name)
    except SourceKindError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except SourceValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    if updated is None:
        raise HTTPException(status_code=404, detail=f"Source {source_id} not found")
    return updated


def _catalog_response(lib: Library) -> CatalogResponse:
    catalog = lib.catalog
    return CatalogResponse(
        documents=catalog.documents,
        notice=catalog.notice,
        failed_sources=catalog.failed_sources,
        loading=catalog.loading,
        refreshed_at=catalog.refreshed_at,
    )


@app.get("/catalog", response_model=CatalogResponse)
async def get_catalog(lib: Library = Depends(get_library)):
    return _catalog_response(lib)


@app.post("/catalog/refresh", response_model=CatalogResponse)
async def refresh_catalog(lib: Library = Depends(get_library)):
    await lib.refresh()
    return _catalog_response(lib)


@app.get("/suggestions", response_model=SuggestionOutcome)
async def suggestions(
    owner: str = Query(..., min_length=1),
    query: str = Query(""),
    lib: Library = Depends(get_library),
):
    if not owner.strip():
        raise HTTPException(status_code=422, detail="owner must not be blank")
    return await lib.suggest(owner, query)


@app.get("/repos/{owner}/{repo}", response_model=RepoDetail)
async def repository_detail(owner: str, repo: str, lib: Library = Depends(get_library)):
    detail = await lib.repository_detail(owner, repo)
    if detail is None:
        raise HTTPException(status_code=502, detail=f"Could not load repository {owner}/{repo}")
    return detail


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8020)
