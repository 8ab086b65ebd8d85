import json
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set

from loguru import logger
from pydantic import ValidationError

from ..exceptions import SourceKindError, SourceValidationError, StorageError
from ..models import (
    DirectLinkDraft,
    DirectLinkSource,
    RepoReleaseDraft,
    RepoReleaseSource,
    Source,
    SourceDraft,
    SourceKind,
    SourceList,
    display_name_from_url,
)
from .storage import KeyValueStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        field = ".".join(str(loc) for loc in err.get("loc", ()))
        parts.append(f"{field}: {err.get('msg')}" if field else err.get("msg", ""))
    return "; ".join(parts)


def dump_sources(sources: List[Source]) -> str:
    return SourceList.dump_json(sources, by_alias=True).decode("utf-8")


def load_sources(raw: str) -> List[Source]:
    """Parse a stored source collection.

    Records written before direct links existed carry no ``type``; they are
    read as repository sources.
    """
    try:
        records = json.loads(raw)
    except ValueError as exc:
        raise StorageError(f"Stored sources are not valid JSON: {exc}") from exc
    if not isinstance(records, list):
        raise StorageError("Stored sources must be a JSON array")
    for record in records:
        if isinstance(record, dict):
            record.setdefault("type", SourceKind.REPO_RELEASE.value)
    try:
        return SourceList.validate_python(records)
    except ValidationError as exc:
        raise StorageError(f"Stored sources are invalid: {_describe(exc)}") from exc


class SourceRegistry:
    """Ordered collection of sources, written through to a key/value store.

    Every mutation serializes the whole collection and stores it under one key
    before returning, so the stored value always matches what ``list()``
    returns. The same (owner, repo) pair may be registered twice; the
    suggestion search hides registered repositories but nothing here rejects
    them.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str = "pdf_lib_storage_final",
        target_extension: str = ".pdf",
        untitled_name: str = "Untitled document",
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.key = key
        self.target_extension = target_extension
        self.untitled_name = untitled_name
        self.clock = clock
        raw = store.get(key)
        self._sources: List[Source] = load_sources(raw) if raw else []
        self._last_id = max((source.id for source in self._sources), default=0)
        logger.info(f"[registry] loaded {len(self._sources)} sources from {key!r}")

    def list(self) -> List[Source]:
        return list(self._sources)

    def __len__(self) -> int:
        return len(self._sources)

    def get(self, source_id: int) -> Optional[Source]:
        for source in self._sources:
            if source.id == source_id:
                return source
        return None

    def has_repository(self, owner: str, repo_name: str) -> bool:
        return any(
            isinstance(source, RepoReleaseSource) and source.matches(owner, repo_name)
            for source in self._sources
        )

    def repository_names(self, owner: str) -> Set[str]:
        """Lower-cased repo names already registered for ``owner``."""
        owner = owner.strip().lower()
        return {
            source.repo_name.lower()
            for source in self._sources
            if isinstance(source, RepoReleaseSource) and source.owner.lower() == owner
        }

    def add(self, draft: SourceDraft) -> Source:
        source_id = self._next_id()
        added_at = self.clock()
        try:
            if isinstance(draft, RepoReleaseDraft):
                source = RepoReleaseSource(
                    id=source_id, added_at=added_at, owner=draft.owner, repo_name=draft.repo_name
                )
            elif isinstance(draft, DirectLinkDraft):
                name = (draft.display_name or "").strip() or display_name_from_url(
                    draft.url, self.target_extension, self.untitled_name
                )
                source = DirectLinkSource(id=source_id, added_at=added_at, url=draft.url, display_name=name)
            else:
                raise SourceValidationError(f"Unsupported source draft: {type(draft).__name__}")
        except ValidationError as exc:
            raise SourceValidationError(_describe(exc)) from exc

        self._persist([*self._sources, source])
        self._last_id = source_id
        if isinstance(source, RepoReleaseSource):
            logger.info(f"[registry] added repo source {source.full_name} (id={source.id})")
        else:
            logger.info(f"[registry] added link source {source.display_name!r} (id={source.id})")
        return source

    def remove(self, source_id: int) -> bool:
        remaining = [source for source in self._sources if source.id != source_id]
        if len(remaining) == len(self._sources):
            return False
        self._persist(remaining)
        logger.info(f"[registry] removed source id={source_id}")
        return True

    def rename(self, source_id: int, new_display_name: str) -> Optional[DirectLinkSource]:
        for index, source in enumerate(self._sources):
            if source.id != source_id:
                continue
            if not isinstance(source, DirectLinkSource):
                raise SourceKindError("Only direct link sources have an editable name")
            name = new_display_name.strip()
            if not name:
                raise SourceValidationError("display_name: must not be blank")
            updated = source.model_copy(update={"display_name": name})
            sources = list(self._sources)
            sources[index] = updated
            self._persist(sources)
            logger.info(f"[registry] renamed source id={source_id} to {name!r}")
            return updated
        return None

    def _next_id(self) -> int:
        now_ms = int(self.clock().timestamp() * 1000)
        return max(now_ms, self._last_id + 1)

    def _persist(self, sources: List[Source]) -> None:
        # store first; if it raises, the in-memory list is left as it was
        self.store.set(self.key, dump_sources(sources))
        self._sources = sources
