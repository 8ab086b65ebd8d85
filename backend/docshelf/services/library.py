from typing import Callable, List, Optional

from loguru import logger

from ..config import Settings, get_settings
from ..datasources.base import HostingSource, RepoDetail
from ..datasources.github_adapter import GitHubAdapter
from ..models import DirectLinkSource, Document, Source, SourceDraft
from .aggregator import AggregationFetcher
from .cache import RepoDetailCache
from .catalog import Catalog
from .registry import SourceRegistry
from .storage import KeyValueStore
from .suggestions import SuggestionController, SuggestionOutcome, SuggestionState, search_suggestions


class Library:
    """Everything a host UI needs, wired from one settings object.

    Registry mutations persist immediately; the catalog is only rebuilt when
    the host calls ``refresh``.
    """

    def __init__(
        self,
        store: KeyValueStore,
        settings: Settings | None = None,
        source: HostingSource | None = None,
    ):
        self.settings = settings or get_settings()
        self.source = source or GitHubAdapter(self.settings)
        self.registry = SourceRegistry(
            store,
            key=self.settings.storage_key,
            target_extension=self.settings.target_extension,
            untitled_name=self.settings.untitled_name,
        )
        self.catalog = Catalog(AggregationFetcher(self.source, self.settings.target_extension))
        self.repo_cache = RepoDetailCache(self.settings.cache_ttl_seconds)

    @property
    def sources(self) -> List[Source]:
        return self.registry.list()

    @property
    def documents(self) -> List[Document]:
        return self.catalog.documents

    def add_source(self, draft: SourceDraft) -> Source:
        return self.registry.add(draft)

    def remove_source(self, source_id: int) -> bool:
        return self.registry.remove(source_id)

    def rename_source(self, source_id: int, display_name: str) -> Optional[DirectLinkSource]:
        return self.registry.rename(source_id, display_name)

    async def refresh(self) -> bool:
        return await self.catalog.refresh(self.registry.list())

    async def startup(self) -> None:
        if len(self.registry):
            await self.refresh()
        else:
            logger.info("[catalog] no sources registered yet, nothing to load")

    def suggestion_controller(
        self, on_change: Optional[Callable[[SuggestionState], None]] = None
    ) -> SuggestionController:
        return SuggestionController(
            self.source,
            self.registry,
            debounce_seconds=self.settings.debounce_seconds,
            per_page=self.settings.suggestion_page_size,
            on_change=on_change,
        )

    async def suggest(self, owner: str, query: str) -> SuggestionOutcome:
        return await search_suggestions(
            self.source, self.registry, owner, query, per_page=self.settings.suggestion_page_size
        )

    async def repository_detail(self, owner: str, repo: str) -> Optional[RepoDetail]:
        cached = self.repo_cache.get(owner, repo)
        if cached is not None:
            return cached
        detail = await self.source.get_repository(owner, repo)
        if detail is not None:
            self.repo_cache.put(owner, repo, detail)
        return detail

    async def aclose(self) -> None:
        close = getattr(self.source, "aclose", None)
        if close is not None:
            await close()
