from datetime import datetime, timezone
from typing import List, Optional

from loguru import logger

from ..models import Document, Source
from .aggregator import AggregationFetcher


class Catalog:
    """Holds the current document list and swaps it out on refresh.

    Each refresh takes a generation number. Runs may overlap since nothing is
    cancelled, but only the most recently started run is allowed to replace
    the documents; an older run that finishes later is discarded.
    """

    def __init__(self, fetcher: AggregationFetcher):
        self.fetcher = fetcher
        self.documents: List[Document] = []
        self.failed_sources: List[int] = []
        self.notice: Optional[str] = None
        self.refreshed_at: Optional[datetime] = None
        self._generation = 0
        self._in_flight = 0

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    async def refresh(self, sources: List[Source]) -> bool:
        """Rebuild the catalog from ``sources``; returns False if superseded."""
        self._generation += 1
        generation = self._generation
        self._in_flight += 1
        try:
            result = await self.fetcher.aggregate(list(sources))
        finally:
            self._in_flight -= 1

        if generation != self._generation:
            logger.debug(f"[catalog] dropping result of refresh #{generation}, #{self._generation} is newer")
            return False

        self.documents = result.documents
        self.failed_sources = result.failed_sources
        self.notice = result.notice
        self.refreshed_at = datetime.now(timezone.utc)
        return True
