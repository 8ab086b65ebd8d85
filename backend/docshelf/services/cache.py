import time
from typing import Callable, Dict, Optional, Tuple

from ..datasources.base import RepoDetail


class RepoDetailCache:
    """Repository metadata for the detail view, kept for ``ttl_seconds``.

    Entries are keyed on (owner, repo) with case folded, matching how GitHub
    resolves names. Misses are never stored.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[Tuple[str, str], Tuple[float, RepoDetail]] = {}

    @staticmethod
    def _key(owner: str, repo: str) -> Tuple[str, str]:
        return owner.strip().casefold(), repo.strip().casefold()

    def get(self, owner: str, repo: str) -> Optional[RepoDetail]:
        key = self._key(owner, repo)
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, detail = entry
        if self.clock() >= expires_at:
            del self._entries[key]
            return None
        return detail

    def put(self, owner: str, repo: str, detail: RepoDetail) -> None:
        self._entries[self._key(owner, repo)] = (self.clock() + self.ttl_seconds, detail)

    def __len__(self) -> int:
        return len(self._entries)
