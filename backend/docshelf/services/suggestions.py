"""Repository autocomplete used while registering a repository source.

``search_suggestions`` performs one evaluation for an (owner, query) pair and
decides what the dropdown shows. ``SuggestionController`` drives it from raw
keystrokes: both fields are debounced independently, a picked suggestion does
not trigger a search for itself, and responses that arrive out of order are
dropped in favour of the most recently issued request.
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Set

import httpx
from loguru import logger
from pydantic import BaseModel, Field

from ..datasources.base import HostingSource
from ..exceptions import GitHubError, OwnerNotFoundError, RateLimitedError
from .debounce import Debouncer
from .registry import SourceRegistry

TRANSPORT_FAILURE_MESSAGE = "Failed to fetch repositories"


class SearchMode(str, Enum):
    LISTING = "listing"
    SEARCH = "search"


class SuggestionPhase(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    RESULTS = "results"
    EMPTY = "empty"
    ERROR = "error"


class EmptyReason(str, Enum):
    ALL_ALREADY_ADDED = "all_already_added"
    NO_MATCHES = "no_matches"
    # listing came back empty; the dropdown is not forced open for this one
    OWNER_HAS_NO_REPOSITORIES = "owner_has_no_repositories"


class SuggestionErrorKind(str, Enum):
    OWNER_NOT_FOUND = "owner_not_found"
    RATE_LIMITED = "rate_limited"
    TRANSPORT_FAILURE = "transport_failure"


class SuggestionOutcome(BaseModel):
    owner: str
    query: str
    mode: SearchMode
    phase: SuggestionPhase
    suggestions: List[str] = Field(default_factory=list)
    raw_count: int = 0
    empty_reason: Optional[EmptyReason] = None
    error: Optional[SuggestionErrorKind] = None
    message: Optional[str] = None
    open: bool = False


class SuggestionState(BaseModel):
    owner: str
    query: str
    phase: SuggestionPhase
    suggestions: List[str]
    empty_reason: Optional[EmptyReason] = None
    error: Optional[SuggestionErrorKind] = None
    message: Optional[str] = None
    open: bool


def should_open_dropdown(raw_count: int, filtered_count: int, query: str, failed: bool = False) -> bool:
    if failed:
        return True
    if filtered_count > 0:
        return True
    if raw_count > 0:
        # everything returned is already registered
        return True
    return bool(query.strip())


def _empty_reason(raw_count: int, mode: SearchMode) -> EmptyReason:
    if raw_count > 0:
        return EmptyReason.ALL_ALREADY_ADDED
    if mode is SearchMode.SEARCH:
        return EmptyReason.NO_MATCHES
    return EmptyReason.OWNER_HAS_NO_REPOSITORIES


async def search_suggestions(
    source: HostingSource,
    registry: SourceRegistry,
    owner: str,
    query: str,
    per_page: int = 30,
) -> SuggestionOutcome:
    """Run one suggestion lookup and classify the result.

    A blank query lists the owner's repositories (most recently updated
    first); anything else searches for the term scoped to the owner. Names
    already registered for the owner are filtered out, ignoring case. Errors
    never raise: they come back as an ``ERROR`` outcome with an empty list.
    """
    owner = owner.strip()
    term = query.strip()
    mode = SearchMode.SEARCH if term else SearchMode.LISTING

    def failure(kind: SuggestionErrorKind, message: str) -> SuggestionOutcome:
        return SuggestionOutcome(
            owner=owner,
            query=query,
            mode=mode,
            phase=SuggestionPhase.ERROR,
            error=kind,
            message=message,
            open=should_open_dropdown(0, 0, query, failed=True),
        )

    try:
        if mode is SearchMode.LISTING:
            names = await source.list_owner_repositories(owner, per_page=per_page)
        else:
            names = await source.search_owner_repositories(owner, term, per_page=per_page)
    except OwnerNotFoundError as exc:
        if mode is SearchMode.LISTING:
            return failure(SuggestionErrorKind.OWNER_NOT_FOUND, str(exc))
        logger.warning(f"[suggest] unexpected not-found in search mode for {owner}: {exc}")
        return failure(SuggestionErrorKind.TRANSPORT_FAILURE, TRANSPORT_FAILURE_MESSAGE)
    except RateLimitedError as exc:
        return failure(SuggestionErrorKind.RATE_LIMITED, str(exc))
    except (GitHubError, httpx.HTTPError, ValueError) as exc:
        logger.warning(f"[suggest] {mode.value} for {owner!r} failed: {exc}")
        return failure(SuggestionErrorKind.TRANSPORT_FAILURE, TRANSPORT_FAILURE_MESSAGE)
    except Exception as exc:
        logger.exception(f"[suggest] unexpected {mode.value} failure for {owner!r}: {exc!r}")
        return failure(SuggestionErrorKind.TRANSPORT_FAILURE, TRANSPORT_FAILURE_MESSAGE)

    registered = registry.repository_names(owner)
    filtered = [name for name in names if name.lower() not in registered]
    if filtered:
        phase, reason = SuggestionPhase.RESULTS, None
    else:
        phase, reason = SuggestionPhase.EMPTY, _empty_reason(len(names), mode)
    return SuggestionOutcome(
        owner=owner,
        query=query,
        mode=mode,
        phase=phase,
        suggestions=filtered,
        raw_count=len(names),
        empty_reason=reason,
        open=should_open_dropdown(len(names), len(filtered), query),
    )


@dataclass
class _Selection:
    token: int
    value: str


class SuggestionController:
    """State machine behind the repository name field.

    ``set_owner`` and ``set_query`` take raw input; each is debounced on its
    own and a search is evaluated whenever either settled value changes, as
    long as the settled owner is not blank.

    Picking a suggestion writes it into the query, which would normally come
    back around as a search for that exact name. ``select_suggestion`` arms a
    selection token instead; the next debounced evaluation consumes it and is
    skipped if its query is the selected value.

    Every search gets a request token and only the newest request may write
    state. In-flight requests are never cancelled.
    """

    def __init__(
        self,
        source: HostingSource,
        registry: SourceRegistry,
        debounce_seconds: float = 0.5,
        per_page: int = 30,
        on_change: Optional[Callable[[SuggestionState], None]] = None,
    ):
        self.source = source
        self.registry = registry
        self.per_page = per_page
        self.on_change = on_change
        self._owner = Debouncer(debounce_seconds, self._on_owner_settled, "")
        self._query = Debouncer(debounce_seconds, self._on_query_settled, "")

        self.owner_text = ""
        self.query_text = ""
        self.phase = SuggestionPhase.IDLE
        self.suggestions: List[str] = []
        self.empty_reason: Optional[EmptyReason] = None
        self.error: Optional[SuggestionErrorKind] = None
        self.message: Optional[str] = None
        self.open = False

        self._request_token = 0
        self._selection_token = 0
        self._pending_selection: Optional[_Selection] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def settled_owner(self) -> str:
        return self._owner.settled

    @property
    def settled_query(self) -> str:
        return self._query.settled

    @property
    def state(self) -> SuggestionState:
        return SuggestionState(
            owner=self._owner.settled,
            query=self.query_text,
            phase=self.phase,
            suggestions=list(self.suggestions),
            empty_reason=self.empty_reason,
            error=self.error,
            message=self.message,
            open=self.open,
        )

    def set_owner(self, text: str) -> None:
        self.owner_text = text
        self._owner.push(text)

    def set_query(self, text: str) -> None:
        selection = self._pending_selection
        if selection is not None and text != selection.value:
            # edited away from the pick before it settled
            self._pending_selection = None
        self.query_text = text
        self._query.push(text)

    def select_suggestion(self, name: str) -> None:
        # a value equal to the settled query never settles again, so arming
        # the token then would swallow some later, unrelated search
        if name != self._query.settled:
            self._selection_token += 1
            self._pending_selection = _Selection(self._selection_token, name)
        else:
            self._pending_selection = None
        self.query_text = name
        self._query.push(name)
        self.open = False
        self._notify()

    def focus_query(self) -> None:
        """Prefetch the owner's repositories when nothing is cached yet."""
        owner = self._owner.settled.strip()
        if owner and not self.suggestions:
            self._start_search(owner, "")
        elif self.suggestions:
            self.open = True
            self._notify()

    def toggle_dropdown(self) -> None:
        self.open = not self.open
        self._notify()

    def close_dropdown(self) -> None:
        if self.open:
            self.open = False
            self._notify()

    def reset(self) -> None:
        """Clear the query after a source was added; the owner is kept."""
        self._pending_selection = None
        self._invalidate_requests()
        self.phase = SuggestionPhase.IDLE
        self.suggestions = []
        self.empty_reason = None
        self.error = None
        self.message = None
        self.open = False
        self.set_query("")
        self._notify()

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def aclose(self) -> None:
        self._owner.cancel()
        self._query.cancel()
        await self.wait_idle()

    def _on_owner_settled(self, owner: str) -> None:
        self.suggestions = []
        self.empty_reason = None
        if not owner.strip():
            self._invalidate_requests()
            self.phase = SuggestionPhase.IDLE
            self.error = None
            self.message = None
            self.open = False
            self._notify()
            return
        self._evaluate()

    def _on_query_settled(self, query: str) -> None:
        self._evaluate()

    def _evaluate(self) -> None:
        selection = self._pending_selection
        if selection is not None and not self._query.pending:
            self._pending_selection = None
            if self._query.settled == selection.value:
                logger.debug(f"[suggest] selection #{selection.token} {selection.value!r} settled, not searching")
                return
        owner = self._owner.settled.strip()
        if not owner:
            return
        self._start_search(owner, self._query.settled)

    def _invalidate_requests(self) -> None:
        # responses for anything issued so far are dropped on arrival
        self._request_token += 1

    def _start_search(self, owner: str, query: str) -> None:
        self._request_token += 1
        token = self._request_token
        self.phase = SuggestionPhase.SEARCHING
        self.error = None
        self.message = None
        self._notify()
        task = asyncio.get_running_loop().create_task(self._run(token, owner, query))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, token: int, owner: str, query: str) -> None:
        outcome = await search_suggestions(self.source, self.registry, owner, query, per_page=self.per_page)
        if token != self._request_token:
            logger.debug(f"[suggest] dropping stale response #{token} for {owner}/{query!r}")
            return
        self.phase = outcome.phase
        self.suggestions = outcome.suggestions
        self.empty_reason = outcome.empty_reason
        self.error = outcome.error
        self.message = outcome.message
        if outcome.open:
            self.open = True
        self._notify()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.state)
