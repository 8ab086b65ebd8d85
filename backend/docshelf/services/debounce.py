import asyncio
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class Debouncer(Generic[T]):
    """Settle a rapidly changing value after ``delay`` seconds of quiet.

    Every ``push`` restarts the timer and replaces the pending value, so only
    the last value before the quiet period is ever emitted. ``on_settle`` runs
    on the event loop when the settled value actually changes. ``push`` must
    be called while an event loop is running.
    """

    def __init__(self, delay: float, on_settle: Callable[[T], None], initial: T):
        self.delay = delay
        self.on_settle = on_settle
        self.settled: T = initial
        self.latest: T = initial
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def push(self, value: T) -> None:
        self.latest = value
        if self._handle is not None:
            self._handle.cancel()
        self._handle = asyncio.get_running_loop().call_later(self.delay, self._fire)

    def flush(self) -> None:
        """Settle the pending value immediately."""
        if self._handle is None:
            return
        self._handle.cancel()
        self._fire()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self.latest = self.settled

    def _fire(self) -> None:
        self._handle = None
        if self.latest == self.settled:
            return
        self.settled = self.latest
        self.on_settle(self.settled)
