import threading
from collections.abc import Callable, Iterable
from datetime import datetime
from enum import Enum
from time import monotonic
from typing import Generic

from finvault_engine.logger import get_logger

from .base import EventT, ProfileStrategy, ProfileT
from .event_store import EventStore

logger = get_logger(__name__)


class ProfileState(str, Enum):
    FRESH = "fresh"
    STALE = "stale"


class ScoringPipeline(Generic[EventT, ProfileT]):
    """
    Event store plus a lazily rebuilt profile.

    The profile goes stale whenever an event is added, and after `ttl_seconds`
    even without new events (`ttl_seconds <= 0` disables the time limit).
    `profile()` rebuilds only when stale; `refresh()` always rebuilds.
    """

    def __init__(
        self,
        store: EventStore[EventT],
        strategy: ProfileStrategy[EventT, ProfileT],
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = monotonic,
        wall_clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.strategy = strategy
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._wall_clock = wall_clock
        self.lock = threading.RLock()
        self._profile: ProfileT | None = None
        self._stale = True
        self._expires_at = 0.0
        self.last_refreshed: datetime | None = None

    @property
    def state(self) -> ProfileState:
        with self.lock:
            if self._stale or self._profile is None:
                return ProfileState.STALE
            if self.ttl_seconds > 0 and self._clock() >= self._expires_at:
                return ProfileState.STALE
            return ProfileState.FRESH

    def invalidate(self) -> None:
        with self.lock:
            self._stale = True

    def add_event(self, event: EventT) -> None:
        self.add_events([event])

    def add_events(self, events: Iterable[EventT]) -> None:
        with self.lock:
            self.store.extend(events)
            self.invalidate()

    def events(self) -> list[EventT]:
        return self.store.get_all()

    def refresh(self) -> ProfileT:
        with self.lock:
            events = self.store.get_all()
            profile = self.strategy.build(events)
            self._profile = profile
            self._stale = False
            self._expires_at = self._clock() + self.ttl_seconds
            self.last_refreshed = self._wall_clock()
            logger.debug(
                "[PROFILE] %s rebuilt from %d events",
                type(self.strategy).__name__,
                len(events),
            )
            return profile

    def profile(self) -> ProfileT:
        with self.lock:
            if self.state is ProfileState.STALE or self._profile is None:
                return self.refresh()
            return self._profile

    def reset(self) -> None:
        with self.lock:
            self.store.clear()
            self.invalidate()
