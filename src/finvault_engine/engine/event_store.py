import math
import threading
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Generic

from pydantic import ValidationError as ModelValidationError

from finvault_engine.domain.exceptions import PersistenceError, ValidationError
from finvault_engine.logger import get_logger
from finvault_engine.models import Event
from finvault_engine.storage.base import StorageBackend

from .base import EventT

logger = get_logger(__name__)

SCHEMA_VERSION = 1
DEFAULT_HISTORY_CAP = 500
# Keeps sums over a full history far from float overflow.
DEFAULT_MAX_AMOUNT = 1_000_000_000.0


def validate_event(event: Any, max_amount: float = DEFAULT_MAX_AMOUNT) -> None:
    if not isinstance(event, Event):
        raise ValidationError(f"Expected an event, got {type(event).__name__}")
    amount = event.amount
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise ValidationError(f"Amount must be a number, got {amount!r}")
    if not math.isfinite(amount) or amount <= 0:
        raise ValidationError(f"Amount must be a finite positive number, got {amount!r}")
    if amount > max_amount:
        raise ValidationError(f"Amount {amount!r} exceeds the maximum of {max_amount!r}")
    if event.timestamp is None:
        raise ValidationError("Event timestamp is required")


class EventStore(Generic[EventT]):
    """
    Bounded, insertion-ordered event history persisted under one storage key.

    `append` writes in the background: the caller never waits for storage and
    a failed write is logged, not raised. Only the most recent `cap` events
    are kept, in memory and on disk.
    """

    def __init__(
        self,
        storage: StorageBackend,
        key: str,
        event_type: type[EventT],
        cap: int = DEFAULT_HISTORY_CAP,
        background_writes: bool = True,
        max_amount: float = DEFAULT_MAX_AMOUNT,
    ):
        if cap < 1:
            raise ValueError("cap must be at least 1")
        self.storage = storage
        self.key = key
        self.event_type = event_type
        self.cap = cap
        self.max_amount = max_amount
        self._events: list[EventT] = []
        self._lock = threading.RLock()
        self._executor: ThreadPoolExecutor | None = None
        if background_writes:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="finvault-store")
        self._pending: Future | None = None
        self.load()

    def validate(self, event: Any) -> None:
        validate_event(event, self.max_amount)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def get_all(self) -> list[EventT]:
        with self._lock:
            return list(self._events)

    def append(self, event: EventT) -> None:
        self.extend([event])

    def extend(self, events: Iterable[EventT]) -> None:
        batch = list(events)
        for event in batch:
            self.validate(event)
            if not isinstance(event, self.event_type):
                raise ValidationError(
                    f"Store '{self.key}' holds {self.event_type.__name__}, got {type(event).__name__}"
                )
        if not batch:
            return

        with self._lock:
            self._events.extend(batch)
            self._apply_cap()
            payload = self._payload()
            self._schedule_write(payload)

    def load(self) -> None:
        with self._lock:
            try:
                raw = self.storage.read(self.key)
            except PersistenceError as exc:
                logger.error("[STORE] Could not load '%s', starting empty: %s", self.key, exc)
                self._events = []
                return
            self._events = self._decode(raw)
            self._apply_cap()
            logger.info("[STORE] Loaded %d events from '%s'", len(self._events), self.key)

    def save(self) -> bool:
        """Persist synchronously. Returns False (and logs) when storage fails."""
        with self._lock:
            self._apply_cap()
            payload = self._payload()
            self.flush()
            try:
                self._write(payload)
            except PersistenceError as exc:
                logger.error("[STORE] Could not save '%s': %s", self.key, exc)
                return False
            return True

    def clear(self) -> None:
        with self._lock:
            self._events = []
            self.flush()
            try:
                self.storage.delete(self.key)
            except PersistenceError as exc:
                logger.error("[STORE] Could not delete '%s': %s", self.key, exc)
            logger.info("[STORE] Cleared '%s'", self.key)

    def flush(self, timeout: float | None = None) -> None:
        """Wait for the last scheduled background write."""
        pending = self._pending
        if pending is not None:
            wait([pending], timeout=timeout)

    def close(self) -> None:
        self.flush()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _apply_cap(self) -> None:
        if len(self._events) > self.cap:
            self._events = self._events[-self.cap:]

    def _payload(self) -> dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "events": [event.model_dump(mode="json") for event in self._events],
        }

    def _decode(self, raw: Any) -> list[EventT]:
        if raw is None:
            return []
        if isinstance(raw, list):
            # Untagged layout written before versioning; upgraded on next save.
            records = raw
        elif isinstance(raw, dict) and raw.get("schema_version") == SCHEMA_VERSION:
            records = raw.get("events") or []
        else:
            version = raw.get("schema_version") if isinstance(raw, dict) else None
            logger.warning(
                "[STORE] Unsupported payload for '%s' (schema_version=%s), ignoring it.",
                self.key,
                version,
            )
            return []

        events: list[EventT] = []
        skipped = 0
        for record in records:
            try:
                event = self.event_type.model_validate(record)
                self.validate(event)
            except (ModelValidationError, ValidationError):
                skipped += 1
                continue
            events.append(event)
        if skipped:
            logger.warning("[STORE] Skipped %d unreadable events in '%s'", skipped, self.key)
        return events

    def _write(self, payload: dict[str, Any]) -> None:
        self.storage.write(self.key, payload)

    def _schedule_write(self, payload: dict[str, Any]) -> None:
        if self._executor is None:
            try:
                self._write(payload)
            except PersistenceError as exc:
                logger.error("[STORE] Background save of '%s' failed: %s", self.key, exc)
            return

        future = self._executor.submit(self._write, payload)
        future.add_done_callback(self._log_write_failure)
        self._pending = future

    def _log_write_failure(self, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("[STORE] Background save of '%s' failed: %s", self.key, exc)
