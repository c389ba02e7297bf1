"""Shared two-way vote tally.

:class:`VoteTally` keeps a client-side copy of the shared counter current
through a live subscription and submits votes as atomic read-modify-write
transactions against a :class:`~overdose_dashboard.vote_store.VoteStore`.

State machine::

    loading -> ready | error
    ready -> submitting -> ready | error
    disabled             (no store; never left)

The displayed counter is only ever replaced by a snapshot from the store,
never by a locally guessed value, so a failed vote leaves the last good
counter in place.
"""

from __future__ import annotations

import logging
import math
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterator, Mapping, Optional

from .errors import TransactionError
from .vote_store import Document, VoteStore

logger = logging.getLogger(__name__)

FOR = "for"
AGAINST = "against"
DIRECTIONS = (FOR, AGAINST)

_CLOSED = object()


class VoteState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    SUBMITTING = "submitting"
    ERROR = "error"
    DISABLED = "disabled"


def _safe_count(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number) or number < 0:
        return 0
    return int(number)


@dataclass(frozen=True)
class VoteCounter:
    """Immutable snapshot of the shared record."""

    for_count: int = 0
    against_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, data: Optional[Mapping[str, Any]]) -> "VoteCounter":
        """Decode a stored document; a missing record reads as zero/zero."""
        if not data:
            return cls()
        created = data.get("createdAt")
        updated = data.get("updatedAt")
        return cls(
            for_count=_safe_count(data.get("forCount", 0)),
            against_count=_safe_count(data.get("againstCount", 0)),
            created_at=created if isinstance(created, datetime) else None,
            updated_at=updated if isinstance(updated, datetime) else None,
        )

    @property
    def total(self) -> int:
        return self.for_count + self.against_count

    @property
    def percent_for(self) -> float:
        return 0.0 if self.total == 0 else self.for_count / self.total * 100

    @property
    def percent_against(self) -> float:
        return 0.0 if self.total == 0 else self.against_count / self.total * 100


def apply_vote(current: Optional[Mapping[str, Any]], direction: str, now: Any) -> Document:
    """Compute the fields to merge for one vote.

    Parameters
    ----------
    current : Optional[Mapping[str, Any]]
        The record as read inside the transaction, ``None`` when absent.
    direction : str
        ``"for"`` or ``"against"``.
    now : Any
        Timestamp token from the store (a ``datetime`` or a server-side
        timestamp sentinel).

    Returns
    -------
    Document
        ``forCount``, ``againstCount``, ``createdAt`` and ``updatedAt``.
        Only the chosen count moves; ``createdAt`` is kept when the record
        already has one.
    """
    if direction not in DIRECTIONS:
        raise ValueError(f"Unknown vote direction: {direction!r}")

    data = current or {}
    for_count = _safe_count(data.get("forCount", 0))
    against_count = _safe_count(data.get("againstCount", 0))

    created_at = data.get("createdAt") if current is not None else None
    return {
        "forCount": for_count + 1 if direction == FOR else for_count,
        "againstCount": against_count + 1 if direction == AGAINST else against_count,
        "createdAt": created_at if created_at is not None else now,
        "updatedAt": now,
    }


class Subscription:
    """Cancellable stream of :class:`VoteCounter` snapshots.

    Iterate to block on new snapshots, or pass a ``listener`` to
    :meth:`VoteTally.subscribe` to be called on the store's thread instead;
    a listener subscription queues nothing.  After :meth:`cancel` the watch
    is released and nothing more is delivered.
    """

    def __init__(self, listener: Optional[Callable[[VoteCounter], None]] = None) -> None:
        self._listener = listener
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._cancelled = threading.Event()
        self._release: Optional[Callable[[], None]] = None
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _bind(self, release: Callable[[], None]) -> None:
        with self._lock:
            if not self._cancelled.is_set():
                self._release = release
                return
        release()

    def _push(self, counter: VoteCounter) -> None:
        if self._cancelled.is_set():
            return
        if self._listener is None:
            self._queue.put(counter)
        else:
            self._listener(counter)

    def get(self, timeout: Optional[float] = None) -> Optional[VoteCounter]:
        """Wait for the next snapshot.

        Returns ``None`` once the subscription is cancelled and raises
        ``queue.Empty`` on timeout.
        """
        if self._cancelled.is_set():
            return None
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED or self._cancelled.is_set():
            return None
        return item

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()
            release, self._release = self._release, None
        if release is not None:
            release()
        self._queue.put(_CLOSED)

    def __iter__(self) -> Iterator[VoteCounter]:
        while True:
            item = self._queue.get()
            if item is _CLOSED or self._cancelled.is_set():
                return
            yield item

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.cancel()


class VoteTally:
    """Client-side view of the shared vote counter.

    Pass ``store=None`` when the hosted store is not configured; the tally
    then stays ``disabled`` for its whole lifetime.
    """

    def __init__(self, store: Optional[VoteStore]) -> None:
        self._store = store
        self._lock = threading.Lock()
        self._base_state = VoteState.DISABLED if store is None else VoteState.LOADING
        self._in_flight = 0
        self._error = ""
        self._counter = VoteCounter()

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------

    @property
    def state(self) -> VoteState:
        with self._lock:
            if self._base_state is not VoteState.DISABLED and self._in_flight:
                return VoteState.SUBMITTING
            return self._base_state

    @property
    def error(self) -> str:
        with self._lock:
            return self._error

    @property
    def counter(self) -> VoteCounter:
        with self._lock:
            return self._counter

    @property
    def enabled(self) -> bool:
        return self._store is not None

    # ------------------------------------------------------------------
    # Live subscription
    # ------------------------------------------------------------------

    def subscribe(
        self, listener: Optional[Callable[[VoteCounter], None]] = None
    ) -> Subscription:
        """Watch the shared record; each change re-emits the full counter."""
        subscription = Subscription(listener)
        if self._store is None:
            subscription.cancel()
            return subscription

        def on_snapshot(data: Optional[Document]) -> None:
            if subscription.cancelled:
                return
            counter = VoteCounter.from_document(data)
            with self._lock:
                self._counter = counter
                if self._base_state in (VoteState.LOADING, VoteState.ERROR):
                    self._base_state = VoteState.READY
                    self._error = ""
            subscription._push(counter)

        def on_error(exc: Exception) -> None:
            if subscription.cancelled:
                return
            logger.warning("Vote subscription error: %s", exc)
            with self._lock:
                self._base_state = VoteState.ERROR
                self._error = str(exc) or exc.__class__.__name__

        subscription._bind(self._store.watch(on_snapshot, on_error))
        return subscription

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    def cast_vote(self, direction: str) -> None:
        """Increment ``direction`` by one in a single store transaction.

        Raises
        ------
        ValueError
            If ``direction`` is not ``"for"`` or ``"against"``.
        TransactionError
            If the store is unavailable or the transaction fails.  The tally
            moves to ``error`` and keeps its last subscribed counter.
        """
        if direction not in DIRECTIONS:
            raise ValueError(f"Unknown vote direction: {direction!r}")
        if self._store is None:
            raise TransactionError("Voting isn't configured.")

        with self._lock:
            self._in_flight += 1
            self._error = ""

        try:
            self._store.run_transaction(
                lambda current, now: apply_vote(current, direction, now)
            )
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.warning("Vote %r failed: %s", direction, message)
            with self._lock:
                self._in_flight -= 1
                self._base_state = VoteState.ERROR
                self._error = message
            raise TransactionError(message) from exc

        with self._lock:
            self._in_flight -= 1
            if self._base_state is VoteState.ERROR:
                self._base_state = VoteState.READY
        logger.info("Recorded vote %r", direction)


def log_update_failure(future: Future) -> None:
    """Done-callback for tally updates scheduled onto another thread's loop."""
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Vote tally update failed: %s", exc, exc_info=exc)
