"""Backing stores for the shared vote record.

A store offers two primitives: a standing watch that pushes the current
document on every change, and an atomic read-modify-write.  The tally in
``votes.py`` only talks to this interface; ``firestore_store.py`` binds it
to Cloud Firestore and :class:`InMemoryVoteStore` to a process-local lock.
"""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
# Receives the current document (None when absent) and a timestamp token,
# returns the fields to merge into the document.
UpdateFn = Callable[[Optional[Document], Any], Document]
SnapshotFn = Callable[[Optional[Document]], None]
ErrorFn = Callable[[Exception], None]


class VoteStore(ABC):
    @abstractmethod
    def watch(self, on_snapshot: SnapshotFn, on_error: ErrorFn) -> Callable[[], None]:
        """Start watching the record and return a function that stops the watch.

        ``on_snapshot`` is called with the current document right away and
        again after every change.
        """

    @abstractmethod
    def run_transaction(self, update: UpdateFn) -> Document:
        """Apply ``update`` to the record atomically and return the merged fields."""


class InMemoryVoteStore(VoteStore):
    """Process-local store guarded by a single lock.

    Used for tests and for running the dashboard without a hosted database.
    Transactions and listener notification happen under the same lock, so
    every watcher sees writes in commit order.
    """

    def __init__(self, document: Optional[Document] = None) -> None:
        self._document: Optional[Document] = copy.deepcopy(document)
        self._lock = threading.RLock()
        self._listeners: List[Tuple[SnapshotFn, ErrorFn]] = []

    @staticmethod
    def now() -> datetime:
        return datetime.now(timezone.utc)

    @property
    def document(self) -> Optional[Document]:
        with self._lock:
            return copy.deepcopy(self._document)

    def watch(self, on_snapshot: SnapshotFn, on_error: ErrorFn) -> Callable[[], None]:
        entry = (on_snapshot, on_error)
        with self._lock:
            self._listeners.append(entry)
            on_snapshot(copy.deepcopy(self._document))

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return unsubscribe

    def run_transaction(self, update: UpdateFn) -> Document:
        with self._lock:
            current = copy.deepcopy(self._document)
            fields = update(current, self.now())
            merged = dict(self._document or {})
            merged.update(fields)
            self._document = merged
            self._notify()
            return dict(fields)

    def _notify(self) -> None:
        snapshot = self._document
        for on_snapshot, on_error in list(self._listeners):
            try:
                on_snapshot(copy.deepcopy(snapshot))
            except Exception as exc:  # commit already applied
                logger.warning("Vote listener failed: %s", exc)
                on_error(exc)
