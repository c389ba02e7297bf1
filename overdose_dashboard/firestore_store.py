"""Cloud Firestore binding for the vote record."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Callable, Optional

from google.cloud import firestore

from .config import (
    VOTE_COLLECTION,
    VOTE_DOCUMENT,
    FirebaseSettings,
    load_firebase_settings,
)
from .vote_store import Document, ErrorFn, SnapshotFn, UpdateFn, VoteStore

logger = logging.getLogger(__name__)


class FirestoreVoteStore(VoteStore):
    """Vote store backed by a single Firestore document.

    The read-modify-write runs inside a Firestore transaction, which retries
    on contention, so concurrent voters never overwrite each other.
    """

    def __init__(
        self,
        client: firestore.Client,
        collection: str = VOTE_COLLECTION,
        document: str = VOTE_DOCUMENT,
    ) -> None:
        self._client = client
        self._ref = client.collection(collection).document(document)

    @classmethod
    def from_settings(cls, settings: FirebaseSettings) -> Optional["FirestoreVoteStore"]:
        """Build a store, or return ``None`` when required settings are missing.

        Credentials are resolved by the Google client library (application
        default credentials).
        """
        if not settings.configured:
            logger.info(
                "Voting disabled; missing settings: %s", ", ".join(settings.missing)
            )
            return None
        return cls(firestore.Client(project=settings.project_id))

    def watch(self, on_snapshot: SnapshotFn, on_error: ErrorFn) -> Callable[[], None]:
        def _callback(docs, changes, read_time) -> None:
            try:
                snap = docs[0] if docs else None
                on_snapshot(snap.to_dict() if snap is not None and snap.exists else None)
            except Exception as exc:
                on_error(exc)

        watch = self._ref.on_snapshot(_callback)
        return watch.unsubscribe

    def run_transaction(self, update: UpdateFn) -> Document:
        ref = self._ref

        @firestore.transactional
        def _apply(transaction: firestore.Transaction) -> Document:
            snap = ref.get(transaction=transaction)
            current = snap.to_dict() if snap.exists else None
            fields = update(current, firestore.SERVER_TIMESTAMP)
            transaction.set(ref, fields, merge=True)
            return fields

        return _apply(self._client.transaction())


@lru_cache(maxsize=1)
def shared_vote_store() -> Optional[VoteStore]:
    """Process-wide store built from the environment (``None`` when unconfigured)."""
    return FirestoreVoteStore.from_settings(load_firebase_settings())
