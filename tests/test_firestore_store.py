"""Tests for the Firestore binding of the vote record, against stub clients."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
from google.cloud import firestore

from overdose_dashboard import firestore_store
from overdose_dashboard.config import FIREBASE_ENV, load_firebase_settings
from overdose_dashboard.firestore_store import FirestoreVoteStore, shared_vote_store
from overdose_dashboard.votes import AGAINST, FOR, VoteState, VoteTally


class StubSnapshot:
    def __init__(self, data: Optional[Dict[str, Any]]) -> None:
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return dict(self._data) if self._data is not None else None


class StubWatch:
    def __init__(self) -> None:
        self.unsubscribed = False

    def unsubscribe(self) -> None:
        self.unsubscribed = True


class StubDocumentRef:
    """Stand-in for ``DocumentReference`` holding one document in memory."""

    def __init__(self, path: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.path = path
        self.data = data
        self.callback = None
        self.watch = StubWatch()
        self.reads: List[Any] = []

    def get(self, transaction=None) -> StubSnapshot:
        self.reads.append(transaction)
        return StubSnapshot(self.data)

    def on_snapshot(self, callback) -> StubWatch:
        self.callback = callback
        return self.watch


class StubTransaction:
    def __init__(self, ref: StubDocumentRef) -> None:
        self.ref = ref
        self.writes: List[tuple] = []

    def set(self, ref, fields, merge=False) -> None:
        self.writes.append((ref, dict(fields), merge))
        if merge:
            ref.data = {**(ref.data or {}), **fields}
        else:
            ref.data = dict(fields)


class StubCollection:
    def __init__(self, client: "StubClient", name: str) -> None:
        self.client = client
        self.name = name

    def document(self, name: str) -> StubDocumentRef:
        self.client.ref = StubDocumentRef(f"{self.name}/{name}", self.client.initial)
        return self.client.ref


class StubClient:
    """Minimal stand-in for ``firestore.Client``."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self.initial = initial
        self.ref: Optional[StubDocumentRef] = None
        self.transactions: List[StubTransaction] = []

    def collection(self, name: str) -> StubCollection:
        return StubCollection(self, name)

    def transaction(self) -> StubTransaction:
        txn = StubTransaction(self.ref)
        self.transactions.append(txn)
        return txn


@pytest.fixture
def plain_transactional(monkeypatch: pytest.MonkeyPatch) -> None:
    # The real decorator drives begin/commit/retry against the backend.
    monkeypatch.setattr(firestore, "transactional", lambda fn: fn)


def test_store_targets_vote_document() -> None:
    client = StubClient()
    FirestoreVoteStore(client)
    assert client.ref.path == "votes/position"


def test_watch_decodes_snapshots() -> None:
    client = StubClient()
    store = FirestoreVoteStore(client)
    seen: List[Optional[Dict[str, Any]]] = []
    errors: List[Exception] = []

    unsubscribe = store.watch(seen.append, errors.append)
    callback = client.ref.callback

    callback([], [], None)
    callback([StubSnapshot(None)], [], None)
    callback([StubSnapshot({"forCount": 2, "againstCount": 1})], [], None)

    assert seen == [None, None, {"forCount": 2, "againstCount": 1}]
    assert errors == []

    unsubscribe()
    assert client.ref.watch.unsubscribed


def test_watch_reports_decode_failures() -> None:
    class BrokenSnapshot(StubSnapshot):
        def to_dict(self):
            raise ValueError("corrupt document")

    client = StubClient()
    store = FirestoreVoteStore(client)
    seen: List[Any] = []
    errors: List[Exception] = []
    store.watch(seen.append, errors.append)

    client.ref.callback([BrokenSnapshot({"forCount": 1})], [], None)

    assert seen == []
    assert [str(e) for e in errors] == ["corrupt document"]


def test_transaction_creates_missing_record(plain_transactional: None) -> None:
    client = StubClient()
    store = FirestoreVoteStore(client)

    fields = store.run_transaction(
        lambda current, now: {"forCount": 1, "createdAt": now, "seen": current}
    )

    txn = client.transactions[0]
    assert client.ref.reads == [txn]
    assert txn.writes == [(client.ref, fields, True)]
    assert fields["seen"] is None
    assert fields["createdAt"] is firestore.SERVER_TIMESTAMP


def test_vote_merges_into_existing_record(plain_transactional: None) -> None:
    created = object()
    client = StubClient({"forCount": 3, "againstCount": 1, "createdAt": created})
    tally = VoteTally(FirestoreVoteStore(client))

    tally.cast_vote(FOR)
    tally.cast_vote(AGAINST)

    doc = client.ref.data
    assert (doc["forCount"], doc["againstCount"]) == (4, 2)
    assert doc["createdAt"] is created
    assert doc["updatedAt"] is firestore.SERVER_TIMESTAMP
    assert all(merge for txn in client.transactions for _, _, merge in txn.writes)


def test_tally_follows_watch() -> None:
    client = StubClient()
    tally = VoteTally(FirestoreVoteStore(client))
    subscription = tally.subscribe()
    assert tally.state is VoteState.LOADING

    client.ref.callback([StubSnapshot({"forCount": 5, "againstCount": 5})], [], None)
    assert tally.state is VoteState.READY
    assert tally.counter.total == 10

    subscription.cancel()
    assert client.ref.watch.unsubscribed


def test_from_settings_without_configuration() -> None:
    settings = load_firebase_settings({})
    assert FirestoreVoteStore.from_settings(settings) is None


def test_shared_store_disabled_without_environment(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    for var in FIREBASE_ENV.values():
        monkeypatch.delenv(var, raising=False)
    firestore_store.shared_vote_store.cache_clear()
    try:
        assert shared_vote_store() is None
        assert VoteTally(shared_vote_store()).state is VoteState.DISABLED
    finally:
        firestore_store.shared_vote_store.cache_clear()
