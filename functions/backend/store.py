"""
Document store abstraction over Firestore and an in-memory test implementation.

Every db_init operation receives a DocumentStore handle explicitly; nothing in
this module holds process-wide state.
"""

from __future__ import annotations

import threading
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Protocol, TypeVar

from firebase_admin import firestore
from google.api_core import exceptions
from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from google.cloud.firestore_v1.base_query import FieldFilter

from shared.constants import MAX_BATCH_WRITES
from shared.errors import NotFoundError, TransactionConflictError


T = TypeVar("T")


class StoreTransaction(Protocol):
    """Reads and buffered writes belonging to one optimistic transaction."""

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        ...

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        ...

    def add(self, collection: str, data: dict) -> str:
        ...


class DocumentStore(Protocol):
    """Interface for document access."""

    def run_transaction(self, callback: Callable[[StoreTransaction], T]) -> T:
        ...

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def set(
        self, collection: str, doc_id: str, data: dict, *, merge: bool = False
    ) -> None:
        ...

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        ...

    def add(self, collection: str, data: dict) -> str:
        ...

    def find_before(self, collection: str, field: str, cutoff: Any) -> list[str]:
        ...

    def delete_batch(self, collection: str, doc_ids: list[str]) -> None:
        ...


class FirestoreTransaction:
    def __init__(self, client, transaction):
        self.client = client
        self.transaction = transaction

    def _ref(self, collection: str, doc_id: str | None = None):
        return self.client.collection(collection).document(doc_id)

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        snapshot = self._ref(collection, doc_id).get(transaction=self.transaction)
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        self.transaction.set(self._ref(collection, doc_id), data)

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        self.transaction.update(self._ref(collection, doc_id), data)

    def add(self, collection: str, data: dict) -> str:
        doc_ref = self._ref(collection)
        self.transaction.set(doc_ref, data)
        return doc_ref.id


class FirestoreDocumentStore:
    """
    Firestore-backed implementation.

    Transactions are single-attempt: a commit that loses a conflict surfaces as
    TransactionConflictError and callers decide whether to retry.
    """

    def __init__(self, client):
        self.client = client

    def run_transaction(self, callback: Callable[[StoreTransaction], T]) -> T:
        transaction = self.client.transaction(max_attempts=1)

        @firestore.transactional
        def _run(transaction):
            return callback(FirestoreTransaction(self.client, transaction))

        try:
            return _run(transaction)
        except exceptions.Aborted as e:
            raise TransactionConflictError(f"Transaction aborted: {e}") from e
        except ValueError as e:
            # The client library wraps the final Aborted in a ValueError once
            # max_attempts is used up.
            if isinstance(e.__cause__, exceptions.Aborted):
                raise TransactionConflictError(f"Transaction aborted: {e}") from e
            raise

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        snapshot = self.client.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    def set(
        self, collection: str, doc_id: str, data: dict, *, merge: bool = False
    ) -> None:
        self.client.collection(collection).document(doc_id).set(data, merge=merge)

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        try:
            self.client.collection(collection).document(doc_id).update(data)
        except exceptions.NotFound as e:
            raise NotFoundError(f"{collection}/{doc_id} does not exist") from e

    def add(self, collection: str, data: dict) -> str:
        _, doc_ref = self.client.collection(collection).add(data)
        return doc_ref.id

    def find_before(self, collection: str, field: str, cutoff: Any) -> list[str]:
        query = self.client.collection(collection).where(
            filter=FieldFilter(field, "<", cutoff)
        )
        return [snapshot.id for snapshot in query.stream()]

    def delete_batch(self, collection: str, doc_ids: list[str]) -> None:
        collection_ref = self.client.collection(collection)
        for start in range(0, len(doc_ids), MAX_BATCH_WRITES):
            batch = self.client.batch()
            for doc_id in doc_ids[start : start + MAX_BATCH_WRITES]:
                batch.delete(collection_ref.document(doc_id))
            batch.commit()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _copy_document(value: Any) -> Any:
    # Copies containers only so sentinels such as SERVER_TIMESTAMP keep their
    # identity.
    if isinstance(value, dict):
        return {key: _copy_document(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_copy_document(item) for item in value]
    return value


class InMemoryTransaction:
    def __init__(self, store: "InMemoryDocumentStore"):
        self.store = store
        self.read_versions: Dict[tuple[str, str], int] = {}
        self.writes: list[tuple[str, str, str, dict]] = []

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        if self.writes:
            raise ValueError(
                "Transactions require all reads to be executed before all writes."
            )
        data, version = self.store._read(collection, doc_id)
        self.read_versions.setdefault((collection, doc_id), version)
        return data

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        self.writes.append(("set", collection, doc_id, _copy_document(data)))

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        self.writes.append(("update", collection, doc_id, _copy_document(data)))

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        self.set(collection, doc_id, data)
        return doc_id


class InMemoryDocumentStore:
    """
    Thread-safe in-memory store for development and tests.

    Mirrors Firestore's optimistic transactions: reads record the version of
    each document, writes are buffered, and commit fails with
    TransactionConflictError if any document read has changed since.
    SERVER_TIMESTAMP values are resolved from `clock` when written.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self.clock = clock or _utc_now
        self.collections: Dict[str, Dict[str, dict]] = defaultdict(dict)
        self._versions: Dict[tuple[str, str], int] = defaultdict(int)
        self._lock = threading.Lock()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.collections.clear()
            self._versions.clear()

    def documents(self, collection: str) -> Dict[str, dict]:
        """Returns a snapshot copy of every document in `collection`."""
        with self._lock:
            return _copy_document(dict(self.collections.get(collection, {})))

    def _resolve(self, value: Any, now: datetime) -> Any:
        if value is SERVER_TIMESTAMP:
            return now
        if isinstance(value, dict):
            return {key: self._resolve(item, now) for key, item in value.items()}
        if isinstance(value, list):
            return [self._resolve(item, now) for item in value]
        return value

    def _read(self, collection: str, doc_id: str) -> tuple[Optional[dict], int]:
        with self._lock:
            data = self.collections.get(collection, {}).get(doc_id)
            return _copy_document(data), self._versions[(collection, doc_id)]

    def _write(
        self, op: str, collection: str, doc_id: str, data: dict, now: datetime
    ) -> None:
        docs = self.collections[collection]
        resolved = self._resolve(data, now)
        if op == "update":
            if doc_id not in docs:
                raise NotFoundError(f"{collection}/{doc_id} does not exist")
            docs[doc_id].update(resolved)
        elif op == "merge" and doc_id in docs:
            docs[doc_id].update(resolved)
        else:
            docs[doc_id] = resolved
        self._versions[(collection, doc_id)] += 1

    def run_transaction(self, callback: Callable[[StoreTransaction], T]) -> T:
        transaction = InMemoryTransaction(self)
        result = callback(transaction)
        with self._lock:
            for (collection, doc_id), version in transaction.read_versions.items():
                if self._versions[(collection, doc_id)] != version:
                    raise TransactionConflictError(
                        f"Transaction aborted: {collection}/{doc_id} changed"
                    )
            for op, collection, doc_id, data in transaction.writes:
                if op == "update" and doc_id not in self.collections[collection]:
                    raise NotFoundError(f"{collection}/{doc_id} does not exist")
            now = self.clock()
            for op, collection, doc_id, data in transaction.writes:
                self._write(op, collection, doc_id, data, now)
        return result

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        data, _ = self._read(collection, doc_id)
        return data

    def set(
        self, collection: str, doc_id: str, data: dict, *, merge: bool = False
    ) -> None:
        with self._lock:
            self._write(
                "merge" if merge else "set",
                collection,
                doc_id,
                _copy_document(data),
                self.clock(),
            )

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        with self._lock:
            self._write("update", collection, doc_id, _copy_document(data), self.clock())

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        self.set(collection, doc_id, data)
        return doc_id

    def find_before(self, collection: str, field: str, cutoff: Any) -> list[str]:
        with self._lock:
            return [
                doc_id
                for doc_id, data in self.collections.get(collection, {}).items()
                if data.get(field) is not None and data[field] < cutoff
            ]

    def delete_batch(self, collection: str, doc_ids: list[str]) -> None:
        with self._lock:
            docs = self.collections[collection]
            for doc_id in doc_ids:
                docs.pop(doc_id, None)
                self._versions[(collection, doc_id)] += 1
