import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from google.api_core import exceptions
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.store import FirestoreDocumentStore, InMemoryDocumentStore
from shared.errors import NotFoundError, TransactionConflictError

FIXED_NOW = datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)


class InMemoryDocumentStoreTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore(clock=lambda: FIXED_NOW)

    def test_server_timestamp_resolved_on_write(self):
        self.store.set("products", "p1", {"inventory": 1, "updatedAt": SERVER_TIMESTAMP})
        self.assertEqual(
            self.store.get("products", "p1"), {"inventory": 1, "updatedAt": FIXED_NOW}
        )

    def test_reset_clears_documents_and_versions(self):
        self.store.set("carts", "u1", {"items": []})
        self.store.reset()

        self.assertIsNone(self.store.get("carts", "u1"))
        self.assertEqual(self.store.documents("carts"), {})

        # A transaction reading the document after reset commits cleanly.
        def write(transaction):
            transaction.get("carts", "u1")
            transaction.set("carts", "u1", {"items": []})

        self.store.run_transaction(write)
        self.assertEqual(self.store.get("carts", "u1"), {"items": []})

    def test_get_returns_copy(self):
        self.store.set("carts", "u1", {"items": [{"productId": "p1"}]})
        doc = self.store.get("carts", "u1")
        doc["items"].append({"productId": "p2"})
        self.assertEqual(len(self.store.get("carts", "u1")["items"]), 1)

    def test_update_missing_document_raises(self):
        with self.assertRaises(NotFoundError):
            self.store.update("users", "nobody", {"role": "admin"})

    def test_merge_set_keeps_other_fields(self):
        self.store.set("users", "u1", {"email": "a@b.co", "role": "customer"})
        self.store.set("users", "u1", {"role": "admin"}, merge=True)
        self.assertEqual(
            self.store.get("users", "u1"), {"email": "a@b.co", "role": "admin"}
        )

    def test_transaction_commits_buffered_writes(self):
        self.store.set("counters", "c", {"count": 1})

        def _increment(transaction):
            doc = transaction.get("counters", "c")
            transaction.set("counters", "c", {"count": doc["count"] + 1})
            return transaction.add("logs", {"from": doc["count"]})

        log_id = self.store.run_transaction(_increment)

        self.assertEqual(self.store.get("counters", "c"), {"count": 2})
        self.assertEqual(self.store.get("logs", log_id), {"from": 1})

    def test_transaction_exception_discards_writes(self):
        def _fail(transaction):
            transaction.set("counters", "c", {"count": 99})
            raise RuntimeError("boom")

        with self.assertRaises(RuntimeError):
            self.store.run_transaction(_fail)
        self.assertIsNone(self.store.get("counters", "c"))

    def test_concurrent_write_causes_conflict(self):
        self.store.set("counters", "c", {"count": 1})

        def _increment_with_interference(transaction):
            doc = transaction.get("counters", "c")
            # Another writer commits after our read.
            self.store.set("counters", "c", {"count": 10})
            transaction.set("counters", "c", {"count": doc["count"] + 1})

        with self.assertRaises(TransactionConflictError):
            self.store.run_transaction(_increment_with_interference)
        self.assertEqual(self.store.get("counters", "c"), {"count": 10})

    def test_conflict_detected_for_document_created_after_read(self):
        def _create(transaction):
            self.assertIsNone(transaction.get("counters", "c"))
            self.store.set("counters", "c", {"count": 5})
            transaction.set("counters", "c", {"count": 1})

        with self.assertRaises(TransactionConflictError):
            self.store.run_transaction(_create)

    def test_read_after_write_rejected(self):
        def _read_after_write(transaction):
            transaction.set("counters", "c", {"count": 1})
            transaction.get("counters", "c")

        with self.assertRaises(ValueError):
            self.store.run_transaction(_read_after_write)

    def test_find_before_and_delete_batch(self):
        old = datetime(2025, 1, 1, tzinfo=timezone.utc)
        self.store.set("carts", "old", {"updatedAt": old})
        self.store.set("carts", "new", {"updatedAt": FIXED_NOW})
        self.store.set("carts", "no_timestamp", {"items": []})

        expired = self.store.find_before("carts", "updatedAt", FIXED_NOW)
        self.assertEqual(expired, ["old"])

        self.store.delete_batch("carts", expired)
        self.assertEqual(
            sorted(self.store.documents("carts")), ["new", "no_timestamp"]
        )


class FirestoreDocumentStoreTests(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.store = FirestoreDocumentStore(self.client)

    @patch("backend.store.firestore")
    def test_run_transaction_is_single_attempt(self, mock_firestore):
        mock_firestore.transactional.side_effect = lambda fn: fn
        snapshot = MagicMock()
        snapshot.exists = True
        snapshot.to_dict.return_value = {"inventory": 3}
        product_ref = self.client.collection.return_value.document.return_value
        product_ref.get.return_value = snapshot

        def _read(transaction):
            return transaction.get("products", "p1")

        result = self.store.run_transaction(_read)

        self.assertEqual(result, {"inventory": 3})
        self.client.transaction.assert_called_once_with(max_attempts=1)
        product_ref.get.assert_called_once_with(
            transaction=self.client.transaction.return_value
        )

    @patch("backend.store.firestore")
    def test_aborted_maps_to_conflict(self, mock_firestore):
        mock_firestore.transactional.side_effect = lambda fn: fn

        def _contended(transaction):
            raise exceptions.Aborted("Too much contention on these documents.")

        with self.assertRaises(TransactionConflictError):
            self.store.run_transaction(_contended)

    @patch("backend.store.firestore")
    def test_exhausted_attempts_map_to_conflict(self, mock_firestore):
        mock_firestore.transactional.side_effect = lambda fn: fn

        def _exhausted(transaction):
            try:
                raise exceptions.Aborted("contention")
            except exceptions.Aborted as e:
                raise ValueError("Failed to commit transaction in 1 attempts.") from e

        with self.assertRaises(TransactionConflictError):
            self.store.run_transaction(_exhausted)

    @patch("backend.store.firestore")
    def test_other_value_errors_propagate(self, mock_firestore):
        mock_firestore.transactional.side_effect = lambda fn: fn

        def _bad(transaction):
            raise ValueError("bad field path")

        with self.assertRaises(ValueError):
            self.store.run_transaction(_bad)

    def test_add_returns_new_document_id(self):
        doc_ref = MagicMock()
        doc_ref.id = "abc123"
        self.client.collection.return_value.add.return_value = (None, doc_ref)

        self.assertEqual(self.store.add("analytics", {"eventType": "page_view"}), "abc123")
        self.client.collection.assert_called_once_with("analytics")

    def test_update_missing_document_raises_not_found(self):
        doc_ref = self.client.collection.return_value.document.return_value
        doc_ref.update.side_effect = exceptions.NotFound("No document to update")

        with self.assertRaises(NotFoundError):
            self.store.update("users", "u1", {"role": "admin"})

    def test_delete_batch_splits_into_firestore_sized_batches(self):
        doc_ids = [f"cart-{i}" for i in range(501)]

        self.store.delete_batch("carts", doc_ids)

        self.assertEqual(self.client.batch.call_count, 2)
        batch = self.client.batch.return_value
        self.assertEqual(batch.delete.call_count, 501)
        self.assertEqual(batch.commit.call_count, 2)

    def test_find_before_streams_matching_ids(self):
        cutoff = datetime(2025, 1, 1, tzinfo=timezone.utc)
        first, second = MagicMock(), MagicMock()
        first.id, second.id = "a", "b"
        query = self.client.collection.return_value.where.return_value
        query.stream.return_value = iter([first, second])

        self.assertEqual(self.store.find_before("carts", "updatedAt", cutoff), ["a", "b"])
        field_filter = self.client.collection.return_value.where.call_args.kwargs["filter"]
        self.assertEqual(field_filter.field_path, "updatedAt")
        self.assertEqual(field_filter.op_string, "<")
        self.assertEqual(field_filter.value, cutoff)


if __name__ == "__main__":
    unittest.main()
