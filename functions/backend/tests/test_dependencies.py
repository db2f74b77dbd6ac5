import unittest
from unittest.mock import patch

from backend import dependencies
from backend.config import Settings
from backend.store import FirestoreDocumentStore, InMemoryDocumentStore


class DocumentStoreWiringTests(unittest.TestCase):
    def setUp(self):
        dependencies.reset_document_store()
        self.addCleanup(dependencies.reset_document_store)

    @patch("backend.dependencies.get_settings")
    def test_in_memory_store_is_reused(self, mock_settings):
        mock_settings.return_value = Settings(use_in_memory_backends=True, _env_file=None)

        store = dependencies.get_document_store()

        self.assertIsInstance(store, InMemoryDocumentStore)
        self.assertIs(dependencies.get_document_store(), store)

    @patch("backend.dependencies.firestore")
    @patch("backend.dependencies.get_settings")
    def test_firestore_store_by_default(self, mock_settings, mock_firestore):
        mock_settings.return_value = Settings(use_in_memory_backends=False, _env_file=None)

        store = dependencies.get_document_store()

        self.assertIsInstance(store, FirestoreDocumentStore)
        self.assertIs(store.client, mock_firestore.client.return_value)


if __name__ == "__main__":
    unittest.main()
