"""
Dependency wiring for the Cloud Functions.

Only the HTTP layer calls into this module; db_init operations always receive
their store as an argument.
"""

from __future__ import annotations

from firebase_admin import firestore

from backend.config import get_settings
from backend.store import DocumentStore, FirestoreDocumentStore, InMemoryDocumentStore

_document_store: DocumentStore | None = None


def get_document_store() -> DocumentStore:
    """
    Return a per-process document store, built on first use.
    """
    global _document_store
    if _document_store:
        return _document_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _document_store = InMemoryDocumentStore()
    else:
        _document_store = FirestoreDocumentStore(firestore.client())
    return _document_store


def reset_document_store() -> None:
    global _document_store
    _document_store = None
