import os
from typing import Optional

from ..config import settings
from .provider import DocumentStore


_store: Optional[DocumentStore] = None


def build_store(backend: Optional[str] = None) -> DocumentStore:
    """Get document store based on configuration"""
    backend = (backend or settings.store_backend).lower()
    if backend == "memory":
        from .memory_provider import MemoryDocumentStore
        return MemoryDocumentStore()
    if backend == "sql":
        from ..db import SessionLocal
        from .sql_provider import SQLDocumentStore
        return SQLDocumentStore(SessionLocal)
    raise ValueError(f"Unknown store backend: {backend}")


def get_store() -> DocumentStore:
    global _store
    if _store is None:
        _store = build_store()
    return _store


def set_store(store: Optional[DocumentStore]) -> None:
    global _store
    _store = store


def init_store(store: DocumentStore) -> None:
    """Create the documents table when the store is SQL-backed."""
    from .sql_provider import SQLDocumentStore

    if not isinstance(store, SQLDocumentStore):
        return
    # Ensure local SQLite directory exists
    if settings.database_url.startswith("sqlite:///./"):
        os.makedirs("var", exist_ok=True)
    if settings.auto_create_db:
        from ..db import Base
        Base.metadata.create_all(bind=store.engine)
