"""
In-process document store for development and tests.
"""
import copy
import threading
from typing import Dict, List, Optional

from ..errors import ConflictError, NotFoundError
from .provider import Document, DocumentStore, check_expected


class MemoryDocumentStore(DocumentStore):
    def __init__(self) -> None:
        super().__init__()
        # collection -> id -> data (without id)
        self._collections: Dict[str, Dict[str, Document]] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _with_id(doc_id: str, data: Document) -> Document:
        out = copy.deepcopy(data)
        out["id"] = doc_id
        return out

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._lock:
            data = self._collections.get(collection, {}).get(doc_id)
            return self._with_id(doc_id, data) if data is not None else None

    def list(self, collection: str) -> List[Document]:
        with self._lock:
            return [self._with_id(k, v) for k, v in self._collections.get(collection, {}).items()]

    def _insert(self, collection: str, doc_id: str, data: Document) -> None:
        with self._lock:
            docs = self._collections.setdefault(collection, {})
            if doc_id in docs:
                raise ConflictError(f"{collection}/{doc_id} already exists")
            docs[doc_id] = copy.deepcopy(data)

    def _write(self, collection: str, doc_id: str, data: Document) -> None:
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    def _patch(self, collection: str, doc_id: str, fields: Document, expected: Optional[Document]) -> Document:
        with self._lock:
            docs = self._collections.get(collection, {})
            if doc_id not in docs:
                raise NotFoundError(collection, doc_id)
            check_expected(collection, self._with_id(doc_id, docs[doc_id]), expected)
            docs[doc_id].update(copy.deepcopy(fields))
            return self._with_id(doc_id, docs[doc_id])

    def _remove(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            return self._collections.get(collection, {}).pop(doc_id, None) is not None

    def _remove_all(self, collection: str) -> int:
        with self._lock:
            removed = self._collections.pop(collection, {})
            return len(removed)
