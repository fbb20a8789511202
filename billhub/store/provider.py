"""
Document store contract.

Documents are plain dicts keyed by ``id`` inside named collections. Every write
publishes the full collection snapshot to the collection's subscribers.
"""
import uuid
from typing import Any, Callable, Dict, List, Optional

from ..errors import ConflictError
from .change_hub import ChangeHub, Listener


Document = Dict[str, Any]


def new_document_id() -> str:
    return uuid.uuid4().hex


def check_expected(collection: str, current: Document, expected: Optional[Dict[str, Any]]) -> None:
    if not expected:
        return
    for field, value in expected.items():
        if current.get(field) != value:
            raise ConflictError(
                f"{collection}/{current.get('id')}: expected {field}={value!r}, found {current.get(field)!r}"
            )


class DocumentStore:
    def __init__(self) -> None:
        self._hub = ChangeHub()

    # -- storage primitives (backend specific) --

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        raise NotImplementedError

    def list(self, collection: str) -> List[Document]:
        raise NotImplementedError

    def _insert(self, collection: str, doc_id: str, data: Document) -> None:
        """Store a new document; raise ConflictError if the id is taken."""
        raise NotImplementedError

    def _write(self, collection: str, doc_id: str, data: Document) -> None:
        raise NotImplementedError

    def _patch(self, collection: str, doc_id: str, fields: Document, expected: Optional[Document]) -> Document:
        """Apply ``fields`` atomically if ``expected`` still holds; raise NotFoundError/ConflictError."""
        raise NotImplementedError

    def _remove(self, collection: str, doc_id: str) -> bool:
        raise NotImplementedError

    def _remove_all(self, collection: str) -> int:
        raise NotImplementedError

    # -- public API --

    def subscribe(self, collection: str, on_change: Listener) -> Callable[[], None]:
        """Register ``on_change`` and deliver the current snapshot right away."""
        unsubscribe = self._hub.add(collection, on_change)
        on_change(self.list(collection))
        return unsubscribe

    def create(self, collection: str, item: Document) -> str:
        """Insert a new document; an existing id is a conflict, use ``upsert`` to overwrite."""
        data = dict(item)
        doc_id = str(data.pop("id", None) or new_document_id())
        self._insert(collection, doc_id, data)
        self._notify(collection)
        return doc_id

    def update(
        self,
        collection: str,
        doc_id: str,
        fields: Document,
        expected: Optional[Document] = None,
    ) -> Document:
        fields = {k: v for k, v in fields.items() if k != "id"}
        updated = self._patch(collection, doc_id, fields, expected)
        self._notify(collection)
        return updated

    def upsert(self, collection: str, doc_id: str, item: Document) -> None:
        data = {k: v for k, v in item.items() if k != "id"}
        self._write(collection, doc_id, data)
        self._notify(collection)

    def delete(self, collection: str, doc_id: str) -> bool:
        removed = self._remove(collection, doc_id)
        if removed:
            self._notify(collection)
        return removed

    def delete_all_in(self, collection: str) -> int:
        count = self._remove_all(collection)
        if count:
            self._notify(collection)
        return count

    def listener_count(self, collection: str) -> int:
        return self._hub.listener_count(collection)

    def _notify(self, collection: str) -> None:
        if self._hub.has_listeners(collection):
            self._hub.publish(collection, self.list(collection))
