"""
SQLAlchemy-backed document store: every collection lives in the ``documents`` table.
"""
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ..errors import ConflictError, NotFoundError
from ..models.models import DocumentRow, utcnow
from .provider import Document, DocumentStore, check_expected


class SQLDocumentStore(DocumentStore):
    def __init__(self, session_factory: sessionmaker) -> None:
        super().__init__()
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    @property
    def engine(self):
        return self._session_factory.kw["bind"]

    @staticmethod
    def _to_doc(row: DocumentRow) -> Document:
        doc = dict(row.data or {})
        doc["id"] = row.id
        return doc

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._session() as db:
            row = db.get(DocumentRow, (collection, doc_id))
            return self._to_doc(row) if row is not None else None

    def list(self, collection: str) -> List[Document]:
        with self._session() as db:
            rows = db.execute(
                select(DocumentRow)
                .where(DocumentRow.collection == collection)
                .order_by(DocumentRow.created_at.asc(), DocumentRow.id.asc())
            ).scalars().all()
            return [self._to_doc(r) for r in rows]

    def _insert(self, collection: str, doc_id: str, data: Document) -> None:
        with self._session() as db:
            db.add(DocumentRow(collection=collection, id=doc_id, data=dict(data), version=1))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise ConflictError(f"{collection}/{doc_id} already exists")

    def _write(self, collection: str, doc_id: str, data: Document) -> None:
        with self._session() as db:
            row = db.get(DocumentRow, (collection, doc_id))
            if row is None:
                db.add(DocumentRow(collection=collection, id=doc_id, data=dict(data), version=1))
                try:
                    db.commit()
                    return
                except IntegrityError:
                    # someone created it in between; fall through to overwrite
                    db.rollback()
                    row = db.get(DocumentRow, (collection, doc_id))
            row.data = dict(data)
            row.version = (row.version or 0) + 1
            row.updated_at = utcnow()
            db.commit()

    def _patch(self, collection: str, doc_id: str, fields: Document, expected: Optional[Document]) -> Document:
        with self._session() as db:
            row = db.get(DocumentRow, (collection, doc_id))
            if row is None:
                raise NotFoundError(collection, doc_id)
            check_expected(collection, self._to_doc(row), expected)
            data = {**(row.data or {}), **fields}
            result = db.execute(
                update(DocumentRow)
                .where(
                    DocumentRow.collection == collection,
                    DocumentRow.id == doc_id,
                    DocumentRow.version == row.version,
                )
                .values(data=data, version=row.version + 1, updated_at=utcnow())
            )
            if result.rowcount != 1:
                db.rollback()
                raise ConflictError(f"{collection}/{doc_id} was modified concurrently")
            db.commit()
            data["id"] = doc_id
            return data

    def _remove(self, collection: str, doc_id: str) -> bool:
        with self._session() as db:
            result = db.execute(
                delete(DocumentRow).where(DocumentRow.collection == collection, DocumentRow.id == doc_id)
            )
            db.commit()
            return result.rowcount > 0

    def _remove_all(self, collection: str) -> int:
        with self._session() as db:
            result = db.execute(delete(DocumentRow).where(DocumentRow.collection == collection))
            db.commit()
            return result.rowcount or 0
