"""
Document Store

Collection/key document access used by the coaching pipeline. Documents are
plain JSON objects addressed by (collection, doc_id), with equality queries on
top-level fields and optional ordering.

The SQL implementation keeps every collection in the single ``document``
table (see models.Document).
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from models import Document

logger = logging.getLogger(__name__)


@dataclass
class StoredDocument:
    """A document read back from the store."""
    id: str
    data: Dict[str, Any] = field(default_factory=dict)


class DocumentStore(ABC):
    """Minimal document-database contract the pipeline depends on."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return the document's data, or None if it does not exist."""

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Create or fully replace the document at ``doc_id``."""

    @abstractmethod
    def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Create a document under a generated id and return that id."""

    @abstractmethod
    def query(
        self,
        collection: str,
        where: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[StoredDocument]:
        """Return documents whose top-level fields equal every value in ``where``."""

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass


def new_document_id() -> str:
    return uuid.uuid4().hex


def _json_equals(column, key: str, value: Any):
    accessor = column[key]
    # bool must be checked before int (bool is an int subclass)
    if isinstance(value, bool):
        return accessor.as_boolean() == value
    if isinstance(value, int):
        return accessor.as_integer() == value
    if isinstance(value, float):
        return accessor.as_float() == value
    return accessor.as_string() == str(value)


class SqlDocumentStore(DocumentStore):
    """
    SQLAlchemy-backed document store.

    Usage:
        engine = create_db_engine()
        store = SqlDocumentStore(create_session_factory(engine), engine=engine)
        store.set("users", "abc123", {"coachId": "coach_1"})
    """

    def __init__(self, session_factory: sessionmaker, engine=None):
        self.session_factory = session_factory
        self.engine = engine

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self.session_factory() as session:
            row = session.get(Document, (collection, doc_id))
            if row is None:
                return None
            return dict(row.data or {})

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        payload = dict(data)
        with self.session_factory() as session:
            row = session.get(Document, (collection, doc_id))
            if row is None:
                session.add(Document(collection=collection, doc_id=doc_id, data=payload))
            else:
                row.data = payload
            try:
                session.commit()
            except IntegrityError:
                # A concurrent writer created the same key first: last write wins.
                session.rollback()
                logger.info(f"Concurrent create on {collection}/{doc_id}, overwriting")
                row = session.get(Document, (collection, doc_id))
                row.data = payload
                session.commit()

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = new_document_id()
        with self.session_factory() as session:
            session.add(Document(collection=collection, doc_id=doc_id, data=dict(data)))
            session.commit()
        return doc_id

    def query(
        self,
        collection: str,
        where: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[StoredDocument]:
        stmt = select(Document).where(Document.collection == collection)
        for key, value in (where or {}).items():
            stmt = stmt.where(_json_equals(Document.data, key, value))

        if order_by:
            order_col = Document.data[order_by].as_string()
            stmt = stmt.order_by(order_col.desc() if descending else order_col)
        stmt = stmt.order_by(Document.created_at, Document.doc_id)

        if limit is not None:
            stmt = stmt.limit(limit)

        with self.session_factory() as session:
            rows = session.execute(stmt).scalars().all()
            return [StoredDocument(id=row.doc_id, data=dict(row.data or {})) for row in rows]

    def ping(self) -> bool:
        try:
            with self.session_factory() as session:
                session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Document store ping failed: {e}")
            return False

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
