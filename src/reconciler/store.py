"""
Store Gateway

The four document operations the reconciliation engine needs, behind a narrow
protocol so the engine never touches SQLAlchemy directly.

SEMANTICS (single-document, like a document store's *One operations):
- find_by_key:    oldest document whose name matches, or None
- insert:         always adds a new document, returns its id
- replace_data:   replaces data + operation label on the oldest match; 0 or 1
- delete_by_key:  removes the oldest match; 0 or 1

"Not found" is reported as None / 0. Any database or connection failure is
raised as StoreError so callers can tell the two apart.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.reconciler.database import DatabaseManager
from src.reconciler.models import ProductDocument


class StoreError(Exception):
    """A document store operation failed (connection, timeout, constraint...)."""

    def __init__(self, operation: str, key: str, cause: Exception):
        super().__init__(f"{operation} failed for key {key!r}: {cause}")
        self.operation = operation
        self.key = key
        self.cause = cause


@dataclass(frozen=True)
class StoredDocument:
    """Read-only view of a stored document."""

    id: int
    operation: str
    data: Dict[str, Any]

    @property
    def name(self) -> str:
        return self.data["name"]


class DocumentStore(Protocol):
    """Operations the reconciliation engine issues against the document store."""

    def find_by_key(self, name: str) -> Optional[StoredDocument]: ...

    def insert(self, operation: str, data: Dict[str, Any]) -> int: ...

    def replace_data(self, name: str, operation: str, data: Dict[str, Any]) -> int: ...

    def delete_by_key(self, name: str) -> int: ...


class SqlDocumentStore:
    """DocumentStore backed by the product_documents table."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _first_by_name(session: Session, name: str) -> Optional[ProductDocument]:
        stmt = (
            select(ProductDocument)
            .where(ProductDocument.name == name)
            .order_by(ProductDocument.id)
            .limit(1)
        )
        return session.scalars(stmt).first()

    def find_by_key(self, name: str) -> Optional[StoredDocument]:
        try:
            with self.db_manager.get_session() as session:
                row = self._first_by_name(session, name)
                if row is None:
                    return None
                return StoredDocument(id=row.id, operation=row.operation, data=dict(row.data))
        except SQLAlchemyError as e:
            raise StoreError("find_by_key", name, e) from e

    def insert(self, operation: str, data: Dict[str, Any]) -> int:
        name = data["name"]
        try:
            with self.db_manager.get_session() as session:
                row = ProductDocument(name=name, operation=operation, data=dict(data))
                session.add(row)
                session.flush()
                doc_id = row.id
        except SQLAlchemyError as e:
            raise StoreError("insert", name, e) from e

        self.logger.debug("Document inserted", extra={"correlation_id": name, "document_id": doc_id})
        return doc_id

    def replace_data(self, name: str, operation: str, data: Dict[str, Any]) -> int:
        try:
            with self.db_manager.get_session() as session:
                row = self._first_by_name(session, name)
                if row is None:
                    return 0
                row.operation = operation
                row.data = dict(data)
                return 1
        except SQLAlchemyError as e:
            raise StoreError("replace_data", name, e) from e

    def delete_by_key(self, name: str) -> int:
        try:
            with self.db_manager.get_session() as session:
                row = self._first_by_name(session, name)
                if row is None:
                    return 0
                session.delete(row)
                return 1
        except SQLAlchemyError as e:
            raise StoreError("delete_by_key", name, e) from e

    def count(self, name: Optional[str] = None) -> int:
        """Number of stored documents, optionally restricted to one name."""
        try:
            with self.db_manager.get_session() as session:
                stmt = select(func.count()).select_from(ProductDocument)
                if name is not None:
                    stmt = stmt.where(ProductDocument.name == name)
                return session.scalar(stmt) or 0
        except SQLAlchemyError as e:
            raise StoreError("count", name or "*", e) from e
