"""
SQLAlchemy ORM Model for Stored Product Documents

The document collection is a single table. Each row wraps the last-applied
operation label together with the product payload as JSON, mirroring a
document store's ``{"operation": ..., "data": {...}}`` shape.

    id | name | operation | data (JSON / JSONB)                               | created_at | updated_at
    ---+------+-----------+---------------------------------------------------+------------+-----------
     1 | milk | UPDATE    | {"name": "milk", "expired": "2024-03-01", ...}    | ...        | ...

``name`` duplicates ``data["name"]`` so lookups by natural key can use an index.
It is deliberately NOT unique: CREATE never checks for an existing key, so
replays and repeated CREATEs may leave several documents for one name. It has
no length limit either.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, TIMESTAMP, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite for local runs and tests)
DocumentJSON = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class ProductDocument(Base):
    """
    A stored product document.

    Attributes:
        id: Surrogate key, assigned on insert
        name: Natural key copied from data["name"] (indexed, not unique)
        operation: Last-applied operation label ("CREATE" or "UPDATE")
        data: Product payload exactly as received in the envelope
        created_at: Insert timestamp
        updated_at: Last replace timestamp
    """

    __tablename__ = "product_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Natural key, copied from data.name",
    )

    operation: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="Last applied operation label",
    )

    data: Mapped[Dict[str, Any]] = mapped_column(
        DocumentJSON,
        nullable=False,
        comment="Product payload as received",
    )

    created_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP,
        server_default=func.current_timestamp(),
    )

    updated_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP,
        server_default=func.current_timestamp(),
        onupdate=func.current_timestamp(),
    )

    __table_args__ = (
        # Hash index: equality lookups only, and no btree row-size limit on long names
        Index("ix_product_documents_name", "name", postgresql_using="hash"),
        {"comment": "Product documents reconciled from the products topic"},
    )

    def __repr__(self) -> str:
        return f"<ProductDocument(id={self.id}, name={self.name}, operation={self.operation})>"
