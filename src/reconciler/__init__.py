"""
Product Reconciler Service Package

Consumes product operation envelopes from the 'products' Kafka topic and keeps
the product document collection consistent with them.

ARCHITECTURE:
┌─────────────┐     ┌───────────────┐     ┌──────────────┐     ┌─────────────────┐
│   Kafka     │────▶│ Delivery Loop │────▶│    Engine    │────▶│  Store Gateway  │
│  products   │◀────│ (consumer.py) │     │ (engine.py)  │     │   (store.py)    │
└─────────────┘     └───────────────┘     └──────────────┘     └─────────────────┘
   commit offset        decode via codec.py     CREATE/UPDATE/DELETE   product_documents

OFFSET MANAGEMENT:
1. Poll one message
2. Decode envelope (malformed → logged, not committed)
3. Apply to the store
4. Commit ONLY if applied or skipped as an unknown operation
5. Store failure → not committed, left for redelivery

Package components:
- config.py: Configuration from environment variables
- codec.py: Envelope decoding/encoding
- engine.py: Reconciliation rules
- store.py: Document store gateway
- database.py: SQLAlchemy engine and sessions
- models.py: Document table
- consumer.py: Kafka delivery loop
- topics.py: Topic existence check
- main.py: Entry point with CLI and shutdown handling
"""

__version__ = "1.0.0"

from src.reconciler.codec import DecodeError, Envelope, OperationKind, Product, decode, encode
from src.reconciler.config import ReconcilerConfig, load_config
from src.reconciler.engine import (
    Applied,
    ApplyResult,
    Effect,
    Failed,
    ReconciliationEngine,
    SkipReason,
    Skipped,
)
from src.reconciler.store import DocumentStore, SqlDocumentStore, StoredDocument, StoreError

__all__ = [
    "Applied",
    "ApplyResult",
    "DecodeError",
    "DocumentStore",
    "Effect",
    "Envelope",
    "Failed",
    "OperationKind",
    "Product",
    "ReconcilerConfig",
    "ReconciliationEngine",
    "SkipReason",
    "Skipped",
    "SqlDocumentStore",
    "StoreError",
    "StoredDocument",
    "decode",
    "encode",
    "load_config",
]
