"""
Reconciliation Engine

Applies one decoded envelope to the document store and reports what happened.

OPERATION SEMANTICS:
┌───────────────┬──────────────────────────────────────────────┬──────────────────────────────┐
│ operation     │ store intent                                 │ result                       │
├───────────────┼──────────────────────────────────────────────┼──────────────────────────────┤
│ CREATE        │ insert {operation: CREATE, data}             │ Applied(CREATED)             │
│ UPDATE, found │ replace data, label UPDATE                   │ Applied(UPDATED)             │
│ UPDATE, none  │ insert as CREATE would, label UPDATE         │ Applied(CREATED_FROM_MISSING │
│               │                                              │         _UPDATE)             │
│ DELETE        │ delete one by name (zero matches is fine)    │ Applied(DELETED)             │
│ anything else │ nothing                                      │ Skipped(UNRECOGNIZED_OPER.)  │
└───────────────┴──────────────────────────────────────────────┴──────────────────────────────┘

Any StoreError becomes Failed(cause). The engine never retries; the delivery
loop withholds the offset commit and redelivery does the rest.

CREATE performs no uniqueness check, so replaying a CREATE leaves a duplicate
document for the same name. UPDATE and DELETE act on the oldest match only.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional, Union

from src.reconciler.codec import Envelope, OperationKind
from src.reconciler.store import DocumentStore, StoreError
from src.shared.logger import CorrelationAdapter


class Effect(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    CREATED_FROM_MISSING_UPDATE = "created_from_missing_update"
    DELETED = "deleted"


class SkipReason(str, enum.Enum):
    UNRECOGNIZED_OPERATION = "unrecognized_operation"


@dataclass(frozen=True)
class Applied:
    effect: Effect
    document_id: Optional[int] = None
    matched: int = 1


@dataclass(frozen=True)
class Skipped:
    reason: SkipReason


@dataclass(frozen=True)
class Failed:
    cause: StoreError


ApplyResult = Union[Applied, Skipped, Failed]


class ReconciliationEngine:
    """Turns operation envelopes into document store intents."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.logger = logging.getLogger(__name__)

    def apply(self, envelope: Envelope) -> ApplyResult:
        """
        Apply one envelope to the store.

        Args:
            envelope: Decoded operation envelope

        Returns:
            Applied, Skipped or Failed; never raises for store failures
        """
        log = CorrelationAdapter(self.logger, {"correlation_id": envelope.key})
        kind = envelope.kind

        if kind is OperationKind.UNRECOGNIZED:
            log.warning("Unknown operation", extra={"operation": envelope.operation})
            return Skipped(SkipReason.UNRECOGNIZED_OPERATION)

        try:
            if kind is OperationKind.CREATE:
                return self._create(envelope, log)
            if kind is OperationKind.UPDATE:
                return self._update(envelope, log)
            return self._delete(envelope, log)
        except StoreError as e:
            log.error(
                "Store operation failed",
                extra={"operation": envelope.operation, "store_operation": e.operation, "error": str(e.cause)},
            )
            return Failed(e)

    def _insert(self, envelope: Envelope, effect: Effect) -> Applied:
        # The label is the envelope's own operation: CREATE, or UPDATE for the fallback
        doc_id = self.store.insert(envelope.kind.value, envelope.data.to_document_data())
        return Applied(effect, document_id=doc_id)

    def _create(self, envelope: Envelope, log: CorrelationAdapter) -> Applied:
        result = self._insert(envelope, Effect.CREATED)
        log.info("Document created", extra={"document_id": result.document_id})
        return result

    def _update(self, envelope: Envelope, log: CorrelationAdapter) -> Applied:
        existing = self.store.find_by_key(envelope.key)
        data = envelope.data.to_document_data()

        if existing is None:
            log.warning("Document not found for update, treating as CREATE")
            result = self._insert(envelope, Effect.CREATED_FROM_MISSING_UPDATE)
            log.info("Created new document", extra={"document_id": result.document_id, "data": data})
            return result

        log.info("Old data", extra={"document_id": existing.id, "data": existing.data})
        matched = self.store.replace_data(envelope.key, OperationKind.UPDATE.value, data)

        if matched == 0:
            # Removed between lookup and replace
            log.warning("Document vanished before replace, treating as CREATE")
            return self._insert(envelope, Effect.CREATED_FROM_MISSING_UPDATE)

        log.info("New data", extra={"document_id": existing.id, "data": data})
        return Applied(Effect.UPDATED, document_id=existing.id, matched=matched)

    def _delete(self, envelope: Envelope, log: CorrelationAdapter) -> Applied:
        deleted = self.store.delete_by_key(envelope.key)
        if deleted == 0:
            log.info("No document to delete")
        else:
            log.info("Document deleted", extra={"deleted": deleted})
        return Applied(Effect.DELETED, matched=deleted)
