"""
Envelope Codec

Decodes raw Kafka message values into typed operation envelopes and encodes
envelopes for the publisher.

WIRE FORMAT (UTF-8 JSON):
    {"operation": "UPDATE", "data": {"name": "milk", "expired": "2024-02-01", "brand": "X"}}

DECODE RULES:
- Not UTF-8, not JSON, not an object        -> DecodeError
- JSON nested deeper than the parser allows -> DecodeError
- "data" missing or not an object           -> DecodeError
- "data.name" missing or not a string       -> DecodeError
- "operation" missing, non-string, unknown  -> decoded, kind == UNRECOGNIZED
  (the engine skips it; the delivery loop still commits it)
"""

import enum
import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator


class DecodeError(ValueError):
    """Raised when message bytes are not a valid operation envelope."""


class OperationKind(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    UNRECOGNIZED = "UNRECOGNIZED"

    @classmethod
    def parse(cls, operation: str) -> "OperationKind":
        """Map an operation string to its kind; anything unknown is UNRECOGNIZED."""
        if operation in (cls.CREATE.value, cls.UPDATE.value, cls.DELETE.value):
            return cls(operation)
        return cls.UNRECOGNIZED


class Product(BaseModel):
    """
    Product payload carried in ``data``.

    Only ``name`` is required. Extra descriptive attributes are kept as sent.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    expired: Optional[str] = None
    brand: Optional[str] = None

    def to_document_data(self) -> dict:
        """The payload exactly as it arrived: only the fields that were present."""
        return self.model_dump(exclude_unset=True)


class Envelope(BaseModel):
    """Decoded operation envelope."""

    operation: str = ""
    data: Product

    @field_validator("operation", mode="before")
    @classmethod
    def _operation_as_text(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            return json.dumps(value, default=str)
        return value

    @property
    def kind(self) -> OperationKind:
        return OperationKind.parse(self.operation)

    @property
    def key(self) -> str:
        """Natural key of the product this envelope targets."""
        return self.data.name


def decode(raw: Optional[bytes]) -> Envelope:
    """
    Decode a Kafka message value into an Envelope.

    Args:
        raw: Message value bytes (None for tombstones)

    Returns:
        Decoded Envelope

    Raises:
        DecodeError: If the bytes are not a valid envelope
    """
    if raw is None:
        raise DecodeError("Message has no value")

    try:
        payload = json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise DecodeError(f"Message value is not UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise DecodeError(f"Message value is not valid JSON: {e}") from e
    except RecursionError as e:
        raise DecodeError("Message value is nested too deeply") from e

    if not isinstance(payload, dict):
        raise DecodeError(f"Envelope must be a JSON object, got {type(payload).__name__}")

    if "data" not in payload:
        raise DecodeError("Envelope is missing the 'data' field")

    try:
        return Envelope.model_validate(payload)
    except ValidationError as e:
        raise DecodeError(f"Invalid envelope data: {e.errors(include_url=False)}") from e


def encode(operation: str, product: Product) -> bytes:
    """Serialize an envelope to its wire format."""
    envelope = {"operation": operation, "data": product.to_document_data()}
    return json.dumps(envelope).encode("utf-8")
