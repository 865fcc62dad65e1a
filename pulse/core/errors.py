"""PULSE — Error Taxonomy.

Every failure the engine can report carries an ``ErrorKind`` so the HTTP
layer can map it to a status code without inspecting messages.

``identity_not_found`` and ``inconsistent_snapshot_order`` are recoverable:
they are logged with their kind and the request continues.
"""

from enum import Enum
from typing import Dict


class ErrorKind(str, Enum):
    IDENTITY_NOT_FOUND = "identity_not_found"
    ADAPTER_UNAVAILABLE = "adapter_unavailable"
    INVALID_RANGE = "invalid_range"
    INCONSISTENT_SNAPSHOT_ORDER = "inconsistent_snapshot_order"
    ENTITY_NOT_FOUND = "entity_not_found"


class PulseError(Exception):
    """Base error for the metrics engine."""

    kind: ErrorKind = ErrorKind.ADAPTER_UNAVAILABLE

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind.value, "message": self.message}


class AdapterUnavailable(PulseError):
    """A store query failed. The request is aborted, never retried."""

    kind = ErrorKind.ADAPTER_UNAVAILABLE

    def __init__(self, adapter: str, message: str):
        self.adapter = adapter
        super().__init__(f"{adapter}: {message}")


class InvalidRange(PulseError):
    """Bad date range or unsupported granularity / mode / alignment."""

    kind = ErrorKind.INVALID_RANGE


class EntityNotFound(PulseError):
    kind = ErrorKind.ENTITY_NOT_FOUND
