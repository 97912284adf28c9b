"""
Shared Base Types

Error values, the input-shape exception and wall-clock stamps used by
every layer of the breakdown pipeline.

BOUNDARY ENFORCEMENT:
=====================
- Plain data only; nothing here depends on a processing layer
- Error values are frozen and travel inside stage results
- InputShapeError is the one exception a caller has to handle
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Tuple
from enum import Enum, auto


# =============================================================================
# ERRORS
# =============================================================================

class ErrorCode(Enum):
    """Every way an input can be rejected or a context can fail."""
    # Row shape (raised, aborts the run)
    MISSING_FIELD = auto()
    INVALID_FIELD = auto()
    DUPLICATE_ID = auto()

    # Malformed data (reported, the row is dropped)
    NEGATIVE_DURATION = auto()
    NOT_CONTAINED_IN_PARENT = auto()
    CYCLIC_PARENTAGE = auto()
    EMPTY_ROOT_SPAN = auto()

    # Contained failure of one context
    CONTEXT_FAILED = auto()


@dataclass(frozen=True)
class Error:
    """
    A reported problem with one interval, root or context.

    `context` holds (key, value) string pairs naming what was affected.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @staticmethod
    def create(code: ErrorCode, message: str, **context: object) -> Error:
        return Error(
            code=code,
            message=message,
            timestamp=Timestamp.now().value,
            context=tuple((key, str(value)) for key, value in context.items())
        )

    def get(self, key: str, default: str = None) -> str:
        for name, value in self.context:
            if name == key:
                return value
        return default


class InputShapeError(ValueError):
    """
    An input row does not have the required shape.

    Raised before any context is processed; names the record and field.
    """

    def __init__(
        self,
        code: ErrorCode,
        record_id: object,
        field_name: str,
        message: str
    ):
        self.code = code
        self.record_id = record_id
        self.field_name = field_name
        super().__init__(f"record {record_id!r}: field '{field_name}': {message}")


# =============================================================================
# WALL-CLOCK STAMPS (audit and metrics only)
# =============================================================================

@dataclass(frozen=True)
class Timestamp:
    """
    UTC wall-clock instant of an audit entry or metric sample.

    Trace time is a plain integer and never uses this type.
    """
    value: datetime

    def __post_init__(self):
        if self.value.tzinfo is None:
            object.__setattr__(self, 'value', self.value.replace(tzinfo=timezone.utc))

    @staticmethod
    def now() -> Timestamp:
        return Timestamp(value=datetime.now(timezone.utc))

    def to_iso(self) -> str:
        return self.value.isoformat()


@dataclass(frozen=True)
class TimeRange:
    """Closed wall-clock window for filtering audit logs and metrics."""
    start: Timestamp
    end: Timestamp

    def __post_init__(self):
        if self.end.value < self.start.value:
            raise ValueError("TimeRange end precedes its start")

    def contains(self, timestamp: Timestamp) -> bool:
        return self.start.value <= timestamp.value <= self.end.value
