"""
Contracts Package

Immutable data exchanged between layers. Layers import from here and
never from each other's implementations.
"""

from .base import ErrorCode, Error, InputShapeError, Timestamp, TimeRange
from .events import AuditEventType, AuditLogEntry, MetricPoint
from .intervals import (
    Context,
    Interval,
    RootSpan,
    StateInterval,
    ClippedInterval,
    FlatInterval,
    JoinedInterval,
    ExclusiveRecord,
    NormalizationResult,
    ClipResult,
    ContextOutcome,
    BreakdownResult,
)

__all__ = [
    'ErrorCode',
    'Error',
    'InputShapeError',
    'Timestamp',
    'TimeRange',
    'AuditEventType',
    'AuditLogEntry',
    'MetricPoint',
    'Context',
    'Interval',
    'RootSpan',
    'StateInterval',
    'ClippedInterval',
    'FlatInterval',
    'JoinedInterval',
    'ExclusiveRecord',
    'NormalizationResult',
    'ClipResult',
    'ContextOutcome',
    'BreakdownResult',
]
