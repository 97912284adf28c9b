"""
Audit and Metric Records

What the processing layers hand to the observability layer. Layers build
these; only observability keeps them.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Tuple
from enum import Enum
import hashlib

from .base import Timestamp


class AuditEventType(Enum):
    """Which pipeline stage (or the engine itself) wrote an entry."""
    INGESTION = "ingestion"
    NORMALIZATION = "normalization"
    CLIPPING = "clipping"
    FLATTENING = "flattening"
    JOINING = "joining"
    ERROR = "error"
    SYSTEM = "system"


@dataclass(frozen=True)
class AuditLogEntry:
    """One step a layer took, with string metadata pairs."""
    entry_id: str
    event_type: AuditEventType
    timestamp: Timestamp
    layer: str
    action: str
    entity_id: Optional[str] = None
    entity_type: Optional[str] = None
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @staticmethod
    def create(
        event_type: AuditEventType,
        layer: str,
        action: str,
        entity_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        metadata: tuple = ()
    ) -> AuditLogEntry:
        stamp = Timestamp.now()
        digest = hashlib.sha256(
            f"{layer}:{action}:{entity_id}:{stamp.to_iso()}".encode()
        ).hexdigest()[:16]
        return AuditLogEntry(
            entry_id=f"audit_{digest}",
            event_type=event_type,
            timestamp=stamp,
            layer=layer,
            action=action,
            entity_id=entity_id,
            entity_type=entity_type,
            metadata=tuple(metadata)
        )

    def meta(self, key: str, default: str = None) -> str:
        return dict(self.metadata).get(key, default)


@dataclass(frozen=True)
class MetricPoint:
    """A single sample of a named metric."""
    metric_name: str
    value: float
    timestamp: Timestamp
    labels: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
