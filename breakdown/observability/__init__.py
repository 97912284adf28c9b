"""
Observability & Audit Layer

RESPONSIBILITY: Keep the audit trail and run metrics of a breakdown
ALLOWED INPUTS: AuditLogEntry copies and metric samples from other layers
OUTPUTS: Per-layer and unified audit logs, metric totals, audit report

WHAT THIS LAYER MUST NOT DO:
============================
- Change what any layer computes
- Drop, merge or rewrite entries it is handed
- Be consulted by the pipeline to make a decision

BOUNDARY ENFORCEMENT:
=====================
- Entries are frozen; collectors only ever append
- Every accessor returns a fresh list
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple
from enum import Enum
import numpy as np

# ONLY import from contracts - never from other layers' implementations
from ..contracts.base import Timestamp, TimeRange
from ..contracts.events import AuditLogEntry, AuditEventType, MetricPoint


LAYERS: Tuple[str, ...] = (
    'ingestion',
    'normalization',
    'clipping',
    'flattening',
    'joining',
    'engine',
)


def _within(entries: Iterable, time_range: Optional[TimeRange]) -> list:
    if time_range is None:
        return list(entries)
    return [e for e in entries if time_range.contains(e.timestamp)]


# =============================================================================
# AUDIT COLLECTION
# =============================================================================

class LogCollector:
    """Append-only audit trail of one pipeline layer."""

    def __init__(self, layer_name: str):
        self._layer_name = layer_name
        self._entries: List[AuditLogEntry] = []

    def collect(self, entry: AuditLogEntry):
        self._entries.append(entry)

    def get_entries(
        self,
        time_range: Optional[TimeRange] = None,
        event_type: Optional[AuditEventType] = None,
        action: Optional[str] = None
    ) -> List[AuditLogEntry]:
        """Entries in arrival order, narrowed by any filter given."""
        return [
            e for e in _within(self._entries, time_range)
            if (event_type is None or e.event_type == event_type)
            and (action is None or e.action == action)
        ]

    @property
    def layer_name(self) -> str:
        return self._layer_name

    @property
    def entry_count(self) -> int:
        return len(self._entries)


# =============================================================================
# METRICS
# =============================================================================

class MetricType(Enum):
    COUNTER = "counter"
    TIMING = "timing"


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    metric_type: MetricType
    description: str
    labels: Tuple[str, ...] = field(default_factory=tuple)


DEFAULT_METRICS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        "contexts_processed_total", MetricType.COUNTER,
        "Contexts swept to completion"
    ),
    MetricDefinition(
        "contexts_failed_total", MetricType.COUNTER,
        "Contexts whose sweep raised and was contained"
    ),
    MetricDefinition(
        "intervals_dropped_total", MetricType.COUNTER,
        "Input intervals dropped as malformed or out of context",
        labels=("reason",)
    ),
    MetricDefinition(
        "roots_dropped_total", MetricType.COUNTER,
        "Root spans dropped before processing",
        labels=("reason",)
    ),
    MetricDefinition(
        "records_emitted_total", MetricType.COUNTER,
        "Exclusive records produced"
    ),
    MetricDefinition(
        "context_processing_ms", MetricType.TIMING,
        "Wall time of one context sweep in milliseconds"
    ),
)


class MetricsCollector:
    """
    Point series per metric name.

    Counters are read back with get_total; timings with compute_aggregates.
    """

    def __init__(self, definitions: Iterable[MetricDefinition] = DEFAULT_METRICS):
        self._series: Dict[str, List[MetricPoint]] = {}
        self._definitions: Dict[str, MetricDefinition] = {}
        for definition in definitions:
            self.register_metric(definition)

    def register_metric(self, definition: MetricDefinition):
        self._definitions[definition.name] = definition
        self._series.setdefault(definition.name, [])

    def get_definition(self, metric_name: str) -> Optional[MetricDefinition]:
        return self._definitions.get(metric_name)

    def record(
        self,
        metric_name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ):
        self._series.setdefault(metric_name, []).append(MetricPoint(
            metric_name=metric_name,
            value=value,
            timestamp=Timestamp.now(),
            labels=tuple(sorted((labels or {}).items()))
        ))

    def get_metric(
        self,
        metric_name: str,
        time_range: Optional[TimeRange] = None
    ) -> List[MetricPoint]:
        return _within(self._series.get(metric_name, ()), time_range)

    def get_total(self, metric_name: str, **labels: str) -> float:
        """Sum of every point carrying at least the given labels."""
        wanted = set(labels.items())
        return sum(
            p.value for p in self._series.get(metric_name, ())
            if wanted <= set(p.labels)
        )

    def totals(self) -> Dict[str, float]:
        """Counter totals keyed by metric name."""
        return {
            name: self.get_total(name)
            for name, definition in self._definitions.items()
            if definition.metric_type == MetricType.COUNTER
        }

    def compute_aggregates(
        self,
        metric_name: str,
        time_range: Optional[TimeRange] = None
    ) -> Dict[str, float]:
        """count / sum / min / max / avg / p95 of a series; empty if no points."""
        points = self.get_metric(metric_name, time_range)
        if not points:
            return {}

        values = np.fromiter((p.value for p in points), dtype=float, count=len(points))
        return {
            'count': int(values.size),
            'sum': float(values.sum()),
            'min': float(values.min()),
            'max': float(values.max()),
            'avg': float(values.mean()),
            'p95': float(np.percentile(values, 95)),
        }


# =============================================================================
# OBSERVABILITY ENGINE
# =============================================================================

@dataclass
class ObservabilityConfig:
    enable_metrics: bool = True
    enable_audit: bool = True


class ObservabilityEngine:
    """
    Collects what the layers report about a run.

    Entries are routed to the collector of the layer that wrote them;
    entries from an unknown layer are ignored.
    """

    def __init__(self, config: Optional[ObservabilityConfig] = None):
        self._config = config or ObservabilityConfig()
        self._collectors: Dict[str, LogCollector] = {
            layer: LogCollector(layer) for layer in LAYERS
        }
        self._metrics = MetricsCollector() if self._config.enable_metrics else None

    # =========================================================================
    # COLLECTION
    # =========================================================================

    def collect_audit(self, entry: AuditLogEntry):
        if not self._config.enable_audit:
            return
        collector = self._collectors.get(entry.layer)
        if collector is not None:
            collector.collect(entry)

    def log_audit(
        self,
        action: str,
        entity_id: Optional[str] = None,
        outcome: str = "success",
        details: str = "",
        layer: str = "engine"
    ):
        """Write an entry on behalf of the caller; any non-success outcome is an ERROR."""
        self.collect_audit(AuditLogEntry.create(
            event_type=AuditEventType.SYSTEM if outcome == "success" else AuditEventType.ERROR,
            layer=layer,
            action=action,
            entity_id=entity_id,
            metadata=(("outcome", outcome), ("details", details))
        ))

    def collect_metric(
        self,
        metric_name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ):
        if self._metrics is not None:
            self._metrics.record(metric_name, value, labels)

    # =========================================================================
    # READ ACCESS
    # =========================================================================

    def get_unified_log(
        self,
        time_range: Optional[TimeRange] = None,
        layers: Optional[List[str]] = None
    ) -> List[AuditLogEntry]:
        """Entries of the chosen layers, oldest first."""
        entries = [
            entry
            for name in (layers or LAYERS)
            if name in self._collectors
            for entry in self._collectors[name].get_entries(time_range=time_range)
        ]
        entries.sort(key=lambda e: e.timestamp.value)
        return entries

    def get_layer_log(
        self,
        layer_name: str,
        time_range: Optional[TimeRange] = None
    ) -> List[AuditLogEntry]:
        collector = self._collectors.get(layer_name)
        return collector.get_entries(time_range=time_range) if collector else []

    def get_metrics(self) -> Optional[MetricsCollector]:
        return self._metrics

    def generate_audit_report(
        self,
        time_range: Optional[TimeRange] = None
    ) -> Dict:
        """Entry counts by layer and event type, counter totals, failed contexts."""
        entries = self.get_unified_log(time_range=time_range)

        by_layer: Dict[str, int] = {}
        by_type: Dict[str, int] = {}
        for entry in entries:
            by_layer[entry.layer] = by_layer.get(entry.layer, 0) + 1
            by_type[entry.event_type.value] = by_type.get(entry.event_type.value, 0) + 1

        failed = [
            e.entity_id for e in self.get_layer_log('engine', time_range)
            if e.action == "context_failed"
        ]

        return {
            'total_entries': len(entries),
            'by_layer': by_layer,
            'by_event_type': by_type,
            'failed_contexts': failed,
            'metric_totals': self._metrics.totals() if self._metrics else {},
            'time_range': {
                'start': entries[0].timestamp.to_iso() if entries else None,
                'end': entries[-1].timestamp.to_iso() if entries else None,
            },
            'generated_at': Timestamp.now().to_iso()
        }


__all__ = [
    'LAYERS',
    'DEFAULT_METRICS',
    'LogCollector',
    'MetricType',
    'MetricDefinition',
    'MetricsCollector',
    'ObservabilityConfig',
    'ObservabilityEngine',
]
