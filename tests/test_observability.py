"""
Observability Layer Tests

The layer only stores; it never changes what the pipeline computes.
"""

from datetime import timedelta

from breakdown import BreakdownEngine, BreakdownConfig
from breakdown.contracts import AuditEventType, AuditLogEntry, Timestamp, TimeRange
from breakdown.observability import (
    LAYERS, MetricDefinition, MetricType, MetricsCollector,
    ObservabilityConfig, ObservabilityEngine
)

from .fixtures import nested_pair, root, state


class TestMetricsCollector:

    def test_default_metrics_registered(self):
        collector = MetricsCollector()
        for name in (
            "contexts_processed_total",
            "contexts_failed_total",
            "intervals_dropped_total",
            "roots_dropped_total",
            "records_emitted_total",
            "context_processing_ms",
        ):
            assert collector.get_definition(name) is not None
        assert collector.get_definition("context_processing_ms").metric_type == MetricType.TIMING

    def test_totals_filter_on_labels(self):
        collector = MetricsCollector()
        collector.record("intervals_dropped_total", 2.0, {"reason": "unknown_context"})
        collector.record("intervals_dropped_total", 1.0, {"reason": "negative_duration"})

        assert collector.get_total("intervals_dropped_total") == 3.0
        assert collector.get_total("intervals_dropped_total", reason="negative_duration") == 1.0
        assert collector.get_total("missing_metric") == 0

    def test_aggregates(self):
        collector = MetricsCollector()
        for value in (1.0, 2.0, 3.0):
            collector.record("context_processing_ms", value)
        aggregates = collector.compute_aggregates("context_processing_ms")
        assert aggregates["count"] == 3
        assert aggregates["avg"] == 2.0
        assert collector.compute_aggregates("records_emitted_total") == {}

    def test_custom_metric(self):
        collector = MetricsCollector()
        collector.register_metric(MetricDefinition(
            name="roots_seen_total",
            metric_type=MetricType.COUNTER,
            description="Roots handed to the engine"
        ))
        collector.record("roots_seen_total", 1.0)
        assert len(collector.get_metric("roots_seen_total")) == 1


class TestObservabilityEngine:

    def test_entries_routed_to_their_layer(self):
        observability = ObservabilityEngine()
        observability.collect_audit(AuditLogEntry.create(
            event_type=AuditEventType.CLIPPING, layer="clipping", action="intervals_clipped"
        ))
        observability.log_audit(action="run_completed")

        assert len(observability.get_layer_log("clipping")) == 1
        assert len(observability.get_layer_log("engine")) == 1
        assert len(observability.get_unified_log(layers=["clipping"])) == 1
        assert observability.get_layer_log("nowhere") == []

    def test_failure_outcome_logged_as_error(self):
        observability = ObservabilityEngine()
        observability.log_audit(action="context_failed", outcome="failure", details="boom")
        entry = observability.get_layer_log("engine")[0]
        assert entry.event_type == AuditEventType.ERROR
        assert ("details", "boom") in entry.metadata

    def test_time_range_filter(self):
        observability = ObservabilityEngine()
        observability.log_audit(action="run_completed")
        now = Timestamp.now()
        past = TimeRange(
            start=Timestamp(now.value - timedelta(days=2)),
            end=Timestamp(now.value - timedelta(days=1))
        )
        assert observability.get_unified_log(time_range=past) == []

    def test_disabled_collection(self):
        observability = ObservabilityEngine(ObservabilityConfig(enable_metrics=False, enable_audit=False))
        observability.log_audit(action="run_completed")
        observability.collect_metric("records_emitted_total", 1.0)

        assert observability.get_unified_log() == []
        assert observability.get_metrics() is None

    def test_report_counts_layers(self):
        observability = ObservabilityEngine()
        observability.log_audit(action="a")
        observability.log_audit(action="b", layer="joining")
        report = observability.generate_audit_report()

        assert report["total_entries"] == 2
        assert report["by_layer"] == {"engine": 1, "joining": 1}
        assert set(LAYERS) >= set(report["by_layer"])


def test_observability_never_changes_output():
    inputs = ([root()], nested_pair(), [state(9, 0, 100)])
    quiet = BreakdownEngine(BreakdownConfig(
        observability=ObservabilityConfig(enable_metrics=False, enable_audit=False)
    )).run(*inputs)
    loud = BreakdownEngine().run(*inputs)
    assert quiet.records == loud.records
