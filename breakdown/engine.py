"""
Engine Orchestration Module

This module wires the breakdown layers into one pipeline and runs it once
per context on a bounded worker pool.

DESIGN PRINCIPLES:
==================
1. Layers communicate ONLY through contracts
2. Contexts never share state; each is swept in isolation
3. A failure inside one context never aborts another
4. Output order never depends on task completion order
"""

from __future__ import annotations
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
import time

from .contracts.base import Error, ErrorCode, InputShapeError
from .contracts.events import AuditLogEntry
from .contracts.intervals import (
    BreakdownResult, ClippedInterval, Context, ContextOutcome, ExclusiveRecord,
    FlatInterval, Interval, RootSpan, StateInterval
)
from .ingestion import RowReader, Row, max_interval_id
from .normalization import IntervalNormalizer, LabelFn
from .clipping import RootClipper
from .flattening import StackFlattener
from .joining import ContextJoiner
from .attribution import AttributionPolicy
from .observability import ObservabilityEngine, ObservabilityConfig, MetricsCollector


@dataclass
class BreakdownConfig:
    """Unified configuration for the breakdown pipeline."""
    max_workers: int = 4
    fill_state_gaps: bool = True
    unknown_state: str = "unknown"
    label_fn: Optional[LabelFn] = None
    observability: ObservabilityConfig = None

    def __post_init__(self):
        self.observability = self.observability or ObservabilityConfig()


class BreakdownEngine:
    """
    Decomposes root spans into exclusive, cause-attributed ranges.

    LAYER FLOW (per context):
    =========================
    1. Normalization: labeled forest -> compacted forest
    2. Clipping: intervals and states -> pieces owned by one root
    3. Flattening: nested slice pieces -> deepest-active sequence
    4. Joining: state pieces (left) x labeled flats (right)
    5. Attribution: joined range -> cause
    """

    def __init__(self, config: Optional[BreakdownConfig] = None):
        self._config = config or BreakdownConfig()
        self._policy = AttributionPolicy(unknown_state=self._config.unknown_state)
        self._observability = ObservabilityEngine(self._config.observability)

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    def run_rows(
        self,
        root_rows: Sequence[Row],
        interval_rows: Sequence[Row] = (),
        state_rows: Sequence[Row] = ()
    ) -> BreakdownResult:
        """
        Read raw rows, then run the pipeline.

        Raises InputShapeError before any processing if a row is malformed.
        """
        reader = RowReader()
        intervals = reader.read_intervals(interval_rows)
        states = reader.read_state_intervals(state_rows)
        roots, root_errors = reader.read_root_spans(
            root_rows,
            id_floor=max_interval_id(intervals)
        )
        for entry in reader.get_audit_log():
            self._observability.collect_audit(entry)
        return self.run(roots, intervals, states, errors=root_errors)

    def run(
        self,
        roots: Sequence[RootSpan],
        intervals: Sequence[Interval] = (),
        states: Sequence[StateInterval] = (),
        errors: Sequence[Error] = ()
    ) -> BreakdownResult:
        """Run the pipeline over typed contracts."""
        self._check_unique(roots, "root span", per_context=False)
        self._check_unique(intervals, "interval")
        self._check_unique(states, "state interval")

        run_errors: List[Error] = list(errors)
        roots_by_context: Dict[Context, List[RootSpan]] = OrderedDict()
        for root in roots:
            if root.duration <= 0:
                run_errors.append(Error.create(
                    ErrorCode.EMPTY_ROOT_SPAN,
                    "Root span has no duration",
                    root_id=root.id,
                    context=root.context
                ))
                continue
            roots_by_context.setdefault(root.context, []).append(root)

        if not roots_by_context:
            self._observability.log_audit(
                action="empty_input",
                details="no root spans with positive duration"
            )
            self._record_errors(run_errors)
            return BreakdownResult(records=(), errors=tuple(run_errors))

        intervals_by_context = self._partition(intervals, roots_by_context)
        states_by_context = self._partition(states, roots_by_context)
        unknown = (
            len(intervals) - sum(len(v) for v in intervals_by_context.values())
            + len(states) - sum(len(v) for v in states_by_context.values())
        )
        if unknown:
            self._observability.collect_metric(
                "intervals_dropped_total", float(unknown), {"reason": "unknown_context"}
            )

        outcomes = self._dispatch(roots_by_context, intervals_by_context, states_by_context)

        records = sorted(
            (record for outcome in outcomes for record in outcome.records),
            key=lambda r: (r.root_id, r.start)
        )

        self._record_errors(run_errors)
        self._record_outcomes(outcomes)
        self._observability.log_audit(
            action="run_completed",
            details=(
                f"contexts={len(outcomes)} records={len(records)} "
                f"failed={sum(1 for o in outcomes if not o.success)}"
            )
        )

        return BreakdownResult(
            records=tuple(records),
            outcomes=outcomes,
            errors=tuple(run_errors)
        )

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def _dispatch(
        self,
        roots_by_context: Dict[Context, List[RootSpan]],
        intervals_by_context: Dict[Context, List[Interval]],
        states_by_context: Dict[Context, List[StateInterval]]
    ) -> Tuple[ContextOutcome, ...]:
        """Process every context, in a pool when more than one worker is allowed."""
        contexts = list(roots_by_context)
        results: Dict[Context, ContextOutcome] = {}

        def task(context: Context) -> ContextOutcome:
            return self._process_context(
                context,
                roots_by_context[context],
                intervals_by_context.get(context, []),
                states_by_context.get(context, [])
            )

        workers = max(1, int(self._config.max_workers or 1))
        if workers > 1 and len(contexts) > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = {executor.submit(task, context): context for context in contexts}
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
        else:
            for context in contexts:
                results[context] = task(context)

        return tuple(results[context] for context in contexts)

    def _process_context(
        self,
        context: Context,
        roots: List[RootSpan],
        intervals: List[Interval],
        states: List[StateInterval]
    ) -> ContextOutcome:
        """
        Sweep one context. Any unexpected failure is contained here
        and returned as a failed outcome.
        """
        start_time = time.time()
        try:
            records, errors, audit = self._sweep_context(roots, intervals, states)
        except Exception as exc:
            return ContextOutcome(
                context=context,
                success=False,
                errors=(Error.create(
                    ErrorCode.CONTEXT_FAILED,
                    "Context processing failed",
                    context=context,
                    exception=type(exc).__name__
                ),),
                processing_time_ms=(time.time() - start_time) * 1000,
                failure=f"{type(exc).__name__}: {exc}"
            )

        return ContextOutcome(
            context=context,
            success=True,
            records=tuple(records),
            errors=tuple(errors),
            audit=tuple(audit),
            processing_time_ms=(time.time() - start_time) * 1000
        )

    def _sweep_context(
        self,
        roots: List[RootSpan],
        intervals: List[Interval],
        states: List[StateInterval]
    ) -> Tuple[List[ExclusiveRecord], List[Error], List[AuditLogEntry]]:
        """The full pipeline for one context."""
        normalizer = IntervalNormalizer(label_fn=self._config.label_fn)
        clipper = RootClipper()
        flattener = StackFlattener()
        joiner = ContextJoiner()

        normalized = normalizer.normalize(intervals)
        slice_clips = clipper.clip(roots, normalized.intervals)
        state_clips = clipper.clip(roots, states)

        slices_by_root = self._by_root(slice_clips.clipped)
        states_by_root = self._by_root(state_clips.clipped)

        records: List[ExclusiveRecord] = []
        for root in roots:
            root_slices = slices_by_root.get(root.id, [])
            root_states = states_by_root.get(root.id, [])
            if not root_slices and not root_states:
                continue

            flats = flattener.flatten(root, root_slices)
            right = [flat for flat in flats if flat.is_labeled]
            if self._config.fill_state_gaps:
                left = self._pad_state_gaps(root, root_states)
            else:
                left = root_states

            for joined in joiner.join(root.id, left, right):
                attribution = self._policy.attribute(joined)
                records.append(ExclusiveRecord(
                    root_id=root.id,
                    context=root.context,
                    source_id=root.source_id,
                    slice_id=attribution.slice_id,
                    state_id=attribution.state_id,
                    start=joined.start,
                    duration=joined.duration,
                    cause=attribution.cause
                ))

        errors = list(normalized.errors) + list(slice_clips.errors) + list(state_clips.errors)
        audit = (
            normalizer.get_audit_log()
            + clipper.get_audit_log()
            + flattener.get_audit_log()
            + joiner.get_audit_log()
        )
        return records, errors, audit

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _check_unique(items: Sequence, kind: str, per_context: bool = True):
        """Root ids are run-wide keys; interval and state ids only scope a context."""
        seen = set()
        for item in items:
            key = (item.context, item.id) if per_context else item.id
            if key in seen:
                raise InputShapeError(
                    ErrorCode.DUPLICATE_ID, item.id, 'id', f"{kind} id is not unique"
                )
            seen.add(key)

    @staticmethod
    def _partition(items: Sequence, roots_by_context: Dict[Context, List[RootSpan]]) -> Dict:
        """Group items by context, dropping contexts that own no root."""
        grouped: Dict[Context, list] = OrderedDict()
        for item in items:
            if item.context in roots_by_context:
                grouped.setdefault(item.context, []).append(item)
        return grouped

    @staticmethod
    def _by_root(clipped: Sequence[ClippedInterval]) -> Dict[int, List[ClippedInterval]]:
        grouped: Dict[int, List[ClippedInterval]] = {}
        for piece in clipped:
            grouped.setdefault(piece.root_id, []).append(piece)
        return grouped

    @staticmethod
    def _pad_state_gaps(root: RootSpan, pieces: List[ClippedInterval]) -> List[object]:
        """Fill uncovered stretches of a root with unlabeled placeholder pieces."""
        padded: List[object] = []
        cursor = root.start
        for piece in sorted(pieces, key=lambda p: p.start):
            if piece.start > cursor:
                padded.append(FlatInterval(root_id=root.id, start=cursor, duration=piece.start - cursor))
            padded.append(piece)
            cursor = max(cursor, piece.end)
        if root.end > cursor:
            padded.append(FlatInterval(root_id=root.id, start=cursor, duration=root.end - cursor))
        return padded

    def _record_errors(self, errors: Sequence[Error]):
        for error in errors:
            metric = (
                "roots_dropped_total" if error.code == ErrorCode.EMPTY_ROOT_SPAN
                else "intervals_dropped_total"
            )
            self._observability.collect_metric(
                metric, 1.0, {"reason": error.code.name.lower()}
            )

    def _record_outcomes(self, outcomes: Sequence[ContextOutcome]):
        """Forward per-context audit entries and metrics to observability."""
        for outcome in outcomes:
            for entry in outcome.audit:
                self._observability.collect_audit(entry)
            self._observability.collect_metric(
                "context_processing_ms", outcome.processing_time_ms
            )
            if outcome.success:
                self._observability.collect_metric("contexts_processed_total", 1.0)
                self._observability.collect_metric(
                    "records_emitted_total", float(len(outcome.records))
                )
                self._record_errors(outcome.errors)
            else:
                self._observability.collect_metric("contexts_failed_total", 1.0)
                self._observability.log_audit(
                    action="context_failed",
                    entity_id=str(outcome.context),
                    outcome="failure",
                    details=outcome.failure or ""
                )

    # =========================================================================
    # OBSERVABILITY INTERFACE
    # =========================================================================

    def get_audit_log(self, layers: Optional[List[str]] = None) -> List[AuditLogEntry]:
        """Get unified audit log."""
        return self._observability.get_unified_log(layers=layers)

    def get_audit_report(self) -> Dict:
        """Generate audit report."""
        return self._observability.generate_audit_report()

    def get_metrics(self) -> Optional[MetricsCollector]:
        """Get metrics collector."""
        return self._observability.get_metrics()
