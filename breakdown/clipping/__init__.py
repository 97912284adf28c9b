"""
Root Clipping Layer

RESPONSIBILITY: Intersect an interval stream with root spans of the same
context, truncating each overlap to the root and tagging it with the root id
ALLOWED INPUTS: RootSpan, Interval or StateInterval
OUTPUTS: ClipResult (ClippedInterval rows)

WHAT THIS LAYER MUST NOT DO:
============================
- Compare intervals across contexts
- Compare every interval against every root (pairwise scans are quadratic)
- Emit empty intersections

SWEEP:
======
Root starts and interval starts are merged in time order. Two min-heaps
keyed by end hold the roots and intervals that are still open. When a new
start arrives, everything in the opposite heap that has not yet ended
overlaps it, so each pairing examined is a real overlap and the sweep costs
O((k + m) log(k + m)) plus the size of its output.
"""

from __future__ import annotations
from collections import OrderedDict
from typing import Dict, List, Sequence, Tuple, Union
import heapq

# ONLY import from contracts - never from other layers' implementations
from ..contracts.base import Error, ErrorCode
from ..contracts.events import AuditLogEntry, AuditEventType
from ..contracts.intervals import (
    ClippedInterval, ClipResult, Context, Interval, RootSpan, StateInterval
)


Clippable = Union[Interval, StateInterval]

_ROOT = 0
_ITEM = 1


def _sort_key(clipped: ClippedInterval) -> tuple:
    return (clipped.root_id, clipped.start, clipped.depth, clipped.id)


class RootClipper:
    """
    Context-partitioned intersection of intervals with root spans.

    A single interval overlapping several roots fans out into one
    independently clipped row per root.
    """

    def __init__(self):
        self._audit_log: List[AuditLogEntry] = []

    def clip(
        self,
        roots: Sequence[RootSpan],
        intervals: Sequence[Clippable]
    ) -> ClipResult:
        """
        Clip every interval against the roots of its own context.

        Intervals whose context owns no root are dropped silently and only
        counted. Negative durations are reported as errors and dropped.
        """
        roots_by_context: Dict[Context, List[RootSpan]] = OrderedDict()
        for root in roots:
            roots_by_context.setdefault(root.context, []).append(root)

        items_by_context: Dict[Context, List[Clippable]] = OrderedDict()
        errors: List[Error] = []
        unknown_context = 0

        for item in intervals:
            if item.context not in roots_by_context:
                unknown_context += 1
                continue
            if item.duration < 0:
                errors.append(Error.create(
                    ErrorCode.NEGATIVE_DURATION,
                    "Interval has negative duration",
                    interval_id=item.id,
                    context=item.context,
                    duration=item.duration
                ))
                continue
            items_by_context.setdefault(item.context, []).append(item)

        clipped: List[ClippedInterval] = []
        for context, context_roots in roots_by_context.items():
            clipped.extend(self._sweep(context_roots, items_by_context.get(context, [])))

        clipped.sort(key=_sort_key)

        self._log_audit(
            action="intervals_clipped",
            metadata=(
                ("input_count", str(len(intervals))),
                ("clipped_count", str(len(clipped))),
                ("unknown_context_count", str(unknown_context)),
                ("malformed_count", str(len(errors))),
            )
        )

        return ClipResult(
            clipped=tuple(clipped),
            errors=tuple(errors),
            unknown_context_count=unknown_context
        )

    def _sweep(
        self,
        roots: List[RootSpan],
        items: List[Clippable]
    ) -> List[ClippedInterval]:
        """Sweep one context's root and interval starts in time order."""
        starts: List[Tuple[int, int, int, object]] = []
        for seq, root in enumerate(roots):
            if root.duration > 0:
                starts.append((root.start, _ROOT, seq, root))
        for seq, item in enumerate(items):
            # Zero-width intervals can never intersect a half-open range
            if item.duration > 0:
                starts.append((item.start, _ITEM, seq, item))
        starts.sort(key=lambda s: (s[0], s[1], s[2]))

        open_roots: List[Tuple[int, int, RootSpan]] = []
        open_items: List[Tuple[int, int, Clippable]] = []
        output: List[ClippedInterval] = []

        for time, kind, seq, obj in starts:
            while open_roots and open_roots[0][0] <= time:
                heapq.heappop(open_roots)
            while open_items and open_items[0][0] <= time:
                heapq.heappop(open_items)

            if kind == _ROOT:
                for _, _, item in open_items:
                    self._emit(obj, item, output)
                heapq.heappush(open_roots, (obj.end, seq, obj))
            else:
                for _, _, root in open_roots:
                    self._emit(root, obj, output)
                heapq.heappush(open_items, (obj.end, seq, obj))

        return output

    @staticmethod
    def _emit(
        root: RootSpan,
        item: Clippable,
        output: List[ClippedInterval]
    ) -> None:
        start = max(item.start, root.start)
        end = min(item.end, root.end)
        if end - start <= 0:
            return
        output.append(ClippedInterval(
            root_id=root.id,
            id=item.id,
            context=item.context,
            start=start,
            duration=end - start,
            source=item
        ))

    def _log_audit(self, action: str, metadata: tuple = ()):
        """Add entry to internal audit log."""
        self._audit_log.append(AuditLogEntry.create(
            event_type=AuditEventType.CLIPPING,
            layer="clipping",
            action=action,
            entity_type="clipped_interval",
            metadata=metadata
        ))

    def get_audit_log(self) -> List[AuditLogEntry]:
        """Return copy of audit log entries."""
        return list(self._audit_log)


__all__ = ['RootClipper', 'Clippable']
