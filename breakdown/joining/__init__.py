"""
Context Joining Layer

RESPONSIBILITY: Merge-join two exclusive partitions of one root span into
maximal ranges over which both partitions stay constant
ALLOWED INPUTS: any pieces exposing start / duration / end
OUTPUTS: JoinedInterval tuple

LEFT-OUTER SEMANTICS:
=====================
- Output covers exactly what the left partition covers
- Right pieces never contribute time outside the left coverage
- Where the right partition has no piece, `right` is None
- Zero-width output is never emitted
"""

from __future__ import annotations
from typing import List, Optional, Sequence, Tuple

from ..contracts.events import AuditLogEntry, AuditEventType
from ..contracts.intervals import JoinedInterval


class ContextJoiner:
    """Sorted two-pointer merge, O(k_left + k_right) once inputs are ordered."""

    def __init__(self):
        self._audit_log: List[AuditLogEntry] = []

    def join(
        self,
        root_id: int,
        left: Sequence[object],
        right: Sequence[object]
    ) -> Tuple[JoinedInterval, ...]:
        lefts = sorted((p for p in left if p.duration > 0), key=lambda p: p.start)
        rights = sorted((p for p in right if p.duration > 0), key=lambda p: p.start)

        output: List[JoinedInterval] = []
        j = 0
        left_floor: Optional[int] = None

        for piece in lefts:
            # Overlapping left pieces are trimmed so output stays exclusive
            lo = piece.start if left_floor is None else max(piece.start, left_floor)
            hi = piece.end
            if hi <= lo:
                continue
            left_floor = hi

            cursor = lo
            while cursor < hi:
                while j < len(rights) and rights[j].end <= cursor:
                    j += 1
                if j < len(rights) and rights[j].start < hi:
                    other = rights[j]
                    if other.start > cursor:
                        self._emit(output, root_id, cursor, other.start, piece, None)
                        cursor = other.start
                    seg_end = min(other.end, hi)
                    self._emit(output, root_id, cursor, seg_end, piece, other)
                    cursor = seg_end
                else:
                    self._emit(output, root_id, cursor, hi, piece, None)
                    cursor = hi

        self._audit_log.append(AuditLogEntry.create(
            event_type=AuditEventType.JOINING,
            layer="joining",
            action="partitions_joined",
            entity_id=str(root_id),
            entity_type="root_span",
            metadata=(
                ("left_count", str(len(lefts))),
                ("right_count", str(len(rights))),
                ("joined_count", str(len(output))),
            )
        ))

        return tuple(output)

    @staticmethod
    def _emit(
        output: List[JoinedInterval],
        root_id: int,
        start: int,
        end: int,
        left: object,
        right: Optional[object]
    ) -> None:
        if output:
            last = output[-1]
            if last.end == start and last.left is left and last.right is right:
                output[-1] = JoinedInterval(
                    root_id=root_id,
                    start=last.start,
                    duration=end - last.start,
                    left=left,
                    right=right
                )
                return
        output.append(JoinedInterval(
            root_id=root_id,
            start=start,
            duration=end - start,
            left=left,
            right=right
        ))

    def get_audit_log(self) -> List[AuditLogEntry]:
        """Return copy of audit log entries."""
        return list(self._audit_log)


__all__ = ['ContextJoiner']
