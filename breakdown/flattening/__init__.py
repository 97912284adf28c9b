"""
Stack Flattening Layer

RESPONSIBILITY: Turn the nested, clipped intervals of one root span into an
exclusive, gapless sequence owned by the deepest active interval
ALLOWED INPUTS: RootSpan, ClippedInterval (with parent_id / depth)
OUTPUTS: FlatInterval tuple covering [root.start, root.end)

INVARIANTS:
===========
- Output pieces are contiguous, non-overlapping and never zero-width
- Adjacent pieces never share the same owner
- Same-depth overlap (malformed stacks) is resolved, not reported:
  the most recently opened interval wins
"""

from __future__ import annotations
from typing import List, Optional, Sequence, Set, Tuple
import heapq

from ..contracts.events import AuditLogEntry, AuditEventType
from ..contracts.intervals import ClippedInterval, FlatInterval, RootSpan


# End events sort before start events at the same timestamp
_END = 0
_START = 1


class StackFlattener:
    """
    Event sweep producing the "innermost active" view of a stack.

    Opening order is (start, depth, id); its rank is the tie-break token,
    so the active heap is keyed by (-depth, -rank).
    """

    def __init__(self):
        self._audit_log: List[AuditLogEntry] = []

    def flatten(
        self,
        root: RootSpan,
        clipped: Sequence[ClippedInterval]
    ) -> Tuple[FlatInterval, ...]:
        members = sorted(
            (c for c in clipped if c.root_id == root.id and c.duration > 0),
            key=lambda c: (c.start, c.depth, c.id)
        )

        events: List[Tuple[int, int, int]] = []
        for rank, member in enumerate(members):
            events.append((member.start, _START, rank))
            events.append((member.end, _END, rank))
        events.sort()

        active: List[Tuple[int, int, int]] = []
        ended: Set[int] = set()
        flats: List[FlatInterval] = []
        cursor = root.start
        owner: Optional[ClippedInterval] = None

        i = 0
        while i < len(events):
            time = events[i][0]
            # Apply every event at this instant before re-evaluating the owner
            while i < len(events) and events[i][0] == time:
                _, kind, rank = events[i]
                if kind == _START:
                    member = members[rank]
                    heapq.heappush(active, (-member.depth, -rank, rank))
                else:
                    ended.add(rank)
                i += 1

            while active and active[0][2] in ended:
                heapq.heappop(active)
            winner = members[active[0][2]] if active else None

            if winner is not owner:
                if time > cursor:
                    flats.append(self._piece(root, cursor, time, owner))
                cursor = time
                owner = winner

        if root.end > cursor:
            flats.append(self._piece(root, cursor, root.end, owner))

        self._audit_log.append(AuditLogEntry.create(
            event_type=AuditEventType.FLATTENING,
            layer="flattening",
            action="stack_flattened",
            entity_id=str(root.id),
            entity_type="root_span",
            metadata=(
                ("input_count", str(len(members))),
                ("piece_count", str(len(flats))),
            )
        ))

        return tuple(flats)

    @staticmethod
    def _piece(
        root: RootSpan,
        start: int,
        end: int,
        owner: Optional[ClippedInterval]
    ) -> FlatInterval:
        return FlatInterval(
            root_id=root.id,
            start=start,
            duration=end - start,
            interval_id=owner.id if owner is not None else None,
            label=owner.label if owner is not None else None
        )

    def get_audit_log(self) -> List[AuditLogEntry]:
        """Return copy of audit log entries."""
        return list(self._audit_log)


__all__ = ['StackFlattener']
