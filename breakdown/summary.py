"""
Cause Summary
=============

Per-root totals over exclusive records: how much of each root span every
cause accounts for. Pure aggregation; never alters the records.
"""

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Sequence, Tuple
import numpy as np

from .contracts.intervals import ExclusiveRecord


@dataclass(frozen=True)
class CauseSummary:
    """Total time one cause holds within one root span."""
    root_id: int
    source_id: Optional[int]
    cause: str
    total_duration: int
    record_count: int
    share: float  # fraction of the root's covered duration

    def to_dict(self) -> dict:
        return asdict(self)


def summarize_causes(records: Sequence[ExclusiveRecord]) -> Tuple[CauseSummary, ...]:
    """
    Group records by (root_id, cause).

    Ordered by root id, then total duration descending, then cause.
    """
    if not records:
        return ()

    group_index: Dict[Tuple[int, str], int] = {}
    groups: List[Tuple[int, str]] = []
    source_ids: Dict[int, Optional[int]] = {}
    codes = np.empty(len(records), dtype=np.int64)
    roots = np.empty(len(records), dtype=np.int64)
    durations = np.empty(len(records), dtype=np.int64)

    for i, record in enumerate(records):
        key = (record.root_id, record.cause)
        if key not in group_index:
            group_index[key] = len(groups)
            groups.append(key)
        codes[i] = group_index[key]
        roots[i] = record.root_id
        durations[i] = record.duration
        source_ids.setdefault(record.root_id, record.source_id)

    totals = np.zeros(len(groups), dtype=np.int64)
    np.add.at(totals, codes, durations)
    counts = np.bincount(codes, minlength=len(groups))

    root_ids, root_codes = np.unique(roots, return_inverse=True)
    root_totals = np.zeros(len(root_ids), dtype=np.int64)
    np.add.at(root_totals, root_codes, durations)
    covered = {int(r): int(t) for r, t in zip(root_ids, root_totals)}

    summaries = []
    for code, (root_id, cause) in enumerate(groups):
        total = int(totals[code])
        root_total = covered[root_id]
        summaries.append(CauseSummary(
            root_id=root_id,
            source_id=source_ids[root_id],
            cause=cause,
            total_duration=total,
            record_count=int(counts[code]),
            share=total / root_total if root_total else 0.0
        ))

    summaries.sort(key=lambda s: (s.root_id, -s.total_duration, s.cause))
    return tuple(summaries)
