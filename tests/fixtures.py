"""
Test Fixtures

Explicit, hand-built inputs for deterministic testing.
No random generation here; property tests build their own strategies.
"""

from typing import List, Tuple

from breakdown.contracts import Interval, RootSpan, StateInterval


T1 = "T1"
T2 = "T2"


# =============================================================================
# ROOT SPANS
# =============================================================================

def root(root_id: int = 1000, context=T1, start: int = 0, duration: int = 100,
         source_id=None) -> RootSpan:
    return RootSpan(
        id=root_id,
        context=context,
        start=start,
        duration=duration,
        source_id=source_id
    )


# =============================================================================
# INTERVALS
# =============================================================================

def interval(interval_id: int, start: int, duration: int, label="slice",
             parent_id=None, depth: int = 0, context=T1) -> Interval:
    return Interval(
        id=interval_id,
        context=context,
        start=start,
        duration=duration,
        label=label,
        parent_id=parent_id,
        depth=depth
    )


def state(state_id: int, start: int, duration: int, name: str = "Running",
          io_wait: bool = False, irq_context: bool = False, context=T1) -> StateInterval:
    return StateInterval(
        id=state_id,
        context=context,
        start=start,
        duration=duration,
        state=name,
        io_wait=io_wait,
        irq_context=irq_context
    )


def nested_pair(context=T1, offset: int = 0) -> Tuple[Interval, Interval]:
    """A at [10,40) with child B at [15,25)."""
    a = interval(1 + offset, 10, 30, label="A", context=context)
    b = interval(2 + offset, 15, 10, label="B", parent_id=1 + offset, depth=1, context=context)
    return a, b


# =============================================================================
# RAW ROWS (as the query layer would supply them)
# =============================================================================

def root_rows() -> List[dict]:
    return [
        {"id": 7, "context": T1, "ts": 0, "dur": 100},
        {"id": 7, "context": T2, "ts": 0, "dur": 50},
    ]


def interval_rows() -> List[dict]:
    return [
        {"id": 1, "context": T1, "ts": 10, "dur": 30, "name": "A", "depth": 0},
        {"id": 2, "context": T1, "ts": 15, "dur": 10, "name": "B",
         "parent_id": 1, "depth": 1},
        {"id": 3, "context": T2, "ts": 5, "dur": 10, "name": "C", "depth": 0},
    ]


def state_rows() -> List[dict]:
    return [
        {"id": 11, "context": T1, "ts": 0, "dur": 60, "state": "Running"},
        {"id": 12, "context": T1, "ts": 60, "dur": 40, "state": "D", "io_wait": True},
        {"id": 13, "context": T2, "ts": 0, "dur": 50, "state": "R", "irq_context": 1},
    ]


def document() -> dict:
    return {
        "root_spans": root_rows(),
        "intervals": interval_rows(),
        "states": state_rows(),
    }


def spans(records) -> List[Tuple[int, int]]:
    """(start, end) pairs of anything with start / end."""
    return [(r.start, r.end) for r in records]
