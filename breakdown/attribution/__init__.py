"""
Attribution Policy

Pure, total mapping from one joined range to a cause label.

PRIORITY ORDER:
===============
1. io_wait          -> "io"
2. slice label      -> the label itself
3. irq_context      -> "irq"
4. otherwise        -> thread state, verbatim
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from ..contracts.intervals import ClippedInterval, FlatInterval, JoinedInterval


IO_CAUSE = "io"
IRQ_CAUSE = "irq"


def attribute_cause(
    slice_label: Optional[str],
    thread_state: str,
    io_wait: bool,
    irq_context: bool
) -> str:
    """Derive the cause of one exclusive range. No side effects."""
    if io_wait:
        return IO_CAUSE
    if slice_label is not None:
        return slice_label
    if irq_context:
        return IRQ_CAUSE
    return thread_state


@dataclass(frozen=True)
class Attribution:
    """Cause plus the ids it was derived from."""
    cause: str
    slice_id: Optional[int]
    state_id: Optional[int]


class AttributionPolicy:
    """
    Applies attribute_cause to joined state/slice ranges.

    Left pieces are clipped states, or padding where the state partition
    has a gap; padding reads as `unknown_state` with no io/irq flags.
    Right pieces are labeled flat slices, or None.
    """

    def __init__(self, unknown_state: str = "unknown"):
        self._unknown_state = unknown_state

    def attribute(self, joined: JoinedInterval) -> Attribution:
        state = joined.left.source if isinstance(joined.left, ClippedInterval) else None
        flat = joined.right if isinstance(joined.right, FlatInterval) else None

        cause = attribute_cause(
            slice_label=flat.label if flat is not None else None,
            thread_state=state.state if state is not None else self._unknown_state,
            io_wait=bool(state.io_wait) if state is not None else False,
            irq_context=bool(state.irq_context) if state is not None else False
        )
        return Attribution(
            cause=cause,
            slice_id=flat.interval_id if flat is not None else None,
            state_id=state.id if state is not None else None
        )


__all__ = ['attribute_cause', 'Attribution', 'AttributionPolicy', 'IO_CAUSE', 'IRQ_CAUSE']
