"""
Interval Contracts

Every entity flowing through the breakdown pipeline. Each stage is a pure
transform: it reads the previous stage's contracts and builds new ones.
Nothing here is ever mutated after construction.

TIME MODEL:
===========
- Timestamps and durations are integers (trace nanoseconds)
- Ranges are half-open: [start, start + duration)
- A context (e.g. a thread id) scopes all nesting and overlap questions
"""

from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Hashable, List, Optional, Tuple, Union

from .base import Error
from .events import AuditLogEntry


Context = Hashable


# =============================================================================
# INPUT CONTRACTS
# =============================================================================

@dataclass(frozen=True)
class Interval:
    """
    Labeled interval in a per-context forest.

    Within a context, a child's range lies inside its parent's range and
    `depth` is the number of ancestors.
    """
    id: int
    context: Context
    start: int
    duration: int
    label: Optional[str] = None
    parent_id: Optional[int] = None
    depth: int = 0

    @property
    def end(self) -> int:
        return self.start + self.duration


@dataclass(frozen=True)
class RootSpan:
    """
    Outer window being decomposed (e.g. one app startup on a main thread).

    `id` is unique across the whole run; `source_id` is the caller's own
    identifier, which may repeat across contexts.
    """
    id: int
    context: Context
    start: int
    duration: int
    source_id: Optional[int] = None

    @property
    def end(self) -> int:
        return self.start + self.duration


@dataclass(frozen=True)
class StateInterval:
    """Flat scheduling-state interval; mutually exclusive within a context."""
    id: int
    context: Context
    start: int
    duration: int
    state: str
    io_wait: bool = False
    irq_context: bool = False

    @property
    def end(self) -> int:
        return self.start + self.duration


# =============================================================================
# DERIVED CONTRACTS
# =============================================================================

@dataclass(frozen=True)
class ClippedInterval:
    """
    An input interval truncated to exactly one root span.

    `source` is the unclipped Interval or StateInterval it came from.
    """
    root_id: int
    id: int
    context: Context
    start: int
    duration: int
    source: Union[Interval, StateInterval]

    @property
    def end(self) -> int:
        return self.start + self.duration

    @property
    def depth(self) -> int:
        return getattr(self.source, 'depth', 0)

    @property
    def parent_id(self) -> Optional[int]:
        return getattr(self.source, 'parent_id', None)

    @property
    def label(self) -> Optional[str]:
        return getattr(self.source, 'label', None)


@dataclass(frozen=True)
class FlatInterval:
    """
    Exclusive piece of a root span, owned by the deepest active interval.

    `interval_id` is None where no interval is active.
    """
    root_id: int
    start: int
    duration: int
    interval_id: Optional[int] = None
    label: Optional[str] = None

    @property
    def end(self) -> int:
        return self.start + self.duration

    @property
    def is_labeled(self) -> bool:
        return self.interval_id is not None


@dataclass(frozen=True)
class JoinedInterval:
    """
    Maximal range over which both joined partitions stay constant.

    `right` is None where the right partition has no active piece.
    """
    root_id: int
    start: int
    duration: int
    left: object
    right: Optional[object] = None

    @property
    def end(self) -> int:
        return self.start + self.duration


@dataclass(frozen=True)
class ExclusiveRecord:
    """
    Final output row: one cause for one exclusive range of a root span.

    `slice_id` and `state_id` are only unique within `context`.
    """
    root_id: int
    context: Context
    source_id: Optional[int]
    slice_id: Optional[int]
    state_id: Optional[int]
    start: int
    duration: int
    cause: str

    @property
    def end(self) -> int:
        return self.start + self.duration

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# STAGE RESULTS
# =============================================================================

@dataclass(frozen=True)
class NormalizationResult:
    """Compacted forest plus the malformed intervals that were dropped."""
    intervals: Tuple[Interval, ...]
    errors: Tuple[Error, ...] = field(default_factory=tuple)
    removed_count: int = 0


@dataclass(frozen=True)
class ClipResult:
    """Clipped rows ordered by (root_id, start, depth, id)."""
    clipped: Tuple[ClippedInterval, ...]
    errors: Tuple[Error, ...] = field(default_factory=tuple)
    unknown_context_count: int = 0

    def for_root(self, root_id: int) -> List[ClippedInterval]:
        return [c for c in self.clipped if c.root_id == root_id]


@dataclass(frozen=True)
class ContextOutcome:
    """
    Result of processing one context in isolation.

    A failed outcome carries no records; its failure never affects
    any other context.
    """
    context: Context
    success: bool
    records: Tuple[ExclusiveRecord, ...] = field(default_factory=tuple)
    errors: Tuple[Error, ...] = field(default_factory=tuple)
    audit: Tuple[AuditLogEntry, ...] = field(default_factory=tuple)
    processing_time_ms: float = 0.0
    failure: Optional[str] = None


@dataclass(frozen=True)
class BreakdownResult:
    """Merged output of a run, records ordered by (root_id, start)."""
    records: Tuple[ExclusiveRecord, ...]
    outcomes: Tuple[ContextOutcome, ...] = field(default_factory=tuple)
    errors: Tuple[Error, ...] = field(default_factory=tuple)

    @property
    def failed_contexts(self) -> Tuple[Context, ...]:
        return tuple(o.context for o in self.outcomes if not o.success)

    def all_errors(self) -> Tuple[Error, ...]:
        """Run-level errors followed by every context's errors."""
        collected = list(self.errors)
        for outcome in self.outcomes:
            collected.extend(outcome.errors)
        return tuple(collected)

    def to_dicts(self) -> List[dict]:
        return [record.to_dict() for record in self.records]
