"""
Startup Breakdown

Decomposes outer time windows ("root spans", e.g. one app startup per
process) into exclusive, gapless, cause-attributed sub-intervals by
combining a nested slice stream with a flat thread-state stream.

LAYER STRUCTURE:
================

1. INGESTION LAYER (ingestion/)
   - Responsibility: Strict conversion of input rows into contracts
   - Outputs: RootSpan, Interval, StateInterval
   - MUST NOT: Guess missing fields (shape violations raise)

2. NORMALIZATION LAYER (normalization/)
   - Responsibility: Remove null-labeled nodes, reparent their children
   - Outputs: NormalizationResult (compacted forest)

3. CLIPPING LAYER (clipping/)
   - Responsibility: Intersect intervals with same-context root spans
   - Outputs: ClipResult (ClippedInterval rows)

4. FLATTENING LAYER (flattening/)
   - Responsibility: Deepest-active exclusive view of a nested stack
   - Outputs: FlatInterval sequence per root

5. JOINING LAYER (joining/)
   - Responsibility: Left-outer merge of two exclusive partitions
   - Outputs: JoinedInterval sequence per root

6. ATTRIBUTION (attribution/)
   - Responsibility: Pure mapping from joined range to cause

7. OBSERVABILITY & AUDIT LAYER (observability/)
   - Responsibility: Audit log and metrics, never feeds back

CONSTRAINTS ENFORCED:
=====================
- Immutability-first: every contract is a frozen dataclass
- Contexts never interact; each is processed in isolation
- Identical input always yields identical output
"""

from .contracts import (
    Interval,
    RootSpan,
    StateInterval,
    ExclusiveRecord,
    BreakdownResult,
    InputShapeError,
)
from .engine import BreakdownEngine, BreakdownConfig
from .summary import CauseSummary, summarize_causes

__version__ = "0.1.0"

__all__ = [
    'Interval',
    'RootSpan',
    'StateInterval',
    'ExclusiveRecord',
    'BreakdownResult',
    'InputShapeError',
    'BreakdownEngine',
    'BreakdownConfig',
    'CauseSummary',
    'summarize_causes',
]
