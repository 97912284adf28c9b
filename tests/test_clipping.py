"""
Clipping Layer Tests

Intersection of intervals with same-context root spans.
"""

import pytest

from breakdown.contracts import ErrorCode
from breakdown.clipping import RootClipper

from .fixtures import interval, root, state, spans, T1, T2


class TestClipBoundaries:

    def test_interval_crossing_root_end_is_shortened(self):
        """[90,120) against [0,100) becomes [90,100)."""
        result = RootClipper().clip([root()], [interval(1, 90, 30)])

        assert len(result.clipped) == 1
        piece = result.clipped[0]
        assert (piece.start, piece.duration, piece.end) == (90, 10, 100)
        assert piece.root_id == 1000
        assert piece.source.duration == 30

    def test_interval_crossing_root_start_is_shortened(self):
        result = RootClipper().clip([root(start=50, duration=50)], [interval(1, 40, 20)])
        assert spans(result.clipped) == [(50, 60)]

    def test_fully_inside_is_unchanged(self):
        result = RootClipper().clip([root()], [interval(1, 10, 20)])
        assert spans(result.clipped) == [(10, 30)]

    @pytest.mark.parametrize("start,duration", [(100, 10), (-10, 10), (150, 5), (50, 0)])
    def test_touching_or_empty_intersection_is_dropped(self, start, duration):
        result = RootClipper().clip([root()], [interval(1, start, duration)])
        assert result.clipped == ()

    def test_interval_spanning_root_is_cut_to_root(self):
        result = RootClipper().clip([root(start=20, duration=10)], [interval(1, 0, 100)])
        assert spans(result.clipped) == [(20, 30)]


class TestFanOut:

    def test_one_interval_over_two_roots(self):
        roots = [
            root(1000, start=0, duration=50),
            root(1001, start=60, duration=40),
        ]
        result = RootClipper().clip(roots, [interval(1, 40, 30)])

        assert [(c.root_id, c.start, c.end) for c in result.clipped] == [
            (1000, 40, 50),
            (1001, 60, 70),
        ]
        assert result.for_root(1001)[0].id == 1

    def test_overlapping_roots_each_get_a_copy(self):
        roots = [root(1000, start=0, duration=50), root(1001, start=25, duration=50)]
        result = RootClipper().clip(roots, [interval(1, 20, 20)])
        assert [(c.root_id, c.start, c.end) for c in result.clipped] == [
            (1000, 20, 40),
            (1001, 25, 40),
        ]

    def test_output_ordered_by_root_start_depth_id(self):
        items = [
            interval(3, 10, 5, depth=1, parent_id=2),
            interval(2, 10, 20),
            interval(1, 0, 5),
        ]
        result = RootClipper().clip([root()], items)
        assert [c.id for c in result.clipped] == [1, 2, 3]


class TestContexts:

    def test_intervals_only_clip_against_own_context(self):
        roots = [root(1000, context=T1, duration=50), root(1001, context=T2, duration=50)]
        items = [interval(1, 0, 10, context=T1), interval(2, 0, 10, context=T2)]
        result = RootClipper().clip(roots, items)

        assert {(c.root_id, c.id) for c in result.clipped} == {(1000, 1), (1001, 2)}

    def test_unknown_context_dropped_silently(self):
        result = RootClipper().clip([root(context=T1)], [interval(1, 0, 10, context="T9")])
        assert result.clipped == ()
        assert result.errors == ()
        assert result.unknown_context_count == 1


class TestStatesAndErrors:

    def test_state_intervals_clip_like_slices(self):
        result = RootClipper().clip([root()], [state(11, 80, 40, name="S")])
        piece = result.clipped[0]
        assert (piece.start, piece.end) == (80, 100)
        assert piece.source.state == "S"
        assert piece.depth == 0

    def test_negative_duration_reported(self):
        result = RootClipper().clip([root()], [interval(1, 10, -1)])
        assert result.clipped == ()
        assert [e.code for e in result.errors] == [ErrorCode.NEGATIVE_DURATION]

    def test_audit_entry_written(self):
        clipper = RootClipper()
        clipper.clip([root()], [interval(1, 0, 10)])
        entry = clipper.get_audit_log()[-1]
        assert entry.layer == "clipping"
        assert entry.meta("clipped_count") == "1"
        assert entry.meta("absent") is None


def test_many_disjoint_roots_match_brute_force():
    roots = [root(1000 + i, start=i * 10, duration=7) for i in range(50)]
    items = [interval(i, i * 3, 11) for i in range(150)]

    result = RootClipper().clip(roots, items)

    expected = set()
    for r in roots:
        for item in items:
            lo, hi = max(r.start, item.start), min(r.end, item.end)
            if hi > lo:
                expected.add((r.id, item.id, lo, hi))
    assert {(c.root_id, c.id, c.start, c.end) for c in result.clipped} == expected
