"""
Attribution Policy Tests

Cause priority: io_wait, slice label, irq_context, thread state.
"""

import pytest
from hypothesis import given, strategies as st

from breakdown.attribution import (
    AttributionPolicy, attribute_cause, IO_CAUSE, IRQ_CAUSE
)
from breakdown.clipping import RootClipper
from breakdown.contracts import FlatInterval, JoinedInterval

from .fixtures import root, state


@pytest.mark.parametrize("label,state_name,io_wait,irq,expected", [
    ("inflate", "D", True, True, IO_CAUSE),
    (None, "D", True, False, IO_CAUSE),
    ("inflate", "R", False, True, "inflate"),
    ("inflate", "R", False, False, "inflate"),
    (None, "R", False, True, IRQ_CAUSE),
    (None, "Running", False, False, "Running"),
    (None, "", False, False, ""),
])
def test_priority_order(label, state_name, io_wait, irq, expected):
    assert attribute_cause(label, state_name, io_wait, irq) == expected


@given(
    st.one_of(st.none(), st.text()),
    st.text(),
    st.booleans(),
    st.booleans()
)
def test_attribution_is_total(label, state_name, io_wait, irq):
    cause = attribute_cause(label, state_name, io_wait, irq)
    assert isinstance(cause, str)
    assert cause == attribute_cause(label, state_name, io_wait, irq)


class TestPolicy:

    def _clipped_state(self, **kwargs):
        return RootClipper().clip([root()], [state(11, 0, 100, **kwargs)]).clipped[0]

    def test_state_without_slice(self):
        joined = JoinedInterval(root_id=1000, start=0, duration=100,
                                left=self._clipped_state(name="Running"))
        result = AttributionPolicy().attribute(joined)

        assert result.cause == "Running"
        assert result.slice_id is None
        assert result.state_id == 11

    def test_slice_label_beats_state(self):
        flat = FlatInterval(root_id=1000, start=0, duration=100, interval_id=5, label="bind")
        joined = JoinedInterval(root_id=1000, start=0, duration=100,
                                left=self._clipped_state(name="R"), right=flat)
        result = AttributionPolicy().attribute(joined)

        assert (result.cause, result.slice_id, result.state_id) == ("bind", 5, 11)

    def test_io_wait_beats_slice(self):
        flat = FlatInterval(root_id=1000, start=0, duration=100, interval_id=5, label="bind")
        joined = JoinedInterval(root_id=1000, start=0, duration=100,
                                left=self._clipped_state(name="D", io_wait=True), right=flat)
        assert AttributionPolicy().attribute(joined).cause == IO_CAUSE

    def test_padding_reads_as_unknown_state(self):
        padding = FlatInterval(root_id=1000, start=0, duration=100)
        joined = JoinedInterval(root_id=1000, start=0, duration=100, left=padding)
        result = AttributionPolicy(unknown_state="no_state").attribute(joined)

        assert result.cause == "no_state"
        assert result.state_id is None
