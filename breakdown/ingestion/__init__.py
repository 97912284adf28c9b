"""
Ingestion Layer

RESPONSIBILITY: Turn input rows into typed interval contracts
ALLOWED INPUTS: Mapping rows (query-layer output or a JSON document)
OUTPUTS: RootSpan, Interval, StateInterval (immutable)

WHAT THIS LAYER MUST NOT DO:
============================
- Compact, clip, flatten or join anything
- Guess a value for a missing mandatory field
- Swallow a shape violation

BOUNDARY ENFORCEMENT:
=====================
Shape violations (missing mandatory field, wrong type, repeated id) raise
InputShapeError naming the offending record. That is the only failure that
aborts a whole run, and it fires before any context is processed.
Root spans with no duration are data problems, not shape problems: they are
dropped and reported as Error values.
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Set, Tuple, Union
import json

# ONLY import from contracts - never from other layers
from ..contracts.base import Error, ErrorCode, InputShapeError
from ..contracts.events import AuditLogEntry, AuditEventType
from ..contracts.intervals import Interval, RootSpan, StateInterval


Row = Mapping[str, Any]

# Accepted column names, canonical name first
_ALIASES: Dict[str, Tuple[str, ...]] = {
    'start': ('start', 'ts'),
    'duration': ('duration', 'dur'),
    'label': ('label', 'name'),
}

DOCUMENT_KEYS = ('root_spans', 'intervals', 'states')


def load_document(path: Union[str, Path]) -> Dict[str, List[Row]]:
    """
    Load a JSON input document.

    Missing sections are returned as empty lists.
    """
    with open(path, 'r', encoding='utf-8') as handle:
        try:
            document = json.load(handle)
        except json.JSONDecodeError as exc:
            raise InputShapeError(
                ErrorCode.INVALID_FIELD, str(path), '<document>',
                f"not valid JSON ({exc.msg} at line {exc.lineno} column {exc.colno})"
            ) from exc
    if not isinstance(document, dict):
        raise InputShapeError(
            ErrorCode.INVALID_FIELD, str(path), '<document>',
            "document must be a JSON object"
        )
    loaded: Dict[str, List[Row]] = {}
    for key in DOCUMENT_KEYS:
        rows = document.get(key) or []
        if not isinstance(rows, list):
            raise InputShapeError(
                ErrorCode.INVALID_FIELD, str(path), key,
                "section must be a list of row objects"
            )
        loaded[key] = rows
    return loaded


class RowReader:
    """
    Strict converter from loosely typed rows to frozen contracts.

    Accepts trace-processor column names (`ts`, `dur`, `name`) as aliases.
    """

    def __init__(self):
        self._audit_log: List[AuditLogEntry] = []

    # =========================================================================
    # PUBLIC READERS
    # =========================================================================

    def read_root_spans(
        self,
        rows: Sequence[Row],
        id_floor: int = 0
    ) -> Tuple[Tuple[RootSpan, ...], Tuple[Error, ...]]:
        """
        Read root spans and assign each a run-wide unique id.

        Ids are `id_floor + rank`, rank being the 1-based position in
        (start, input order). The caller's id survives as `source_id`.
        """
        parsed = []
        for index, row in enumerate(rows):
            record_id = self._record_id(row, index)
            parsed.append((
                self._int(row, 'start', record_id),
                index,
                self._int(row, 'id', record_id),
                self._context(row, record_id),
                self._int(row, 'duration', record_id),
            ))
        parsed.sort(key=lambda p: (p[0], p[1]))

        roots: List[RootSpan] = []
        errors: List[Error] = []
        for rank, (start, _, source_id, context, duration) in enumerate(parsed, start=1):
            if duration <= 0:
                errors.append(Error.create(
                    ErrorCode.EMPTY_ROOT_SPAN,
                    "Root span has no duration",
                    source_id=source_id,
                    context=context,
                    duration=duration
                ))
                continue
            roots.append(RootSpan(
                id=id_floor + rank,
                context=context,
                start=start,
                duration=duration,
                source_id=source_id
            ))

        self._log_audit("root_spans_read", len(rows), len(roots), errors)
        return tuple(roots), tuple(errors)

    def read_intervals(self, rows: Sequence[Row]) -> Tuple[Interval, ...]:
        """Read hierarchical (stack-like) labeled intervals."""
        intervals: List[Interval] = []
        seen: Set[Tuple[Any, int]] = set()
        for index, row in enumerate(rows):
            record_id = self._record_id(row, index)
            context = self._context(row, record_id)
            interval_id = self._unique_id(row, record_id, context, seen)
            label = self._optional(row, 'label')
            if label is not None and not isinstance(label, str):
                raise InputShapeError(
                    ErrorCode.INVALID_FIELD, record_id, 'label', "must be a string or null"
                )
            parent_id = self._optional(row, 'parent_id')
            intervals.append(Interval(
                id=interval_id,
                context=context,
                start=self._int(row, 'start', record_id),
                duration=self._int(row, 'duration', record_id),
                label=label,
                parent_id=None if parent_id is None else self._as_int(parent_id, record_id, 'parent_id'),
                depth=self._as_int(self._optional(row, 'depth', 0), record_id, 'depth')
            ))

        self._log_audit("intervals_read", len(rows), len(intervals))
        return tuple(intervals)

    def read_state_intervals(self, rows: Sequence[Row]) -> Tuple[StateInterval, ...]:
        """Read flat, mutually exclusive scheduling-state intervals."""
        states: List[StateInterval] = []
        seen: Set[Tuple[Any, int]] = set()
        for index, row in enumerate(rows):
            record_id = self._record_id(row, index)
            context = self._context(row, record_id)
            state_id = self._unique_id(row, record_id, context, seen)
            state = self._required(row, 'state', record_id)
            if not isinstance(state, str):
                raise InputShapeError(
                    ErrorCode.INVALID_FIELD, record_id, 'state', "must be a string"
                )
            states.append(StateInterval(
                id=state_id,
                context=context,
                start=self._int(row, 'start', record_id),
                duration=self._int(row, 'duration', record_id),
                state=state,
                io_wait=self._flag(row, 'io_wait', record_id),
                irq_context=self._flag(row, 'irq_context', record_id)
            ))

        self._log_audit("states_read", len(rows), len(states))
        return tuple(states)

    # =========================================================================
    # FIELD ACCESS
    # =========================================================================

    @staticmethod
    def _record_id(row: Row, index: int) -> object:
        if not isinstance(row, Mapping):
            raise InputShapeError(
                ErrorCode.INVALID_FIELD, f"<row {index}>", '<row>', "row must be a mapping"
            )
        record_id = row.get('id')
        return record_id if record_id is not None else f"<row {index}>"

    @staticmethod
    def _lookup(row: Row, name: str) -> Tuple[bool, Any]:
        for key in _ALIASES.get(name, (name,)):
            if key in row:
                return True, row[key]
        return False, None

    def _required(self, row: Row, name: str, record_id: object) -> Any:
        present, value = self._lookup(row, name)
        if not present or value is None:
            raise InputShapeError(
                ErrorCode.MISSING_FIELD, record_id, name, "mandatory field is missing"
            )
        return value

    def _optional(self, row: Row, name: str, default: Any = None) -> Any:
        present, value = self._lookup(row, name)
        return value if present and value is not None else default

    def _int(self, row: Row, name: str, record_id: object) -> int:
        return self._as_int(self._required(row, name, record_id), record_id, name)

    @staticmethod
    def _as_int(value: Any, record_id: object, name: str) -> int:
        if isinstance(value, bool):
            raise InputShapeError(ErrorCode.INVALID_FIELD, record_id, name, "must be an integer")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise InputShapeError(ErrorCode.INVALID_FIELD, record_id, name, "must be an integer")

    def _unique_id(
        self,
        row: Row,
        record_id: object,
        context: Any,
        seen: Set[Tuple[Any, int]]
    ) -> int:
        """Ids only have to be unique within one context."""
        value = self._int(row, 'id', record_id)
        if (context, value) in seen:
            raise InputShapeError(
                ErrorCode.DUPLICATE_ID, record_id, 'id', "id is not unique within its context"
            )
        seen.add((context, value))
        return value

    def _context(self, row: Row, record_id: object) -> Any:
        context = self._required(row, 'context', record_id)
        try:
            hash(context)
        except TypeError:
            raise InputShapeError(
                ErrorCode.INVALID_FIELD, record_id, 'context', "must be hashable"
            ) from None
        return context

    def _flag(self, row: Row, name: str, record_id: object) -> bool:
        value = self._optional(row, name, False)
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        raise InputShapeError(ErrorCode.INVALID_FIELD, record_id, name, "must be a boolean")

    # =========================================================================
    # AUDIT
    # =========================================================================

    def _log_audit(
        self,
        action: str,
        row_count: int,
        read_count: int,
        errors: Iterable[Error] = ()
    ):
        """Add entry to internal audit log."""
        error_count = len(list(errors))
        self._audit_log.append(AuditLogEntry.create(
            event_type=AuditEventType.INGESTION,
            layer="ingestion",
            action=action,
            entity_type="row_batch",
            metadata=(
                ("row_count", str(row_count)),
                ("read_count", str(read_count)),
                ("error_count", str(error_count)),
            )
        ))

    def get_audit_log(self) -> List[AuditLogEntry]:
        """Return copy of audit log entries."""
        return list(self._audit_log)


def max_interval_id(intervals: Iterable[Interval], default: int = 0) -> int:
    """Largest interval id, the floor for fresh root span ids."""
    return max((i.id for i in intervals), default=default)


__all__ = ['RowReader', 'load_document', 'max_interval_id', 'DOCUMENT_KEYS', 'Row']
