"""
Interval Normalization Layer

RESPONSIBILITY: Compact a labeled interval forest by removing null-labeled
nodes and reattaching their children to the nearest surviving ancestor
ALLOWED INPUTS: Interval (any mix of contexts)
OUTPUTS: NormalizationResult (survivors with rewritten parent_id / depth)

WHAT THIS LAYER MUST NOT DO:
============================
- Clip intervals against root spans
- Drop a child because its parent was removed (children are reattached)
- Decide label policy (an optional label function is injected)

FOREST RULES:
=============
- Each context is compacted independently
- A parent_id naming no interval of the same context is treated as absent
- depth is recomputed as the number of surviving ancestors
- Malformed nodes (negative duration, escaping their parent, parent loops)
  are dropped with an explicit Error and treated like removed nodes
"""

from __future__ import annotations
from collections import OrderedDict
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple
import networkx as nx

# ONLY import from contracts - never from other layers' implementations
from ..contracts.base import Error, ErrorCode
from ..contracts.events import AuditLogEntry, AuditEventType
from ..contracts.intervals import Context, Interval, NormalizationResult


LabelFn = Callable[[Optional[str]], Optional[str]]


class IntervalNormalizer:
    """
    Remove-and-reparent compaction over a parent-pointer forest.

    One topological pass per context: every node resolves its nearest
    surviving ancestor from its parent's already-resolved entry, so each
    lookup is O(1) and the whole pass is linear in the forest size.
    """

    def __init__(self, label_fn: Optional[LabelFn] = None):
        self._label_fn = label_fn
        self._audit_log: List[AuditLogEntry] = []

    def normalize(self, intervals: Sequence[Interval]) -> NormalizationResult:
        """
        Compact every context's forest.

        Survivors keep their input order in the returned tuple.
        """
        by_context: Dict[Context, List[Interval]] = OrderedDict()
        for interval in intervals:
            by_context.setdefault(interval.context, []).append(interval)

        rebuilt: Dict[Tuple[Context, int], Interval] = {}
        errors: List[Error] = []
        removed = 0

        for context, members in by_context.items():
            survivors, context_errors, context_removed = self._compact(members)
            for node in survivors:
                rebuilt[(context, node.id)] = node
            errors.extend(context_errors)
            removed += context_removed

        ordered = tuple(
            rebuilt[(i.context, i.id)] for i in intervals
            if (i.context, i.id) in rebuilt
        )

        self._log_audit(
            action="forest_compacted",
            metadata=(
                ("input_count", str(len(intervals))),
                ("survivor_count", str(len(ordered))),
                ("removed_count", str(removed)),
                ("malformed_count", str(len(errors))),
            )
        )

        return NormalizationResult(
            intervals=ordered,
            errors=tuple(errors),
            removed_count=removed
        )

    def _compact(
        self,
        members: List[Interval]
    ) -> Tuple[List[Interval], List[Error], int]:
        """Compact a single context's forest."""
        nodes: Dict[int, Interval] = {m.id: m for m in members}

        graph = nx.DiGraph()
        graph.add_nodes_from(nodes)
        for node in members:
            if node.parent_id is not None and node.parent_id in nodes:
                graph.add_edge(node.parent_id, node.id)

        errors: List[Error] = []
        malformed: Set[int] = set()

        # Parent chains that loop back on themselves cannot be ordered
        looped = set(nx.nodes_with_selfloops(graph))
        for component in nx.strongly_connected_components(graph):
            if len(component) > 1:
                looped |= component
        for node_id in sorted(looped):
            malformed.add(node_id)
            errors.append(Error.create(
                ErrorCode.CYCLIC_PARENTAGE,
                "Interval parent chain loops back on itself",
                interval_id=node_id,
                context=nodes[node_id].context
            ))
        graph.remove_nodes_from(looped)

        # Nearest well-formed / nearest surviving ancestor, self-inclusive
        valid_anchor: Dict[int, Optional[int]] = {}
        survivor_anchor: Dict[int, Optional[int]] = {}
        new_depth: Dict[int, int] = {}
        survivors: List[Interval] = []
        removed = 0

        for node_id in nx.topological_sort(graph):
            node = nodes[node_id]
            parents = list(graph.predecessors(node_id))
            parent = parents[0] if parents else None

            inherited_valid = valid_anchor[parent] if parent is not None else None
            inherited_survivor = survivor_anchor[parent] if parent is not None else None

            error = self._validate(node, nodes.get(inherited_valid))
            if error is not None:
                malformed.add(node_id)
                errors.append(error)
                valid_anchor[node_id] = inherited_valid
                survivor_anchor[node_id] = inherited_survivor
                continue

            label = self._label_fn(node.label) if self._label_fn else node.label
            valid_anchor[node_id] = node_id

            if label is None:
                removed += 1
                survivor_anchor[node_id] = inherited_survivor
                continue

            depth = 0 if inherited_survivor is None else new_depth[inherited_survivor] + 1
            new_depth[node_id] = depth
            survivor_anchor[node_id] = node_id
            survivors.append(Interval(
                id=node.id,
                context=node.context,
                start=node.start,
                duration=node.duration,
                label=label,
                parent_id=inherited_survivor,
                depth=depth
            ))

        if malformed:
            self._log_audit(
                action="malformed_dropped",
                metadata=(
                    ("context", str(members[0].context)),
                    ("interval_ids", ",".join(str(i) for i in sorted(malformed))),
                ),
                event_type=AuditEventType.ERROR
            )

        return survivors, errors, removed

    @staticmethod
    def _validate(node: Interval, anchor: Optional[Interval]) -> Optional[Error]:
        """Check a node against its nearest well-formed ancestor."""
        if node.duration < 0:
            return Error.create(
                ErrorCode.NEGATIVE_DURATION,
                "Interval has negative duration",
                interval_id=node.id,
                context=node.context,
                duration=node.duration
            )
        if anchor is not None and (node.start < anchor.start or node.end > anchor.end):
            return Error.create(
                ErrorCode.NOT_CONTAINED_IN_PARENT,
                "Interval escapes the range of its parent",
                interval_id=node.id,
                parent_id=anchor.id,
                context=node.context
            )
        return None

    def _log_audit(
        self,
        action: str,
        metadata: tuple = (),
        event_type: AuditEventType = AuditEventType.NORMALIZATION
    ):
        """Add entry to internal audit log."""
        self._audit_log.append(AuditLogEntry.create(
            event_type=event_type,
            layer="normalization",
            action=action,
            entity_type="interval_forest",
            metadata=metadata
        ))

    def get_audit_log(self) -> List[AuditLogEntry]:
        """Return copy of audit log entries."""
        return list(self._audit_log)


__all__ = ['IntervalNormalizer', 'LabelFn']
