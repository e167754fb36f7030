"""
Hierarchy Consistency Enforcer.

Keeps a multi-selection over the masks tree structurally coherent: every
selected row must have the same depth and the same parent as the row that
drove the latest selection change. Rows at depth 1 share the (empty)
top-level parent and can therefore always be selected together.

Composition edits (operator, inverse, move, group) are applied to the
whole selection at once and only make sense for siblings of one group.
"""

import logging
from typing import List, Sequence, Tuple

from models.errors import InvalidSelectionError
from models.view_node import DisplayNode

logger = logging.getLogger(__name__)


class HierarchyConsistencyEnforcer:
    """Selection restriction over materialized DisplayNodes."""

    @staticmethod
    def is_comparable(node: DisplayNode, anchor: DisplayNode) -> bool:
        """True if both rows share depth and parent chain."""
        return node.signature == anchor.signature

    def restrict(self, selection: Sequence[DisplayNode],
                 anchor: DisplayNode) -> Tuple[List[DisplayNode], List[DisplayNode]]:
        """
        Drop every selected row not comparable with the anchor.

        The scan restarts after each removal, so it stays valid whatever
        the removal does to the remaining selection.

        Returns:
            (kept rows, removed rows)
        """
        kept = list(selection)
        removed = []
        changed = True
        while changed:
            changed = False
            for node in kept:
                if not self.is_comparable(node, anchor):
                    kept.remove(node)
                    removed.append(node)
                    changed = True
                    break
        if removed:
            logger.debug(
                f"Deselected {len(removed)} row(s) not matching signature {anchor.signature}"
            )
        return kept, removed

    def extend(self, selection: Sequence[DisplayNode], node: DisplayNode) -> List[DisplayNode]:
        """
        Add a row to the selection, pruning rows it is not comparable with.

        Selecting an already-selected row leaves the selection unchanged.
        """
        if node in selection:
            return list(selection)
        if not selection:
            return [node]
        kept, _ = self.restrict(selection, node)
        kept.append(node)
        return kept

    def validate(self, selection: Sequence[DisplayNode]):
        """
        Check that a selection is coherent, using its last row as anchor.

        Raises:
            InvalidSelectionError: listing the paths of offending rows
        """
        if len(selection) < 2:
            return
        anchor = selection[-1]
        offending = [n.path for n in selection if not self.is_comparable(n, anchor)]
        if offending:
            raise InvalidSelectionError(offending)


__all__ = [
    "HierarchyConsistencyEnforcer",
]
