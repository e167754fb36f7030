"""
View Node Model.

A DisplayNode is one row of the materialized masks tree. Its path is the
tuple of child indices from the top level down (a top-level row has a
path of length 1), which gives both its depth and its parent chain
independently of any widget toolkit.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from models.editing_module import EditingModule
from models.mask_form import OperatorKind


@dataclass
class DisplayNode:
    """
    A row of the materialized masks tree.

    Attributes:
        label: Display text (name plus opacity suffix)
        form_id: Id of the form shown on this row
        parent_group_id: Id of the group holding the membership (0 = top level)
        path: Child indices from the top level down
        editable: True for top-level rows, the only ones that can be renamed
        owning_module: Module whose mask group contains this row, if any
        operator: Operator badge of the membership
        inverse: Inverse badge of the membership
        used: "Used elsewhere" badge (top-level rows only)
        tooltip_text: Newline-joined names of the groups using the form
    """
    label: str
    form_id: int
    parent_group_id: int
    path: Tuple[int, ...]
    editable: bool = False
    owning_module: Optional[EditingModule] = None
    operator: Optional[OperatorKind] = None
    inverse: bool = False
    used: bool = False
    tooltip_text: str = ""

    @property
    def depth(self) -> int:
        return len(self.path)

    @property
    def parent_path(self) -> Tuple[int, ...]:
        return self.path[:-1]

    @property
    def signature(self) -> Tuple[int, Tuple[int, ...]]:
        """Depth and parent chain; equal signatures mean comparable rows."""
        return (self.depth, self.parent_path)

    @property
    def key(self) -> Tuple[int, int]:
        """Identity of the membership shown, stable across rebuilds."""
        return (self.parent_group_id, self.form_id)

    @property
    def is_top_level(self) -> bool:
        return self.parent_group_id == 0


__all__ = [
    "DisplayNode",
]
