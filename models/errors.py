"""
Mask Model Errors.

All failures raised by the mask-group composition model are local-state
rejections; none of them leave the registry half-mutated.

- FormNotFoundError: a referenced form or group id is absent
- DuplicateMembershipError: the form is already a direct child of the group
- InvalidSelectionError: a selection mixes nodes of different depth/parent
- CycleRejectedError: the membership would make a group contain itself
"""

from typing import Optional


class MaskError(Exception):
    """Base class for mask model errors."""


class FormNotFoundError(MaskError):
    """Raised when a form or group id does not resolve in the registry."""

    def __init__(self, form_id: int, message: Optional[str] = None):
        self.form_id = form_id
        super().__init__(message or f"Form {form_id} not found")


class DuplicateMembershipError(MaskError):
    """Raised when a form is added twice to the same group."""

    def __init__(self, group_id: int, form_id: int):
        self.group_id = group_id
        self.form_id = form_id
        super().__init__(f"Form {form_id} is already a member of group {group_id}")


class InvalidSelectionError(MaskError):
    """
    Raised when a selection is not structurally coherent.

    Attributes:
        offending: View paths that do not share the anchor's signature
    """

    def __init__(self, offending):
        self.offending = list(offending)
        super().__init__(
            f"{len(self.offending)} selected node(s) do not share depth and parent"
        )


class CycleRejectedError(MaskError):
    """Raised when adding a membership would create a group cycle."""

    def __init__(self, group_id: int, form_id: int):
        self.group_id = group_id
        self.form_id = form_id
        super().__init__(
            f"Adding form {form_id} to group {group_id} would create a cycle"
        )


__all__ = [
    "MaskError",
    "FormNotFoundError",
    "DuplicateMembershipError",
    "InvalidSelectionError",
    "CycleRejectedError",
]
