"""
Models package.

This package contains the data models of the masks manager.

- Mask forms and memberships (MaskForm, Membership, CompositionState)
- Persistence document (FormLibrary)
- Editing modules referencing mask groups (EditingModule, ModuleDirectory)
- Materialized tree rows (DisplayNode)
- Error kinds (MaskError and subclasses)
"""

from .errors import (
    MaskError,
    FormNotFoundError,
    DuplicateMembershipError,
    InvalidSelectionError,
    CycleRejectedError,
)
from .mask_form import (
    MAX_NAME_LENGTH,
    FormKind,
    OperatorKind,
    MoveDirection,
    StateFlag,
    CompositionState,
    Membership,
    MaskForm,
    FormLibrary,
)
from .editing_module import (
    EditingModule,
    ModuleDirectory,
)
from .view_node import DisplayNode


__all__ = [
    # Errors
    "MaskError",
    "FormNotFoundError",
    "DuplicateMembershipError",
    "InvalidSelectionError",
    "CycleRejectedError",
    # Forms
    "MAX_NAME_LENGTH",
    "FormKind",
    "OperatorKind",
    "MoveDirection",
    "StateFlag",
    "CompositionState",
    "Membership",
    "MaskForm",
    "FormLibrary",
    # Modules
    "EditingModule",
    "ModuleDirectory",
    # View
    "DisplayNode",
]
