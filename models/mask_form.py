"""
Mask Form Models.

This module defines the data structures of the mask-group composition
model: leaf shapes and groups, and the membership edges that combine
them.

Key concepts:
- MaskForm: A named leaf shape (circle, curve, clone) or group
- Membership: Ordered reference from a group to a member form
- CompositionState: Operator + inverse flag carried by a membership
- FormLibrary: JSON document holding every form of a session

Operators fold left-to-right over a group's members, so member order is
significant for difference and exclusion. The first member of a group
carries no operator and seeds the fold.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum, IntFlag
from pathlib import Path
from typing import List, Optional, Dict, Any, Union

logger = logging.getLogger(__name__)


MAX_NAME_LENGTH = 128


# =============================================================================
# Enumerations
# =============================================================================

class FormKind(Enum):
    """Kinds of mask forms."""
    CIRCLE = "circle"
    CURVE = "curve"
    CLONE = "clone"     # Spot-removal source, never composed
    GROUP = "group"


class OperatorKind(Enum):
    """Boolean set operators combining a member into its group."""
    UNION = "union"
    INTERSECTION = "intersection"
    DIFFERENCE = "difference"
    EXCLUSION = "exclusion"


class MoveDirection(Enum):
    """Direction for reordering a membership among its siblings."""
    UP = "up"           # Towards the head of the member list
    DOWN = "down"       # Towards the tail of the member list


class StateFlag(IntFlag):
    """Bit values of the serialized membership state."""
    NONE = 0
    USE = 1
    SHOW = 2
    INVERSE = 4
    UNION = 8
    INTERSECTION = 16
    DIFFERENCE = 32
    EXCLUSION = 64


# Order also decides which operator wins when a raw bitmask has several
_OPERATOR_FLAGS = [
    (OperatorKind.UNION, StateFlag.UNION),
    (OperatorKind.INTERSECTION, StateFlag.INTERSECTION),
    (OperatorKind.DIFFERENCE, StateFlag.DIFFERENCE),
    (OperatorKind.EXCLUSION, StateFlag.EXCLUSION),
]


def _clamp(value: float, min_val: float = 0.0, max_val: float = 1.0) -> float:
    """Clamp a value to a range."""
    return max(min_val, min(max_val, value))


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class CompositionState:
    """
    Composition state of a membership.

    Attributes:
        operator: Set operator, or None for the seed member of a group
        inverse: Whether the member's coverage is inverted before combining
        use: Whether the member takes part in evaluation
        show: Whether the member is drawn on the canvas
    """
    operator: Optional[OperatorKind] = None
    inverse: bool = False
    use: bool = True
    show: bool = False

    def __post_init__(self):
        if isinstance(self.operator, str):
            self.operator = OperatorKind(self.operator)

    def to_flags(self) -> int:
        """Encode as the serialized bitmask."""
        flags = StateFlag.NONE
        if self.use:
            flags |= StateFlag.USE
        if self.show:
            flags |= StateFlag.SHOW
        if self.inverse:
            flags |= StateFlag.INVERSE
        for op, flag in _OPERATOR_FLAGS:
            if self.operator is op:
                flags |= flag
        return int(flags)

    @classmethod
    def from_flags(cls, flags: int) -> 'CompositionState':
        """Decode a serialized bitmask."""
        flags = StateFlag(flags)
        operator = None
        for op, flag in _OPERATOR_FLAGS:
            if flags & flag:
                operator = op
                break
        return cls(
            operator=operator,
            inverse=bool(flags & StateFlag.INVERSE),
            use=bool(flags & StateFlag.USE),
            show=bool(flags & StateFlag.SHOW),
        )

    def copy(self) -> 'CompositionState':
        return CompositionState(self.operator, self.inverse, self.use, self.show)


@dataclass
class Membership:
    """
    A reference edge from a group to a member form.

    The group does not own the member: the same form may be referenced by
    several groups, and the registry decides its lifetime.

    Attributes:
        form_id: Id of the referenced form
        parent_id: Id of the owning group
        state: Composition state (operator, inverse, use, show)
        opacity: Contribution opacity (0.0 to 1.0)
    """
    form_id: int
    parent_id: int
    state: CompositionState = field(default_factory=CompositionState)
    opacity: float = 1.0

    def __post_init__(self):
        self.opacity = _clamp(self.opacity)
        if isinstance(self.state, int):
            self.state = CompositionState.from_flags(self.state)

    @property
    def operator(self) -> Optional[OperatorKind]:
        return self.state.operator

    @property
    def inverse(self) -> bool:
        return self.state.inverse

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "form_id": self.form_id,
            "parent_id": self.parent_id,
            "state": self.state.to_flags(),
            "opacity": self.opacity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Membership':
        """Create from dictionary."""
        return cls(
            form_id=data.get("form_id", 0),
            parent_id=data.get("parent_id", 0),
            state=CompositionState.from_flags(data.get("state", StateFlag.USE)),
            opacity=data.get("opacity", 1.0),
        )

    def copy(self) -> 'Membership':
        return Membership(self.form_id, self.parent_id, self.state.copy(), self.opacity)


@dataclass
class MaskForm:
    """
    A leaf shape or a group of forms.

    Attributes:
        id: Registry-wide identifier (positive; 0 for transient groups)
        kind: Form kind
        name: Display name, truncated to MAX_NAME_LENGTH
        members: Ordered memberships (groups only)
    """
    id: int
    kind: FormKind
    name: str = ""
    members: List[Membership] = field(default_factory=list)

    def __post_init__(self):
        if isinstance(self.kind, str):
            self.kind = FormKind(self.kind)
        self.name = self.name[:MAX_NAME_LENGTH]
        if self.members and self.kind != FormKind.GROUP:
            raise ValueError(f"{self.kind.value} form {self.id} cannot have members")

    @property
    def is_group(self) -> bool:
        return self.kind == FormKind.GROUP

    @property
    def is_clone(self) -> bool:
        return self.kind == FormKind.CLONE

    def get_member(self, form_id: int) -> Optional[Membership]:
        """Find the direct membership for a form."""
        for member in self.members:
            if member.form_id == form_id:
                return member
        return None

    def member_index(self, form_id: int) -> int:
        """Position of a direct member, or -1."""
        for i, member in enumerate(self.members):
            if member.form_id == form_id:
                return i
        return -1

    def member_ids(self) -> List[int]:
        return [m.form_id for m in self.members]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        d = {
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
        }
        if self.is_group:
            d["members"] = [m.to_dict() for m in self.members]
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MaskForm':
        """Create from dictionary."""
        return cls(
            id=data.get("id", 0),
            kind=FormKind(data.get("kind", "circle")),
            name=data.get("name", ""),
            members=[Membership.from_dict(m) for m in data.get("members", [])],
        )

    def copy(self) -> 'MaskForm':
        """Create a deep copy (same id)."""
        return MaskForm(
            id=self.id,
            kind=self.kind,
            name=self.name,
            members=[m.copy() for m in self.members],
        )


# =============================================================================
# Form Library (Persistence Document)
# =============================================================================

@dataclass
class FormLibrary:
    """
    All forms of an editing session, in creation order.

    Attributes:
        version: File format version
        next_id: Next id the registry will allocate
        forms: Forms in insertion order
        modules: Serialized editing modules (see models.editing_module)
    """
    version: str = "1.0"
    next_id: int = 1
    forms: List[MaskForm] = field(default_factory=list)
    modules: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "version": self.version,
            "next_id": self.next_id,
            "forms": [f.to_dict() for f in self.forms],
            "modules": list(self.modules),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FormLibrary':
        """Create from dictionary."""
        forms = []
        seen = set()
        for entry in data.get("forms", []):
            form = MaskForm.from_dict(entry)
            if form.id in seen:
                logger.warning(f"Dropping duplicate form id {form.id} '{form.name}'")
                continue
            seen.add(form.id)
            forms.append(form)
        highest = max((f.id for f in forms), default=0)
        return cls(
            version=data.get("version", "1.0"),
            next_id=max(data.get("next_id", 1), highest + 1),
            forms=forms,
            modules=list(data.get("modules", [])),
        )

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> 'FormLibrary':
        """Deserialize from JSON string."""
        return cls.from_dict(json.loads(json_str))

    def save_to_file(self, filepath: Union[str, Path]) -> bool:
        """Save the library to a JSON file."""
        try:
            path = Path(filepath)
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                f.write(self.to_json())
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving form library to {filepath}: {e}")
            return False

    @classmethod
    def load_from_file(cls, filepath: Union[str, Path]) -> Optional['FormLibrary']:
        """Load a library from a JSON file."""
        try:
            path = Path(filepath)
            if not path.exists():
                return None
            with open(path, 'r', encoding='utf-8') as f:
                return cls.from_json(f.read())
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Error loading form library from {filepath}: {e}")
            return None

    def prune_dangling(self) -> int:
        """
        Drop memberships whose form is not in the library.

        Returns:
            Number of memberships removed
        """
        known = {f.id for f in self.forms}
        removed = 0
        for form in self.forms:
            if not form.is_group:
                continue
            kept = [m for m in form.members if m.form_id in known]
            removed += len(form.members) - len(kept)
            form.members = kept
        return removed


__all__ = [
    "MAX_NAME_LENGTH",
    "FormKind",
    "OperatorKind",
    "MoveDirection",
    "StateFlag",
    "CompositionState",
    "Membership",
    "MaskForm",
    "FormLibrary",
]
