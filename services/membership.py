"""
Membership Model Service.

Edits the ordered member lists of groups held by a FormRegistry.

Rules enforced here:
- a form appears at most once among a group's direct members
- a group never contains itself, directly or through nested groups
- clone forms never join a group
- the first member of an empty group has no operator (seed of the fold);
  later members default to UNION
"""

import logging
from typing import Optional

from models.errors import (
    MaskError, FormNotFoundError, DuplicateMembershipError, CycleRejectedError,
)
from models.mask_form import (
    CompositionState, Membership, MaskForm, MoveDirection, OperatorKind,
)
from services.form_registry import FormRegistry

logger = logging.getLogger(__name__)


class MembershipModel:
    """
    Membership operations over a registry.

    Every successful mutation announces the changed group through
    FormRegistry.notify_changed().
    """

    def __init__(self, registry: FormRegistry):
        self._registry = registry

    def _get_group(self, group_id: int) -> MaskForm:
        group = self._registry.get(group_id)
        if group is None or not group.is_group:
            raise FormNotFoundError(group_id, f"Group {group_id} not found")
        return group

    def find(self, group_id: int, form_id: int) -> Optional[Membership]:
        """Find the direct membership of a form in a group."""
        group = self._registry.get(group_id)
        if group is None or not group.is_group:
            return None
        return group.get_member(form_id)

    def would_create_cycle(self, group_id: int, form_id: int) -> bool:
        """True if adding form_id under group_id makes the group reach itself."""
        if form_id == group_id:
            return True
        visited = set()
        pending = [form_id]
        while pending:
            current = pending.pop()
            if current in visited:
                continue
            visited.add(current)
            form = self._registry.get(current)
            if form is None or not form.is_group:
                continue
            for member in form.members:
                if member.form_id == group_id:
                    return True
                pending.append(member.form_id)
        return False

    def append(self, group_id: int, form_id: int,
               state: Optional[CompositionState] = None,
               opacity: float = 1.0) -> Membership:
        """
        Append a form to the end of a group's member list.

        Args:
            group_id: Owning group
            form_id: Form to reference
            state: Initial state; by default USE with no operator for the
                first member and UNION afterwards
            opacity: Contribution opacity

        Returns:
            The new membership

        Raises:
            FormNotFoundError: group or form is absent
            DuplicateMembershipError: form is already a direct member
            CycleRejectedError: the group would contain itself
            MaskError: form is a clone
        """
        group = self._get_group(group_id)
        form = self._registry.get(form_id)
        if form is None:
            raise FormNotFoundError(form_id)
        if form.is_clone:
            raise MaskError(f"Clone form {form_id} cannot join group {group_id}")
        if group.get_member(form_id) is not None:
            raise DuplicateMembershipError(group_id, form_id)
        if self.would_create_cycle(group_id, form_id):
            raise CycleRejectedError(group_id, form_id)

        if state is None:
            state = CompositionState()
            if group.members:
                state.operator = OperatorKind.UNION

        membership = Membership(form_id=form_id, parent_id=group_id, state=state, opacity=opacity)
        group.members.append(membership)
        logger.debug(f"Added form {form_id} to group {group_id} ({state.operator})")
        self._registry.notify_changed(group_id)
        return membership

    def remove(self, group_id: int, form_id: int) -> bool:
        """
        Remove a form from a group. The form itself stays registered.

        Returns:
            True if a membership was removed
        """
        group = self._registry.get(group_id)
        if group is None or not group.is_group:
            return False
        index = group.member_index(form_id)
        if index < 0:
            return False
        group.members.pop(index)
        logger.debug(f"Removed form {form_id} from group {group_id}")
        self._registry.notify_changed(group_id)
        return True

    def reorder(self, group_id: int, form_id: int, direction: MoveDirection) -> bool:
        """
        Swap a membership with its neighbour in the given direction.

        Moving the head up or the tail down is a no-op.

        Returns:
            True if the order changed
        """
        group = self._registry.get(group_id)
        if group is None or not group.is_group:
            return False
        index = group.member_index(form_id)
        if index < 0:
            return False
        other = index - 1 if direction == MoveDirection.UP else index + 1
        if other < 0 or other >= len(group.members):
            return False
        members = group.members
        members[index], members[other] = members[other], members[index]
        logger.debug(f"Moved form {form_id} {direction.value} in group {group_id}")
        self._registry.notify_changed(group_id)
        return True

    def set_opacity(self, group_id: int, form_id: int, opacity: float) -> bool:
        """
        Set the opacity of a membership (clamped to [0, 1]).

        Returns:
            True if the opacity changed
        """
        membership = self.find(group_id, form_id)
        if membership is None:
            return False
        opacity = max(0.0, min(1.0, opacity))
        if membership.opacity == opacity:
            return False
        membership.opacity = opacity
        self._registry.notify_changed(group_id)
        return True


__all__ = [
    "MembershipModel",
]
