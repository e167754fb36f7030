"""
Preview Builder Service.

Turns the current selection of the masks tree into one transient group
that the evaluation service can render in a single pass. Selected groups
are inlined ("ungrouped") so the transient group lists leaf shapes only,
each with the operator and inverse flag it carries in its own group.

The transient group is never registered; the caller drops it once the
preview has been rendered.
"""

import logging
from typing import Iterable, List, Optional, Set, Tuple

from models.mask_form import CompositionState, FormKind, MaskForm, Membership
from services.form_registry import FormRegistry

logger = logging.getLogger(__name__)


PREVIEW_FORM_ID = 0


class PreviewBuilder:
    """Builds flattened preview groups from selections."""

    def __init__(self, registry: FormRegistry, flatten_groups: bool = True):
        self._registry = registry
        self.flatten_groups = flatten_groups

    def _selected_membership(self, form_id: int, parent_id: int) -> Membership:
        """Membership for a selected row: its own state when it has a parent group."""
        parent = self._registry.get(parent_id) if parent_id else None
        existing = parent.get_member(form_id) if parent is not None and parent.is_group else None
        if existing is None:
            return Membership(form_id=form_id, parent_id=parent_id, state=CompositionState(use=True))
        membership = existing.copy()
        membership.state.use = True
        return membership

    def build(self, selection: Iterable[Tuple[int, int]]) -> Optional[MaskForm]:
        """
        Build the preview group for a selection.

        Args:
            selection: (form_id, parent_group_id) pairs in display order

        Returns:
            Transient group, or None when nothing previewable is selected
        """
        selected = MaskForm(id=PREVIEW_FORM_ID, kind=FormKind.GROUP, name="selection")
        for form_id, parent_id in selection:
            form = self._registry.get(form_id)
            if form is None or form.is_clone:
                continue
            selected.members.append(self._selected_membership(form_id, parent_id))

        if not selected.members:
            return None
        if not self.flatten_groups:
            return selected
        return self.ungroup(selected)

    def ungroup(self, source: MaskForm) -> MaskForm:
        """
        Flatten a group: nested groups are replaced by their leaf members.

        Nested memberships keep their operator, inverse and show flags;
        opacities multiply along the nesting path.
        """
        dest = MaskForm(id=PREVIEW_FORM_ID, kind=FormKind.GROUP, name=source.name)
        self._ungroup_into(dest.members, source.members, 1.0, {source.id})
        return dest

    def _ungroup_into(self, dest: List[Membership], members: List[Membership],
                      opacity: float, ancestors: Set[int]):
        for member in members:
            form = self._registry.get(member.form_id)
            if form is None or form.is_clone:
                continue
            if form.is_group:
                if form.id in ancestors:
                    logger.warning(f"Group {form.id} contains itself, skipping nested copy")
                    continue
                self._ungroup_into(dest, form.members, opacity * member.opacity,
                                   ancestors | {form.id})
                continue
            flat = member.copy()
            flat.state.use = True
            flat.opacity = opacity * member.opacity
            dest.append(flat)


__all__ = [
    "PREVIEW_FORM_ID",
    "PreviewBuilder",
]
