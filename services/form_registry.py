"""
Form Registry Service.

Process-wide store of every mask form of an editing session, keyed by id.
The registry owns form identity and lifetime; groups only reference their
members. Removing a form prunes every membership pointing at it.

Usage:
    registry = FormRegistry()
    circle = registry.create(FormKind.CIRCLE)
    group = registry.create(FormKind.GROUP, "my group")

    registry.remove(circle.id)  # also strips it from every group

Collaborators holding a group id must re-resolve it through get() rather
than keep the MaskForm object, since removal and recreation change identity.
"""

import logging
from typing import Dict, Optional, List, Iterator, Iterable

from PyQt6.QtCore import QObject, pyqtSignal

from models.mask_form import FormKind, MaskForm, FormLibrary

logger = logging.getLogger(__name__)


class FormRegistry(QObject):
    """
    Registry of mask forms for one editing session.

    Signals:
        formAdded(int): Emitted when a form is inserted (form id)
        formRemoved(int): Emitted when a form is removed (form id)
        formChanged(int): Emitted when a form's name or members change (form id)
    """

    formAdded = pyqtSignal(int)
    formRemoved = pyqtSignal(int)
    formChanged = pyqtSignal(int)

    def __init__(self, forms: Optional[Iterable[MaskForm]] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._forms: Dict[int, MaskForm] = {}
        self._next_id = 1
        for form in forms or []:
            self.insert(form)

    # =========================================================================
    # Lookup
    # =========================================================================

    def get(self, form_id: int) -> Optional[MaskForm]:
        """
        Get a form by id.

        Returns:
            MaskForm or None if the id is unknown (already gone)
        """
        return self._forms.get(form_id)

    def all(self) -> List[MaskForm]:
        """All forms in insertion order."""
        return list(self._forms.values())

    def groups(self) -> List[MaskForm]:
        """All group forms in insertion order."""
        return [f for f in self._forms.values() if f.is_group]

    def __len__(self) -> int:
        return len(self._forms)

    def __contains__(self, form_id: int) -> bool:
        return form_id in self._forms

    def __iter__(self) -> Iterator[MaskForm]:
        return iter(self.all())

    @property
    def next_id(self) -> int:
        return self._next_id

    # =========================================================================
    # Mutation
    # =========================================================================

    def insert(self, form: MaskForm) -> int:
        """
        Insert a form, allocating an id if it has none.

        Args:
            form: Form to insert; an id <= 0 requests a fresh one

        Returns:
            The form's id

        Raises:
            ValueError: if the id is already taken
        """
        if form.id <= 0:
            form.id = self._next_id
        elif form.id in self._forms:
            raise ValueError(f"Form id {form.id} already registered")
        for member in form.members:
            member.parent_id = form.id
        self._forms[form.id] = form
        self._next_id = max(self._next_id, form.id + 1)
        logger.debug(f"Inserted {form.kind.value} form {form.id} '{form.name}'")
        self.formAdded.emit(form.id)
        return form.id

    def create(self, kind: FormKind, name: str = "") -> MaskForm:
        """Create and insert a new empty form."""
        form = MaskForm(id=0, kind=kind, name=name)
        self.insert(form)
        if not form.name:
            form.name = f"{kind.value} #{form.id}"
        return form

    def remove(self, form_id: int) -> List[int]:
        """
        Remove a form and prune every membership referencing it.

        Removing an unknown id is a no-op.

        Returns:
            Ids of the groups that lost a membership
        """
        form = self._forms.pop(form_id, None)
        if form is None:
            logger.debug(f"Form {form_id} already gone, nothing to remove")
            return []

        pruned = []
        for group in self.groups():
            kept = [m for m in group.members if m.form_id != form_id]
            if len(kept) != len(group.members):
                group.members = kept
                pruned.append(group.id)

        logger.debug(f"Removed form {form_id}, pruned from groups {pruned}")
        self.formRemoved.emit(form_id)
        for group_id in pruned:
            self.formChanged.emit(group_id)
        return pruned

    def notify_changed(self, form_id: int):
        """Announce an in-place change of a form."""
        if form_id in self._forms:
            self.formChanged.emit(form_id)

    def clear(self):
        """Drop every form (session teardown)."""
        ids = list(self._forms)
        self._forms.clear()
        self._next_id = 1
        for form_id in ids:
            self.formRemoved.emit(form_id)

    # =========================================================================
    # Graph Queries
    # =========================================================================

    def containing_groups(self, form_id: int) -> List[int]:
        """Ids of the groups holding a direct membership for a form."""
        return [g.id for g in self.groups() if g.get_member(form_id) is not None]

    def ancestors(self, form_id: int) -> List[int]:
        """
        Ids of every group that contains a form, directly or transitively.

        Each group is reported once even when reachable by several paths.
        """
        result = []
        seen = {form_id}
        pending = [form_id]
        while pending:
            current = pending.pop()
            for group_id in self.containing_groups(current):
                if group_id not in seen:
                    seen.add(group_id)
                    result.append(group_id)
                    pending.append(group_id)
        return result

    # =========================================================================
    # Persistence
    # =========================================================================

    def to_library(self) -> FormLibrary:
        """Snapshot the registry into a serializable library."""
        return FormLibrary(next_id=self._next_id, forms=[f.copy() for f in self._forms.values()])

    def load_library(self, library: FormLibrary):
        """
        Replace the registry content with a library's forms.

        Raises:
            ValueError: if the library repeats a form id (registry unchanged)
        """
        ids = [f.id for f in library.forms]
        if len(ids) != len(set(ids)):
            raise ValueError("Form library repeats a form id")
        self.clear()
        pruned = library.prune_dangling()
        if pruned:
            logger.warning(f"Dropped {pruned} dangling membership(s) while loading")
        for form in library.forms:
            self.insert(form.copy())
        self._next_id = max(self._next_id, library.next_id)


__all__ = [
    "FormRegistry",
]
