"""
Mask Manager Service.

Session controller behind the masks panel. It owns the row listing and
the selection, turns discrete user commands into membership edits, and
keeps registry, persistence, evaluation caches and the row listing in
step.

Usage:
    manager = MaskManager(registry, modules, settings)
    manager.listChanged.connect(panel.set_rows)
    manager.previewChanged.connect(renderer.show_preview)

    manager.select([(0,)])
    manager.set_operator(OperatorKind.DIFFERENCE)

Every mutating command ends with a commit. The rows are rebuilt first;
then the forms are written through to storage, the evaluation caches of
every affected group and of the groups containing it are invalidated, the
new rows are announced and the preview is re-requested. Observers never
see a mutated registry with a stale listing.
"""

import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from PyQt6.QtCore import QObject, pyqtSignal

from models.editing_module import EditingModule, ModuleDirectory
from models.errors import (
    MaskError, FormNotFoundError, DuplicateMembershipError,
    CycleRejectedError, InvalidSelectionError,
)
from models.mask_form import (
    CompositionState, FormKind, FormLibrary, MaskForm, Membership,
    MoveDirection, OperatorKind,
)
from models.view_node import DisplayNode
from services.composition import set_operator, toggle_inverse
from services.form_registry import FormRegistry
from services.membership import MembershipModel
from services.preview_builder import PreviewBuilder
from services.selection import HierarchyConsistencyEnforcer
from services.settings_manager import SettingsManager, get_settings
from services.usage_resolver import ExistingFormChoice, UsageReport, UsageResolver
from services.view_materializer import ViewMaterializer

logger = logging.getLogger(__name__)


class MaskManager(QObject):
    """
    Masks panel controller for one editing session.

    Signals:
        listChanged(object): Rows were rebuilt (List[DisplayNode])
        labelsUpdated(): Row labels were refreshed in place
        selectionChanged(object): Selection changed (List[DisplayNode])
        previewChanged(object): New preview group to render, or None
        editModuleChanged(object): Module whose mask is being shown, or None
        formsWritten(object): Forms were written through (List[int] of group ids)
        evaluationInvalidated(object): Cached results to drop (List[int] of group ids)
    """

    listChanged = pyqtSignal(object)
    labelsUpdated = pyqtSignal()
    selectionChanged = pyqtSignal(object)
    previewChanged = pyqtSignal(object)
    editModuleChanged = pyqtSignal(object)
    formsWritten = pyqtSignal(object)
    evaluationInvalidated = pyqtSignal(object)

    def __init__(self, registry: Optional[FormRegistry] = None,
                 modules: Optional[ModuleDirectory] = None,
                 settings: Optional[SettingsManager] = None,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        self._registry = registry if registry is not None else FormRegistry()
        self._modules = modules if modules is not None else ModuleDirectory()
        self._settings = settings if settings is not None else get_settings()

        self._membership = MembershipModel(self._registry)
        self._usage = UsageResolver(self._registry, self._modules)
        self._materializer = ViewMaterializer(self._registry, self._modules, self._usage)
        self._preview = PreviewBuilder(
            self._registry, self._settings.settings.preview.flatten_groups
        )
        self._enforcer = HierarchyConsistencyEnforcer()

        self._forms_path: Optional[Path] = self._settings.forms_path
        self._nodes: List[DisplayNode] = []
        self._selection: List[DisplayNode] = []
        self._preview_form: Optional[MaskForm] = None

        self.rebuild()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def registry(self) -> FormRegistry:
        return self._registry

    @property
    def modules(self) -> ModuleDirectory:
        return self._modules

    @property
    def membership(self) -> MembershipModel:
        return self._membership

    @property
    def nodes(self) -> List[DisplayNode]:
        """Current rows in display order."""
        return list(self._nodes)

    @property
    def selection(self) -> List[DisplayNode]:
        """Selected rows in display order."""
        return sorted(self._selection, key=lambda n: n.path)

    @property
    def preview_form(self) -> Optional[MaskForm]:
        return self._preview_form

    def node_at(self, path: Sequence[int]) -> Optional[DisplayNode]:
        """Get the row at a tree path."""
        path = tuple(path)
        for node in self._nodes:
            if node.path == path:
                return node
        return None

    # =========================================================================
    # Session Lifecycle
    # =========================================================================

    def open_session(self, path: Optional[Union[str, Path]] = None) -> bool:
        """
        Load the forms of a session.

        Args:
            path: Forms file; defaults to the configured forms file

        Returns:
            True if a library was loaded. On failure the current session
            and its forms file are kept.
        """
        target = Path(path) if path is not None else self._forms_path
        loaded = False
        if target is not None:
            library = FormLibrary.load_from_file(target)
            if library is not None:
                self._registry.load_library(library)
                if library.modules:
                    self._modules.modules[:] = ModuleDirectory.from_list(library.modules).modules
                self._forms_path = target
                loaded = True
                logger.info(f"Opened {len(self._registry)} forms from {target}")
            else:
                logger.warning(f"Could not open forms from {target}")
        self._selection = []
        self.rebuild()
        self.selectionChanged.emit([])
        self._update_preview()
        return loaded

    def close_session(self):
        """Drop every form and reset the panel state."""
        self._registry.clear()
        self._selection = []
        self.rebuild()
        self.selectionChanged.emit([])
        self._update_preview()

    def save(self) -> bool:
        """Write the whole library to the forms file, if one is set."""
        if self._forms_path is None:
            return False
        library = self._registry.to_library()
        library.modules = self._modules.to_list()
        return library.save_to_file(self._forms_path)

    # =========================================================================
    # Listing
    # =========================================================================

    def rebuild(self) -> List[DisplayNode]:
        """Re-materialize the rows from the registry."""
        self._nodes = self._materializer.materialize()
        self.listChanged.emit(list(self._nodes))
        return self._nodes

    def refresh_labels(self) -> int:
        """Refresh row labels without rebuilding the tree."""
        changed = self._materializer.refresh_labels(self._nodes)
        if changed:
            self.labelsUpdated.emit()
        return changed

    # =========================================================================
    # Selection
    # =========================================================================

    def select(self, paths: Iterable[Sequence[int]]) -> List[DisplayNode]:
        """
        Replace the selection.

        Rows that do not share depth and parent with the last requested
        row are dropped.
        """
        requested = []
        for path in paths:
            node = self.node_at(path)
            if node is not None and node not in requested:
                requested.append(node)
        try:
            self._enforcer.validate(requested)
            selection = requested
        except InvalidSelectionError as e:
            logger.debug(f"Restricting selection: {e}")
            selection = []
            for node in requested:
                selection = self._enforcer.extend(selection, node)
        self._set_selection(selection)
        return self.selection

    def extend_selection(self, path: Sequence[int]) -> List[DisplayNode]:
        """Add one row to the selection (ctrl-click)."""
        node = self.node_at(path)
        if node is not None:
            self._set_selection(self._enforcer.extend(self._selection, node))
        return self.selection

    def deselect(self, path: Sequence[int]) -> List[DisplayNode]:
        """Remove one row from the selection."""
        path = tuple(path)
        remaining = [n for n in self._selection if n.path != path]
        if len(remaining) != len(self._selection):
            self._set_selection(remaining)
        return self.selection

    def clear_selection(self):
        self._set_selection([])

    def select_form(self, form_id: int) -> Optional[DisplayNode]:
        """Select the top-level row showing a form (e.g. picked on the canvas)."""
        for node in self._nodes:
            if node.is_top_level and node.form_id == form_id:
                self._set_selection([node])
                return node
        return None

    def _set_selection(self, selection: List[DisplayNode]):
        self._selection = list(selection)
        self.selectionChanged.emit(self.selection)
        self._update_preview()

    def _update_preview(self):
        """Rebuild the preview group from the selection."""
        selected = self.selection
        if not selected:
            self._preview_form = None
        else:
            self._preview_form = self._preview.build((n.form_id, n.parent_group_id) for n in selected)
        self.previewChanged.emit(self._preview_form)

        module = None
        if len(selected) == 1:
            form = self._registry.get(selected[0].form_id)
            if form is not None and form.is_group:
                module = selected[0].owning_module
        self.editModuleChanged.emit(module)

    # =========================================================================
    # Commands
    # =========================================================================

    def _name(self, fmt: str, **kwargs) -> str:
        return fmt.format(count=len(self._registry) + 1, **kwargs)

    def _module_group(self, module: EditingModule) -> MaskForm:
        """The module's mask group, created on first use."""
        group = self._registry.get(module.blend_mask_group_id)
        if group is None or not group.is_group:
            naming = self._settings.naming
            group = self._registry.create(
                FormKind.GROUP, naming.module_group_format.format(module=module.name)
            )
            module.blend_mask_group_id = group.id
            logger.info(f"Created mask group {group.id} for module '{module.name}'")
        return group

    @staticmethod
    def _module_state(group: MaskForm) -> CompositionState:
        state = CompositionState(use=True, show=True)
        if group.members:
            state.operator = OperatorKind.UNION
        return state

    def create_leaf(self, kind: FormKind, owner_module: Optional[EditingModule] = None) -> MaskForm:
        """
        Create a new shape, optionally adding it to a module's mask group.

        Raises:
            ValueError: for FormKind.GROUP (use create_group_from_selection)
        """
        if kind == FormKind.GROUP:
            raise ValueError("create_leaf cannot create groups")
        form = self._registry.create(
            kind, self._name(self._settings.naming.leaf_name_format, kind=kind.value)
        )
        changed = [form.id]
        if owner_module is not None and not form.is_clone:
            group = self._module_group(owner_module)
            self._membership.append(group.id, form.id, state=self._module_state(group))
            changed.append(group.id)
        self._commit(changed)
        return form

    def create_group_from_selection(self) -> Optional[MaskForm]:
        """
        Group the selected top-level rows into a new group.

        The first member seeds the group; the others join with UNION.

        Returns:
            The new group, or None when the selection is empty or nested
        """
        selected = self.selection
        if not selected:
            return None
        if not all(n.is_top_level for n in selected):
            logger.debug("Only top-level rows can be grouped")
            return None

        group = self._registry.create(
            FormKind.GROUP, self._name(self._settings.naming.group_name_format)
        )
        for node in selected:
            try:
                self._membership.append(group.id, node.form_id)
            except FormNotFoundError as e:
                logger.debug(f"Skipping vanished form while grouping: {e}")
        self._selection = []
        self._commit([group.id])
        return group

    def add_existing(self, form_id: int, owner_module: EditingModule) -> Optional[Membership]:
        """
        Add an existing form to a module's mask group.

        Returns:
            The new membership, or None if the form is gone

        Raises:
            DuplicateMembershipError: form already in the module's group
            CycleRejectedError: form contains the module's group
            MaskError: form is a clone
        """
        form = self._registry.get(form_id)
        if form is None:
            logger.debug(f"Form {form_id} already gone, nothing to add")
            return None
        if form.is_clone:
            raise MaskError(f"Clone form {form_id} cannot join a mask group")

        created = self._registry.get(owner_module.blend_mask_group_id) is None
        group = self._module_group(owner_module)
        try:
            membership = self._membership.append(group.id, form_id, state=self._module_state(group))
        except (DuplicateMembershipError, CycleRejectedError) as e:
            logger.info(f"Add existing rejected: {e}")
            if created:
                self._commit([group.id])
            raise
        self._commit([group.id])
        return membership

    def delete_selected(self) -> int:
        """
        Delete the selected rows.

        Top-level rows delete the form itself (its memberships everywhere
        go with it; a group's members stay registered). Nested rows only
        leave their parent group.

        Returns:
            Number of rows acted on
        """
        selected = self.selection
        if not selected:
            return 0
        changed = set()
        done = 0
        for node in selected:
            if node.is_top_level:
                if node.form_id not in self._registry:
                    continue
                changed.update(self._registry.remove(node.form_id))
                done += 1
            elif self._membership.remove(node.parent_group_id, node.form_id):
                changed.add(node.parent_group_id)
                done += 1
        self._selection = []
        if done:
            self._commit(sorted(changed))
        else:
            self._set_selection([])
        return done

    def _apply_to_selected(self, action: Callable[[DisplayNode], bool],
                           nodes: Optional[List[DisplayNode]] = None) -> bool:
        """Run an edit on each selected nested row; commit if anything changed."""
        changed = set()
        for node in nodes if nodes is not None else self.selection:
            if node.is_top_level:
                continue
            try:
                if action(node):
                    changed.add(node.parent_group_id)
            except FormNotFoundError as e:
                logger.debug(f"Skipping vanished form: {e}")
        if changed:
            self._commit(sorted(changed))
        return bool(changed)

    def _selected_membership(self, node: DisplayNode) -> Membership:
        membership = self._membership.find(node.parent_group_id, node.form_id)
        if membership is None:
            raise FormNotFoundError(node.form_id)
        return membership

    def reorder_selected(self, direction: MoveDirection) -> bool:
        """
        Move the selected rows one step within their group.

        Adjacent selected rows move as a block; a block already at the
        edge of its group stays put.
        """
        nodes = self.selection
        if direction == MoveDirection.DOWN:
            nodes.reverse()
        step = -1 if direction == MoveDirection.UP else 1
        stuck = set()

        def move(node: DisplayNode) -> bool:
            group = self._registry.get(node.parent_group_id)
            if group is None:
                raise FormNotFoundError(node.parent_group_id)
            neighbour = group.member_index(node.form_id) + step
            if 0 <= neighbour < len(group.members):
                if (node.parent_group_id, group.members[neighbour].form_id) in stuck:
                    stuck.add(node.key)
                    return False
            if self._membership.reorder(node.parent_group_id, node.form_id, direction):
                return True
            stuck.add(node.key)
            return False

        return self._apply_to_selected(move, nodes)

    def set_operator(self, op: OperatorKind) -> bool:
        """Set the operator of every selected nested row."""
        return self._apply_to_selected(lambda n: set_operator(self._selected_membership(n), op))

    def toggle_inverse(self) -> bool:
        """Flip the inverse flag of every selected nested row."""
        return self._apply_to_selected(lambda n: toggle_inverse(self._selected_membership(n)))

    def set_opacity(self, opacity: float) -> bool:
        """Set the opacity of every selected nested row."""
        return self._apply_to_selected(
            lambda n: self._membership.set_opacity(n.parent_group_id, n.form_id, opacity)
        )

    def rename(self, form_id: int, new_name: str) -> bool:
        """
        Rename a form.

        Returns:
            True if the name changed
        """
        form = self._registry.get(form_id)
        if form is None:
            return False
        name = new_name[:self._settings.naming.max_name_length]
        if name == form.name:
            return False
        form.name = name
        self._registry.notify_changed(form_id)
        self._commit([form_id])
        return True

    # =========================================================================
    # Queries
    # =========================================================================

    def find_users(self, form_id: int) -> UsageReport:
        return self._usage.find_users(form_id)

    def existing_form_choices(self, module: EditingModule) -> List[ExistingFormChoice]:
        """Entries of the "add existing shape" menu for a module."""
        return self._usage.existing_form_choices(module.blend_mask_group_id, module)

    # =========================================================================
    # Commit
    # =========================================================================

    def _commit(self, form_ids: Sequence[int]):
        """Rebuild rows, write through, invalidate evaluations, then announce rows and preview."""
        ids = [i for i in form_ids if i in self._registry]

        # Rows and selection are current before any observer runs
        keys = [n.key for n in self.selection]
        self._nodes = self._materializer.materialize()
        selection: List[DisplayNode] = []
        for key in keys:
            node = self._first_node(key)
            if node is not None:
                selection = self._enforcer.extend(selection, node)
        self._selection = selection

        if self._forms_path is not None and self._settings.settings.storage.auto_save:
            self.save()
        self.formsWritten.emit(ids)

        invalidated = set()
        for form_id in ids:
            form = self._registry.get(form_id)
            if form.is_group:
                invalidated.add(form_id)
            invalidated.update(self._registry.ancestors(form_id))
        self.evaluationInvalidated.emit(sorted(invalidated))

        self.listChanged.emit(list(self._nodes))
        self._set_selection(selection)

    def _first_node(self, key: Tuple[int, int]) -> Optional[DisplayNode]:
        for node in self._nodes:
            if node.key == key:
                return node
        return None


__all__ = [
    "MaskManager",
]
