"""
View Materializer Service.

Walks the registry and produces the ordered, depth-first row listing of
the masks tree. Groups are listed first, each followed by its member
subtree; the remaining top-level shapes come after. Clone forms are
skipped at every level.

Only top-level rows are editable (renaming applies to the canonical form)
and only top-level rows carry the "used elsewhere" badge. A top-level
group referenced by a module's blend parameters is attributed to that
module, and so is every row beneath it.
"""

import logging
from typing import List, Optional, Set, Tuple

from models.editing_module import EditingModule, ModuleDirectory
from models.mask_form import CompositionState, MaskForm
from models.view_node import DisplayNode
from services.composition import format_label
from services.form_registry import FormRegistry
from services.usage_resolver import UsageResolver

logger = logging.getLogger(__name__)


class ViewMaterializer:
    """Builds DisplayNode listings from a registry."""

    def __init__(self, registry: FormRegistry,
                 modules: Optional[ModuleDirectory] = None,
                 usage: Optional[UsageResolver] = None):
        self._registry = registry
        self._modules = modules if modules is not None else ModuleDirectory()
        self._usage = usage if usage is not None else UsageResolver(registry, self._modules)

    def materialize(self) -> List[DisplayNode]:
        """Build the full row listing, groups first."""
        nodes: List[DisplayNode] = []
        top_level = [f for f in self._registry.all() if f.is_group]
        top_level += [f for f in self._registry.all() if not f.is_group and not f.is_clone]
        for index, form in enumerate(top_level):
            self._walk(nodes, form, 0, (index,), None, CompositionState(use=False), 1.0, set())
        logger.debug(f"Materialized {len(nodes)} rows from {len(self._registry)} forms")
        return nodes

    def _walk(self, nodes: List[DisplayNode], form: MaskForm, parent_id: int,
              path: Tuple[int, ...], module: Optional[EditingModule],
              state: CompositionState, opacity: float, ancestors: Set[int]):
        used = False
        tooltip = ""
        if parent_id == 0:
            report = self._usage.find_users(form.id)
            used = report.is_used
            tooltip = report.text
            if form.is_group and module is None:
                module = self._modules.find_by_group(form.id)

        nodes.append(DisplayNode(
            label=format_label(form.name, opacity),
            form_id=form.id,
            parent_group_id=parent_id,
            path=path,
            editable=parent_id == 0,
            owning_module=module,
            operator=state.operator,
            inverse=state.inverse,
            used=used,
            tooltip_text=tooltip,
        ))

        if not form.is_group:
            return
        ancestors = ancestors | {form.id}
        index = 0
        for member in form.members:
            child = self._registry.get(member.form_id)
            if child is None or child.is_clone:
                continue
            if child.id in ancestors:
                logger.warning(f"Group {child.id} contains itself, not expanding it again")
                continue
            self._walk(nodes, child, form.id, path + (index,), module,
                       member.state, member.opacity, ancestors)
            index += 1

    def refresh_labels(self, nodes: List[DisplayNode]) -> int:
        """
        Re-derive row labels from the registry in place.

        Returns:
            Number of labels that changed
        """
        changed = 0
        for node in nodes:
            form = self._registry.get(node.form_id)
            if form is None:
                continue
            opacity = 1.0
            parent = self._registry.get(node.parent_group_id)
            if parent is not None and parent.is_group:
                member = parent.get_member(node.form_id)
                if member is not None:
                    opacity = member.opacity
            label = format_label(form.name, opacity)
            if label != node.label:
                node.label = label
                changed += 1
        return changed


__all__ = [
    "ViewMaterializer",
]
