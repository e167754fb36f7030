"""
Usage Resolver Service.

Answers "where is this form used?" for the masks tree badges and for the
"add existing shape" menu.

The membership graph is not a tree: one form can be reachable through
several groups. Each query keeps a visited set of group ids so every group
is inspected once, which bounds the walk and keeps provenance free of
duplicates even if a cycle slipped into the data.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from models.editing_module import EditingModule, ModuleDirectory
from models.mask_form import MaskForm
from services.form_registry import FormRegistry

logger = logging.getLogger(__name__)


USED_BY_SELF = -1


@dataclass
class UsageReport:
    """
    Result of a usage query.

    Attributes:
        count: Number of referencing groups/modules, or USED_BY_SELF
        provenance: Names of the referencing groups/modules in walk order
    """
    count: int = 0
    provenance: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Newline-joined provenance, as shown in the tooltip."""
        return "\n".join(self.provenance)

    @property
    def used_by_self(self) -> bool:
        return self.count == USED_BY_SELF

    @property
    def is_used(self) -> bool:
        return self.count > 0


@dataclass
class ExistingFormChoice:
    """An entry of the "add existing shape" menu."""
    form_id: int
    label: str


class UsageResolver:
    """Back-reference queries over a registry and the module directory."""

    def __init__(self, registry: FormRegistry, modules: Optional[ModuleDirectory] = None):
        self._registry = registry
        self._modules = modules if modules is not None else ModuleDirectory()

    def find_users(self, form_id: int, scope_group_id: Optional[int] = None) -> UsageReport:
        """
        Find every group holding a membership for a form.

        Args:
            form_id: Form to look for
            scope_group_id: Restrict the walk to this group's subtree

        Returns:
            UsageReport with the count and the owning group names
        """
        report = UsageReport()
        visited: Set[int] = set()
        if scope_group_id is None:
            roots = self._registry.groups()
        else:
            scope = self._registry.get(scope_group_id)
            roots = [scope] if scope is not None and scope.is_group else []
        for group in roots:
            self._walk(group, form_id, report, visited)
        return report

    def _walk(self, group: MaskForm, form_id: int, report: UsageReport, visited: Set[int]):
        if group.id in visited:
            return
        visited.add(group.id)
        for member in group.members:
            form = self._registry.get(member.form_id)
            if form is None:
                continue
            if member.form_id == form_id:
                report.count += 1
                report.provenance.append(group.name)
            if form.is_group:
                self._walk(form, form_id, report, visited)

    def find_module_users(self, form_id: int,
                          current_module: Optional[EditingModule] = None) -> UsageReport:
        """
        Find the modules whose mask group directly contains a form.

        Returns a report with count USED_BY_SELF as soon as the current
        module is one of them.
        """
        report = UsageReport()
        for module in self._modules.masking_modules():
            group = self._registry.get(module.blend_mask_group_id)
            if group is None or not group.is_group or group.get_member(form_id) is None:
                continue
            if current_module is not None and module.name == current_module.name:
                return UsageReport(count=USED_BY_SELF)
            report.count += 1
            report.provenance.append(module.name)
        return report

    def existing_form_choices(self, group_id: int,
                              current_module: Optional[EditingModule] = None) -> List[ExistingFormChoice]:
        """
        Forms that can be added to a group as existing shapes.

        Clones, the group itself and forms the current module already uses
        are left out. Labels list the other modules using the form, e.g.
        "circle #1 ( exposure tone )".
        """
        choices = []
        for form in self._registry.all():
            if form.is_clone or form.id == group_id:
                continue
            report = self.find_module_users(form.id, current_module)
            if report.used_by_self:
                continue
            label = form.name
            if report.is_used:
                label = f"{label} ( {' '.join(report.provenance)} )"
            choices.append(ExistingFormChoice(form_id=form.id, label=label))
        return choices


__all__ = [
    "USED_BY_SELF",
    "UsageReport",
    "ExistingFormChoice",
    "UsageResolver",
]
