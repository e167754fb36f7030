"""
Editing Module Models.

Editing modules are the host application's image operations. A module
that supports masks references one top-level group through its blend
parameters; that group is the module's active mask.
"""

from dataclasses import dataclass, field, asdict
from typing import List, Optional, Dict, Any, Iterator


@dataclass
class EditingModule:
    """
    An editing module as seen by the masks manager.

    Attributes:
        name: Display name (e.g., "exposure")
        blend_mask_group_id: Id of the module's mask group (0 = none)
        supports_masks: False for modules without blending or masking
    """
    name: str
    blend_mask_group_id: int = 0
    supports_masks: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EditingModule':
        return cls(
            name=data.get("name", ""),
            blend_mask_group_id=data.get("blend_mask_group_id", 0),
            supports_masks=data.get("supports_masks", True),
        )


@dataclass
class ModuleDirectory:
    """Ordered listing of the active editing modules."""
    modules: List[EditingModule] = field(default_factory=list)

    def __iter__(self) -> Iterator[EditingModule]:
        return iter(self.modules)

    def __len__(self) -> int:
        return len(self.modules)

    def add(self, module: EditingModule) -> EditingModule:
        self.modules.append(module)
        return module

    def get(self, name: str) -> Optional[EditingModule]:
        """Get a module by name."""
        for module in self.modules:
            if module.name == name:
                return module
        return None

    def masking_modules(self) -> List[EditingModule]:
        """Modules that can carry a mask group."""
        return [m for m in self.modules if m.supports_masks]

    def find_by_group(self, group_id: int) -> Optional[EditingModule]:
        """
        Find the module whose blend parameters reference a group.

        Returns the first masking module in directory order, or None.
        """
        if group_id <= 0:
            return None
        for module in self.masking_modules():
            if module.blend_mask_group_id == group_id:
                return module
        return None

    def to_list(self) -> List[Dict[str, Any]]:
        return [m.to_dict() for m in self.modules]

    @classmethod
    def from_list(cls, data: List[Dict[str, Any]]) -> 'ModuleDirectory':
        return cls(modules=[EditingModule.from_dict(d) for d in data])


__all__ = [
    "EditingModule",
    "ModuleDirectory",
]
