"""
Pytest configuration and shared fixtures for masks manager tests.
"""

import pytest
import tempfile
import shutil
from pathlib import Path
from typing import Generator, List, Tuple

# Add parent directory to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from models.editing_module import EditingModule, ModuleDirectory
from models.mask_form import CompositionState, FormKind, OperatorKind
from services.form_registry import FormRegistry
from services.membership import MembershipModel
from services.mask_manager import MaskManager
from services.settings_manager import SettingsManager


# ============== Temporary Directory Fixtures ==============

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    tmp = tempfile.mkdtemp(prefix="mask_manager_test_")
    yield Path(tmp)
    shutil.rmtree(tmp, ignore_errors=True)


# ============== Registry Fixtures ==============

@pytest.fixture
def registry() -> FormRegistry:
    """Create an empty registry."""
    return FormRegistry()


@pytest.fixture
def populated_registry() -> FormRegistry:
    """
    Registry with nested groups.

    Ids: A=1 (circle), B=2 (curve), C=3 (circle), spot=4 (clone),
    inner=5 {A, B difference}, outer=6 {inner, C intersection inverse 50%}.
    """
    registry = FormRegistry()
    a = registry.create(FormKind.CIRCLE, "A")
    b = registry.create(FormKind.CURVE, "B")
    c = registry.create(FormKind.CIRCLE, "C")
    registry.create(FormKind.CLONE, "spot")
    inner = registry.create(FormKind.GROUP, "inner")
    outer = registry.create(FormKind.GROUP, "outer")

    model = MembershipModel(registry)
    model.append(inner.id, a.id)
    model.append(inner.id, b.id, CompositionState(OperatorKind.DIFFERENCE))
    model.append(outer.id, inner.id)
    model.append(outer.id, c.id, CompositionState(OperatorKind.INTERSECTION, inverse=True),
                 opacity=0.5)
    return registry


@pytest.fixture
def membership(populated_registry: FormRegistry) -> MembershipModel:
    return MembershipModel(populated_registry)


# ============== Module Fixtures ==============

@pytest.fixture
def modules() -> ModuleDirectory:
    """
    Active modules: exposure owns the outer group, tone has no mask yet,
    colorin cannot carry masks.
    """
    return ModuleDirectory(modules=[
        EditingModule("exposure", blend_mask_group_id=6),
        EditingModule("tone"),
        EditingModule("colorin", supports_masks=False),
    ])


# ============== Settings / Manager Fixtures ==============

@pytest.fixture
def settings(temp_dir: Path) -> SettingsManager:
    """Settings manager backed by a temporary file."""
    return SettingsManager(str(temp_dir / "settings.json"))


@pytest.fixture
def manager(populated_registry: FormRegistry, modules: ModuleDirectory,
            settings: SettingsManager) -> MaskManager:
    """Manager over the populated registry, without write-through."""
    return MaskManager(populated_registry, modules, settings)


@pytest.fixture
def empty_manager(registry: FormRegistry, settings: SettingsManager) -> MaskManager:
    return MaskManager(registry, ModuleDirectory(), settings)


# ============== Helpers ==============

class SignalRecorder:
    """Records emissions of MaskManager signals in order."""

    SIGNALS = [
        "listChanged",
        "labelsUpdated",
        "selectionChanged",
        "previewChanged",
        "editModuleChanged",
        "formsWritten",
        "evaluationInvalidated",
    ]

    def __init__(self, manager: MaskManager):
        self.events: List[Tuple[str, object]] = []
        for name in self.SIGNALS:
            getattr(manager, name).connect(self._make_slot(name))

    def _make_slot(self, name: str):
        def slot(*args):
            self.events.append((name, args[0] if args else None))
        return slot

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def last(self, name: str):
        for event, payload in reversed(self.events):
            if event == name:
                return payload
        raise AssertionError(f"{name} was not emitted")

    def clear(self):
        self.events.clear()


@pytest.fixture
def recorder(manager: MaskManager) -> SignalRecorder:
    return SignalRecorder(manager)

