"""Services package."""

from .form_registry import FormRegistry
from .membership import MembershipModel
from .composition import set_operator, toggle_inverse, format_label
from .selection import HierarchyConsistencyEnforcer
from .preview_builder import PREVIEW_FORM_ID, PreviewBuilder
from .usage_resolver import (
    USED_BY_SELF,
    UsageReport,
    ExistingFormChoice,
    UsageResolver,
)
from .view_materializer import ViewMaterializer
from .settings_manager import (
    SettingsManager,
    AppSettings,
    NamingSettings,
    StorageSettings,
    PreviewSettings,
    get_settings,
    reset_settings_manager,
)
from .mask_manager import MaskManager

__all__ = [
    "FormRegistry",
    "MembershipModel",
    "set_operator",
    "toggle_inverse",
    "format_label",
    "HierarchyConsistencyEnforcer",
    "PREVIEW_FORM_ID",
    "PreviewBuilder",
    "USED_BY_SELF",
    "UsageReport",
    "ExistingFormChoice",
    "UsageResolver",
    "ViewMaterializer",
    "SettingsManager",
    "AppSettings",
    "NamingSettings",
    "StorageSettings",
    "PreviewSettings",
    "get_settings",
    "reset_settings_manager",
    "MaskManager",
]
