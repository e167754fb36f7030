"""
Settings Manager.

Handles masks manager settings with JSON file storage.
"""

import json
import logging
import os
from dataclasses import dataclass, field, asdict
from typing import Optional
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class NamingSettings:
    """Default names given to new forms."""
    max_name_length: int = 128
    leaf_name_format: str = "{kind} #{count}"
    group_name_format: str = "group #{count}"
    module_group_format: str = "grp {module}"


@dataclass
class StorageSettings:
    """
    Where the forms of a session are written.

    An empty forms_file means no write-through to disk; the host
    application's own history remains the only persistence.
    """
    forms_file: str = ""
    auto_save: bool = True


@dataclass
class PreviewSettings:
    """Selection preview behaviour."""
    flatten_groups: bool = True


@dataclass
class AppSettings:
    """Complete masks manager settings."""
    naming: NamingSettings = field(default_factory=NamingSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    preview: PreviewSettings = field(default_factory=PreviewSettings)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "naming": asdict(self.naming),
            "storage": asdict(self.storage),
            "preview": asdict(self.preview),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AppSettings":
        """Create from dictionary."""
        settings = cls()

        if "naming" in data:
            settings.naming = NamingSettings(**data["naming"])
        if "storage" in data:
            settings.storage = StorageSettings(**data["storage"])
        if "preview" in data:
            settings.preview = PreviewSettings(**data["preview"])

        return settings


class SettingsManager:
    """
    Manages masks manager settings with JSON file storage.

    Settings file location:
    - Windows: %APPDATA%/MaskManager/settings.json
    - Linux: ~/.config/MaskManager/settings.json
    - macOS: ~/Library/Application Support/MaskManager/settings.json
    """

    APP_NAME = "MaskManager"
    SETTINGS_FILE = "settings.json"

    def __init__(self, config_override: Optional[str] = None):
        """
        Initialize settings manager.

        Args:
            config_override: Optional path to override config file location.
                            Useful for testing.
        """
        self._settings = AppSettings()
        self._config_override = config_override
        self._settings_path = self._get_settings_path()
        self._ensure_settings_dir()
        self.load()

    @property
    def settings(self) -> AppSettings:
        """Get current settings."""
        return self._settings

    @property
    def settings_path(self) -> str:
        """Get the settings file path."""
        return str(self._settings_path)

    @property
    def naming(self) -> NamingSettings:
        return self._settings.naming

    @property
    def forms_path(self) -> Optional[Path]:
        """Forms file used for write-through, or None if disabled."""
        storage = self._settings.storage
        if not storage.forms_file or not storage.auto_save:
            return None
        return Path(storage.forms_file).expanduser()

    @forms_path.setter
    def forms_path(self, value: Optional[str]):
        self._settings.storage.forms_file = str(value) if value else ""
        self.save()

    def _get_settings_path(self) -> Path:
        """Get platform-specific settings directory."""
        if self._config_override:
            return Path(self._config_override)

        import platform
        system = platform.system()

        if system == "Windows":
            base = os.environ.get("APPDATA", os.path.expanduser("~"))
            config_dir = Path(base) / self.APP_NAME
        elif system == "Darwin":  # macOS
            config_dir = Path.home() / "Library" / "Application Support" / self.APP_NAME
        else:  # Linux and others
            xdg_config = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
            config_dir = Path(xdg_config) / self.APP_NAME

        return config_dir / self.SETTINGS_FILE

    def _ensure_settings_dir(self):
        """Create settings directory if it doesn't exist."""
        self._settings_path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> bool:
        """Load settings from file."""
        if not self._settings_path.exists():
            return False

        try:
            with open(self._settings_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self._settings = AppSettings.from_dict(data)
            return True
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Error loading settings: {e}")
            return False

    def save(self) -> bool:
        """Save settings to file."""
        try:
            self._ensure_settings_dir()
            with open(self._settings_path, "w", encoding="utf-8") as f:
                json.dump(self._settings.to_dict(), f, indent=2)
            return True
        except OSError as e:
            logger.error(f"Error saving settings: {e}")
            return False


# Global settings instance
_settings_manager: Optional[SettingsManager] = None


def get_settings(config_override: Optional[str] = None) -> SettingsManager:
    """
    Get the global settings manager instance.

    Args:
        config_override: Optional path to override config location.
                        Only used on first call to initialize.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager(config_override)
    return _settings_manager


def reset_settings_manager():
    """Reset the global settings manager (useful for testing)."""
    global _settings_manager
    _settings_manager = None
