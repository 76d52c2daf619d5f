"""
Persistent Settings Manager

Description: Manages persistent default settings for the media downloader commands
Author: Eric Hiss (GitHub: EricRollei)
Contact: eric@historic.camera, eric@rollei.us
License: Dual License (Non-Commercial and Commercial Use)
Copyright (c) 2025 Eric Hiss. All rights reserved.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Optional, Any, Dict

logger = logging.getLogger(__name__)

SETTINGS_ENV_VAR = "MEDIA_DOWNLOADER_SETTINGS"

DEFAULT_SETTINGS = {
    "download": {
        "depth": 1,
        "concurrency": 5,
        "delay_ms": 100,
        "timeout": 30.0,
        "max_retries": 3,
        "retry_delay_ms": 1000,
        "network_idle_timeout_ms": 5000,
        "hash_algorithm": "average_hash",
        "hash_size": 8,
        "similarity_threshold": 5,
    },
    "dedup": {
        "hash_algorithm": "average_hash",
        "hash_size": 8,
        "similarity_threshold": 5,
    },
}


def default_settings_path() -> Path:
    """Settings file location: $MEDIA_DOWNLOADER_SETTINGS, else ~/.media_downloader/settings.json."""
    env_path = os.environ.get(SETTINGS_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".media_downloader" / "settings.json"


class PersistentSettings:
    """
    Manages persistent settings for the download and dedup commands.
    Settings are stored in a JSON file; missing sections and keys fall back to
    DEFAULT_SETTINGS. Loading never creates the file, only set() writes it.
    """

    def __init__(self, settings_file: Optional[Path] = None):
        """Initialize the settings manager."""
        self._settings_file = Path(settings_file) if settings_file else default_settings_path()
        self._settings = self._load_settings()

    @property
    def settings_file(self) -> Path:
        return self._settings_file

    def _load_settings(self) -> Dict[str, Any]:
        """Load settings from the JSON file, merged over the defaults."""
        settings = copy.deepcopy(DEFAULT_SETTINGS)

        if not self._settings_file.exists():
            return settings

        try:
            with open(self._settings_file, 'r', encoding='utf-8') as f:
                loaded = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Error loading persistent settings from {self._settings_file}: {e}")
            return settings

        if not isinstance(loaded, dict):
            logger.warning(f"Ignoring malformed settings file {self._settings_file}")
            return settings

        # Merge with defaults to ensure all keys exist
        for section, values in loaded.items():
            if isinstance(values, dict):
                settings.setdefault(section, {}).update(values)
        return settings

    def _save_settings(self) -> bool:
        """Save current settings to the JSON file."""
        try:
            self._settings_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self._settings_file, 'w', encoding='utf-8') as f:
                json.dump(self._settings, f, indent=4)
            return True
        except OSError as e:
            logger.error(f"Error saving persistent settings: {e}")
            return False

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Get a setting value for a command.

        Args:
            section: The command section ('download', 'dedup')
            key: The setting key to retrieve
            default: Default value if setting not found

        Returns:
            The setting value or default
        """
        value = self._settings.get(section, {}).get(key)
        return default if value is None else value

    def set(self, section: str, key: str, value: Any) -> bool:
        """
        Set a setting value and persist it.

        String values are coerced to the type of the built-in default for the
        same key, so '8' stays an int for 'concurrency'.

        Returns:
            True if successful, False otherwise
        """
        known = DEFAULT_SETTINGS.get(section, {}).get(key)
        if known is not None and isinstance(value, str):
            value = _coerce(value, type(known))

        self._settings.setdefault(section, {})[key] = value
        return self._save_settings()

    def get_all(self, section: str) -> Dict[str, Any]:
        """Get all settings for a command section."""
        return dict(self._settings.get(section, {}))

    def as_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._settings)

    def reload(self) -> None:
        """Reload settings from file (useful if file was edited externally)."""
        self._settings = self._load_settings()


def _coerce(value: str, target_type: type) -> Any:
    if target_type is bool:
        return value.strip().lower() in ("1", "true", "yes", "on")
    try:
        return target_type(value)
    except ValueError:
        raise ValueError(f"Expected {target_type.__name__}, got {value!r}")


# Global instance for easy access
_settings_manager: Optional[PersistentSettings] = None


def get_settings_manager(settings_file: Optional[Path] = None) -> PersistentSettings:
    """Get the settings manager; an explicit path always gets a fresh instance."""
    global _settings_manager
    if settings_file is not None:
        return PersistentSettings(settings_file)
    if _settings_manager is None:
        _settings_manager = PersistentSettings()
    return _settings_manager

