#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Centralized settings management
"""

from typing import Any, Dict, Optional
from pathlib import Path
from PySide6.QtCore import QSettings


class SettingsManager:
    """QSettings-backed settings with canonical keys"""

    # Canonical keys for application-wide settings
    KEYS = {
        # Debug settings
        'DEBUG_LOGGING': 'debug.enable_logging',

        # Path settings
        'LAST_LOG_DIR': 'paths.last_log_directory'
    }

    def __init__(self, qsettings: Optional[QSettings] = None):
        """
        Initialize settings manager

        Args:
            qsettings: Settings store to use; the per-user native store when omitted
        """
        self._settings = qsettings if qsettings is not None else QSettings('FleetReplay', 'Settings')

        # Defaults contributed by feature modules, restored on reset
        self._registered_defaults: Dict[str, Any] = {}

        # Set defaults on initialization
        self._set_defaults()

    def _set_defaults(self):
        """Set default values for missing keys"""
        defaults = {self.KEYS['DEBUG_LOGGING']: False}
        defaults.update(self._registered_defaults)

        for key, default in defaults.items():
            if not self._settings.contains(key):
                self._settings.setValue(key, default)

    def register_defaults(self, defaults: Dict[str, Any]):
        """
        Add default values for a feature's canonical keys

        Missing keys are written immediately; the defaults are also restored
        by reset_all_settings.
        """
        self._registered_defaults.update(defaults)
        self._set_defaults()

    def get(self, key: str, default: Any = None) -> Any:
        """Get setting value

        Args:
            key: Either a KEYS constant or direct key string
            default: Default value if key not found

        Returns:
            Setting value or default
        """
        # Convert to canonical key if using constant
        canonical_key = self.KEYS.get(key, key)
        return self._settings.value(canonical_key, default)

    def set(self, key: str, value: Any):
        """Set setting value

        Args:
            key: Either a KEYS constant or direct key string
            value: Value to set
        """
        canonical_key = self.KEYS.get(key, key)
        self._settings.setValue(canonical_key, value)

    def sync(self):
        """Force settings to disk"""
        self._settings.sync()

    def contains(self, key: str) -> bool:
        """Check if settings contains key

        Args:
            key: Either a KEYS constant or direct key string

        Returns:
            True if key exists
        """
        canonical_key = self.KEYS.get(key, key)
        return self._settings.contains(canonical_key)

    # Convenience properties for common settings
    @property
    def debug_logging(self) -> bool:
        """Whether debug logging is enabled"""
        value = self.get('DEBUG_LOGGING', False)
        if isinstance(value, str):
            return value.lower() in ('true', '1', 'yes')
        return bool(value)

    @debug_logging.setter
    def debug_logging(self, enabled: bool):
        self.set('DEBUG_LOGGING', bool(enabled))

    @property
    def last_log_directory(self) -> Optional[Path]:
        """Last directory event logs were loaded from"""
        path_str = self.get('LAST_LOG_DIR', None)
        return Path(path_str) if path_str else None

    def set_last_log_directory(self, path: Path):
        """Set last log directory"""
        self.set('LAST_LOG_DIR', str(path))

    def reset_all_settings(self):
        """Clear all stored settings and restore defaults"""
        from core.logger import logger

        self._settings.clear()
        self._settings.sync()

        self._set_defaults()

        logger.info("All settings reset to defaults")


# Global settings instance, created on first use
_settings_manager: Optional[SettingsManager] = None


def get_settings_manager() -> SettingsManager:
    global _settings_manager

    if _settings_manager is None:
        _settings_manager = SettingsManager()

    return _settings_manager
