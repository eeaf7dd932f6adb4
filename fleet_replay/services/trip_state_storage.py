#!/usr/bin/env python3
"""
Key-value storage for tracking replay positions

The tracking engine only needs string get/set/remove, so the backing store
is injected: an in-memory dict for tests and headless runs, QSettings for
the desktop application.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from PySide6.QtCore import QSettings

from core.exceptions import StorageError


STATE_KEY_PREFIX = "fleet_trip_"


def state_key(trip_id: str) -> str:
    """Storage key for a trip's tracking state"""
    return f"{STATE_KEY_PREFIX}{trip_id}"


class TripStateStorage(ABC):
    """String key-value store holding serialized tracking states"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Stored value, or None when the key is absent"""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a value

        Raises:
            StorageError: If the backend cannot persist the value
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key; absent keys are ignored"""
        pass


class InMemoryTripStateStorage(TripStateStorage):
    """Dictionary-backed storage"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self):
        return list(self._values.keys())


class QSettingsTripStateStorage(TripStateStorage):
    """
    QSettings-backed storage

    Values live under one settings group so they can be listed and cleared
    without touching the rest of the application's settings.
    """

    DEFAULT_GROUP = "replay_positions"

    def __init__(self, settings: Optional[QSettings] = None, group: str = DEFAULT_GROUP):
        self._settings = settings if settings is not None else QSettings("FleetReplay", "FleetReplay")
        self._group = group

    def _qualified(self, key: str) -> str:
        return f"{self._group}/{key}"

    def get(self, key: str) -> Optional[str]:
        value = self._settings.value(self._qualified(key))
        if value is None:
            return None
        return str(value)

    def set(self, key: str, value: str) -> None:
        self._settings.setValue(self._qualified(key), value)
        self._settings.sync()

        if self._settings.status() != QSettings.Status.NoError:
            raise StorageError(
                f"QSettings could not write {key} (status {self._settings.status()})",
                key=key
            )

    def remove(self, key: str) -> None:
        self._settings.remove(self._qualified(key))
        self._settings.sync()

    def keys(self):
        self._settings.beginGroup(self._group)
        try:
            return list(self._settings.childKeys())
        finally:
            self._settings.endGroup()

    def clear(self):
        """Drop every stored replay position"""
        self._settings.remove(self._group)
        self._settings.sync()
