#!/usr/bin/env python3
"""
Replay timing and trip heuristics persisted through the settings manager
"""

from typing import Any, Dict, Optional

from core.exceptions import ConfigurationError
from core.settings_manager import SettingsManager, get_settings_manager
from fleet_replay.models.fleet_models import PlaybackSpeed, ReplaySettings


class ReplaySettingsStore:
    """Maps ReplaySettings onto canonical settings keys"""

    KEYS = {
        # Replay timing
        'MAX_ROUTE_POINTS': 'replay.max_route_points',
        'PLAYBACK_BASE_INTERVAL': 'replay.playback_base_interval_ms',
        'TRACKING_INTERVAL': 'replay.tracking_interval_ms',
        'DEFAULT_PLAYBACK_SPEED': 'replay.default_playback_speed',

        # Trip fallbacks
        'PLANNED_DISTANCE': 'heuristics.default_planned_distance_km',
        'ESTIMATED_DURATION': 'heuristics.default_estimated_duration_hours',
        'DEFAULT_BATTERY': 'heuristics.default_battery_level',
        'DEFAULT_SIGNAL_HEALTH': 'heuristics.default_signal_health',

        # Fuel, safety and speed heuristics
        'FUEL_PER_KM': 'heuristics.fuel_litres_per_km',
        'FUEL_DROP_PER_KM': 'heuristics.fuel_level_drop_per_km',
        'FUEL_FLOOR': 'heuristics.fuel_level_floor',
        'SAFETY_PENALTY': 'heuristics.safety_penalty_per_violation',
        'SAFETY_FLOOR': 'heuristics.safety_score_floor',
        'MAX_SPEED_FACTOR': 'heuristics.max_speed_factor',
        'IDLE_SPEED': 'heuristics.idle_speed_threshold_kmh',

        # Status inference
        'STATUS_PRECEDENCE': 'heuristics.status_precedence',
        'PAUSED_THRESHOLD': 'heuristics.paused_progress_threshold',
        'IN_PROGRESS_WINDOW': 'heuristics.in_progress_window_hours',
    }

    # ReplaySettings field behind each scalar key
    FIELDS = {
        'MAX_ROUTE_POINTS': ('max_route_points', int),
        'PLAYBACK_BASE_INTERVAL': ('playback_base_interval_ms', int),
        'TRACKING_INTERVAL': ('tracking_interval_ms', int),
        'DEFAULT_PLAYBACK_SPEED': ('default_playback_speed', int),
        'PLANNED_DISTANCE': ('default_planned_distance_km', float),
        'ESTIMATED_DURATION': ('default_estimated_duration_hours', float),
        'DEFAULT_BATTERY': ('default_battery_level', int),
        'DEFAULT_SIGNAL_HEALTH': ('default_signal_health', int),
        'FUEL_PER_KM': ('fuel_litres_per_km', float),
        'FUEL_DROP_PER_KM': ('fuel_level_drop_per_km', float),
        'FUEL_FLOOR': ('fuel_level_floor', float),
        'SAFETY_PENALTY': ('safety_penalty_per_violation', int),
        'SAFETY_FLOOR': ('safety_score_floor', int),
        'MAX_SPEED_FACTOR': ('max_speed_factor', float),
        'IDLE_SPEED': ('idle_speed_threshold_kmh', float),
        'PAUSED_THRESHOLD': ('paused_progress_threshold', int),
    }

    # Values that must be strictly positive
    POSITIVE_FIELDS = ('max_route_points', 'playback_base_interval_ms', 'tracking_interval_ms')

    def __init__(self, manager: Optional[SettingsManager] = None):
        self._manager = manager if manager is not None else get_settings_manager()
        self._manager.register_defaults(self._serialize(ReplaySettings()))

    def _serialize(self, replay_settings: ReplaySettings) -> Dict[str, Any]:
        data = replay_settings.to_dict()
        values = {self.KEYS[name]: data[field_name] for name, (field_name, _) in self.FIELDS.items()}

        # Stored as strings so ini files round-trip single-entry lists and None
        values[self.KEYS['STATUS_PRECEDENCE']] = ','.join(data['status_precedence'])
        window = data['in_progress_window_hours']
        values[self.KEYS['IN_PROGRESS_WINDOW']] = '' if window is None else str(window)
        return values

    def get(self, key: str, default: Any = None) -> Any:
        return self._manager.get(self.KEYS.get(key, key), default)

    def set(self, key: str, value: Any):
        self._manager.set(self.KEYS.get(key, key), value)

    def contains(self, key: str) -> bool:
        return self._manager.contains(self.KEYS.get(key, key))

    def load(self) -> ReplaySettings:
        """
        Build ReplaySettings from stored values

        Raises:
            ConfigurationError: If a stored value cannot be converted or is out of range
        """
        values: Dict[str, Any] = {}

        for name, (field_name, convert) in self.FIELDS.items():
            raw = self.get(name)
            if raw is None or raw == '':
                continue
            try:
                values[field_name] = convert(raw)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"Setting {self.KEYS[name]} has invalid value {raw!r}: {e}",
                    setting_key=self.KEYS[name]
                ) from e

        precedence = self.get('STATUS_PRECEDENCE')
        if isinstance(precedence, (list, tuple)):
            precedence = ','.join(str(p) for p in precedence)
        if precedence:
            values['status_precedence'] = [p.strip() for p in str(precedence).split(',') if p.strip()]

        window = self.get('IN_PROGRESS_WINDOW')
        if window not in (None, ''):
            try:
                values['in_progress_window_hours'] = float(window)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"Setting {self.KEYS['IN_PROGRESS_WINDOW']} has invalid value {window!r}",
                    setting_key=self.KEYS['IN_PROGRESS_WINDOW']
                ) from e

        try:
            replay_settings = ReplaySettings.from_dict(values)
        except ValueError as e:
            raise ConfigurationError(f"Invalid replay settings: {e}") from e

        self._validate(replay_settings)
        return replay_settings

    def _validate(self, replay_settings: ReplaySettings):
        for field_name in self.POSITIVE_FIELDS:
            if getattr(replay_settings, field_name) <= 0:
                raise ConfigurationError(
                    f"{field_name} must be positive, got {getattr(replay_settings, field_name)}",
                    setting_key=field_name
                )

    def save(self, replay_settings: ReplaySettings):
        """Store every replay and heuristic value, then sync"""
        self._validate(replay_settings)
        for key, value in self._serialize(replay_settings).items():
            self._manager.set(key, value)
        self._manager.sync()

    @property
    def default_playback_speed(self) -> PlaybackSpeed:
        """Playback speed for new drivers (falls back to x1)"""
        try:
            return PlaybackSpeed(int(self.get('DEFAULT_PLAYBACK_SPEED', 1)))
        except (TypeError, ValueError):
            return PlaybackSpeed.X1
