#!/usr/bin/env python3
"""
Replay state and summary models

State objects are replaced, never mutated: every advance returns a new
instance built with dataclasses.replace.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any, Tuple

from .fleet_models import GPSEvent, Location, PlaybackSpeed, Trip


@dataclass(frozen=True)
class LiveMetrics:
    """Metrics recomputed at every replay step"""
    distance_traveled: float = 0.0
    target_distance: float = 0.0  # planned (playback) or total (tracking) distance
    progress_percent: float = 0.0
    speed: float = 0.0
    battery: float = 100.0
    violations: int = 0
    signal_quality: str = "good"
    overspeed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'distance_traveled': self.distance_traveled,
            'target_distance': self.target_distance,
            'progress_percent': self.progress_percent,
            'speed': self.speed,
            'battery': self.battery,
            'violations': self.violations,
            'signal_quality': self.signal_quality,
            'overspeed': self.overspeed
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LiveMetrics':
        return cls(
            distance_traveled=float(data['distance_traveled']),
            target_distance=float(data['target_distance']),
            progress_percent=float(data['progress_percent']),
            speed=float(data['speed']),
            battery=float(data['battery']),
            violations=int(data['violations']),
            signal_quality=str(data['signal_quality']),
            overspeed=bool(data['overspeed'])
        )


@dataclass(frozen=True)
class SimulationState:
    """
    Playback replay position for one trip

    ``traveled_path`` holds one location per visited event, so its length is
    always ``current_event_index + 1``.
    """
    trip_id: str
    current_event_index: int
    is_playing: bool
    speed: PlaybackSpeed
    current_time: int
    traveled_path: Tuple[Location, ...]
    planned_route: Tuple[Location, ...]
    current_location: Location
    current_event: Optional[GPSEvent]
    metrics: LiveMetrics


@dataclass(frozen=True)
class TripTrackingState:
    """
    Continuous tracking position for one trip

    Persisted after every step and rehydrated before the next one.
    """
    trip_id: str
    current_index: int
    current_location: Location
    traveled_path: Tuple[Location, ...]
    metrics: LiveMetrics
    is_active: bool = True
    current_event: Optional[GPSEvent] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable blob for the key-value store"""
        return {
            'trip_id': self.trip_id,
            'current_index': self.current_index,
            'current_location': self.current_location.to_dict(),
            'current_event_id': self.current_event.event_id if self.current_event else None,
            'traveled_path': [loc.to_dict() for loc in self.traveled_path],
            'metrics': self.metrics.to_dict(),
            'is_active': self.is_active
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TripTrackingState':
        """
        Rebuild a state from a stored blob

        The event reference is not persisted; the engine reattaches it from
        the log using the restored index.

        Raises:
            KeyError, TypeError, ValueError: If the blob has the wrong shape
        """
        return cls(
            trip_id=str(data['trip_id']),
            current_index=int(data['current_index']),
            current_location=Location.from_dict(data['current_location']),
            traveled_path=tuple(Location.from_dict(loc) for loc in data['traveled_path']),
            metrics=LiveMetrics.from_dict(data['metrics']),
            is_active=bool(data.get('is_active', True))
        )


@dataclass(frozen=True)
class JourneySummary:
    """Progress panel figures recomputed from the event log"""
    events_covered: int
    total_events: int
    total_distance: float
    time_elapsed: str
    elapsed_seconds: int
    avg_speed: float

    @property
    def completion_percent(self) -> float:
        if self.total_events == 0:
            return 0.0
        return self.events_covered / self.total_events * 100


@dataclass(frozen=True)
class TrackingSummary:
    """Figures shown on a tracked vehicle's popup"""
    trip_id: str
    distance_covered: float
    total_distance: float
    progress_percent: float
    speed: float
    signal_quality: str
    overspeed: bool
    battery: float
    current_event_id: Optional[str]


@dataclass(frozen=True)
class FleetSummary:
    """Fleet-wide KPIs for the dashboard header"""
    total_trips: int = 0
    active_trips: int = 0
    completed_trips: int = 0
    cancelled_trips: int = 0
    completion_rate: int = 0
    on_time_rate: int = 0
    avg_fuel_efficiency: float = 0.0  # km per litre
    avg_safety_score: int = 0
    total_violations: int = 0
    active_alerts: int = 0


@dataclass
class FleetLoadResult:
    """
    Outcome of loading several event logs

    Failed logs do not prevent the rest of the fleet from loading.
    """
    trips: List[Trip] = field(default_factory=list)
    events_by_trip: Dict[str, List[GPSEvent]] = field(default_factory=dict)
    failures: List[Dict[str, Any]] = field(default_factory=list)  # source, error

    @property
    def loaded_count(self) -> int:
        return len(self.trips)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    def get_summary(self) -> str:
        """Get human-readable summary"""
        summary = f"Loaded {self.loaded_count} trip(s)"
        if self.failures:
            summary += f", {self.failed_count} failed"
        return summary
