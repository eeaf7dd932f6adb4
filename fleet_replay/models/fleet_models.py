#!/usr/bin/env python3
"""
Fleet Replay Data Models

Defines the telemetry event, the derived Trip aggregate and the replay
configuration. Events mirror the recorded JSON log one-to-one; the Trip is
built once per log and is never mutated by replay.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone, timedelta
from typing import List, Dict, Optional, Any, Tuple
from enum import Enum


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_epoch_ms(moment: datetime) -> int:
    """Absolute epoch milliseconds for an aware datetime"""
    return (moment - EPOCH) // timedelta(milliseconds=1)


class EventType(Enum):
    """Telemetry event kinds emitted by the on-board simulator"""
    TRIP_STARTED = "trip_started"
    VEHICLE_STOPPED = "vehicle_stopped"
    REFUELING_STARTED = "refueling_started"
    REFUELING_COMPLETED = "refueling_completed"
    TRIP_COMPLETED = "trip_completed"
    TRIP_CANCELLED = "trip_cancelled"
    DEVICE_ERROR = "device_error"
    SIGNAL_LOST = "signal_lost"
    SIGNAL_RECOVERED = "signal_recovered"
    SPEEDING_DETECTED = "speeding_detected"
    HARSH_ACCELERATION = "harsh_acceleration"
    HARSH_BRAKING = "harsh_braking"
    FUEL_LEVEL_CHANGE = "fuel_level_change"
    BATTERY_LOW = "battery_low"
    BATTERY_CRITICAL = "battery_critical"
    LOCATION_UPDATED = "location_updated"
    ETA_UPDATED = "eta_updated"
    DELAY_DETECTED = "delay_detected"
    DELAY_RESOLVED = "delay_resolved"
    EXCESSIVE_IDLING = "excessive_idling"
    ROUTE_DEVIATION = "route_deviation"
    GEOFENCE_VIOLATION = "geofence_violation"
    MAINTENANCE_ALERT = "maintenance_alert"
    DRIVER_FATIGUE = "driver_fatigue"
    COLLISION_RISK = "collision_risk"
    VEHICLE_DIAGNOSTIC = "vehicle_diagnostic"
    CHECKPOINT_REACHED = "checkpoint_reached"

    @classmethod
    def from_wire(cls, value: str) -> Optional['EventType']:
        """Known event kind for a wire value, None for unrecognized types"""
        try:
            return cls(value)
        except ValueError:
            return None


class SignalQuality(Enum):
    """Connectivity quality reported by the tracking device"""
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"
    EXCELLENT = "excellent"

    @classmethod
    def is_acceptable(cls, value: Optional[str]) -> bool:
        """Whether a reported quality counts towards signal health"""
        return value in (cls.GOOD.value, cls.EXCELLENT.value)


class TripStatus(Enum):
    """Lifecycle state of a trip as inferred from its events"""
    PLANNED = "Planned"
    IN_PROGRESS = "In-Progress"
    PAUSED = "Paused"
    REFUELING = "Refueling"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    ERROR = "Error"

    @property
    def is_terminal(self) -> bool:
        return self in (TripStatus.COMPLETED, TripStatus.CANCELLED)


class Severity(Enum):
    """Severity tag attached to projected fleet events and alerts"""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class PlaybackSpeed(Enum):
    """Playback speed multipliers offered by the playback bar"""
    X1 = 1
    X5 = 5
    X10 = 10


# Status inference order, highest priority first
DEFAULT_STATUS_PRECEDENCE: Tuple[TripStatus, ...] = (
    TripStatus.COMPLETED,
    TripStatus.CANCELLED,
    TripStatus.ERROR,
    TripStatus.REFUELING,
    TripStatus.PAUSED,
)

# Event kind that marks each inferable status
STATUS_MARKERS: Dict[TripStatus, EventType] = {
    TripStatus.COMPLETED: EventType.TRIP_COMPLETED,
    TripStatus.CANCELLED: EventType.TRIP_CANCELLED,
    TripStatus.ERROR: EventType.DEVICE_ERROR,
    TripStatus.REFUELING: EventType.REFUELING_STARTED,
    TripStatus.PAUSED: EventType.VEHICLE_STOPPED,
}


@dataclass(frozen=True)
class Location:
    """A WGS84 coordinate with optional accuracy and altitude in meters"""
    lat: float
    lng: float
    accuracy: Optional[float] = None
    altitude: Optional[float] = None

    def same_point(self, other: 'Location') -> bool:
        """Exact coordinate match, ignoring accuracy and altitude"""
        return self.lat == other.lat and self.lng == other.lng

    def to_dict(self) -> Dict[str, Any]:
        data = {'lat': self.lat, 'lng': self.lng}
        if self.accuracy is not None:
            data['accuracy'] = self.accuracy
        if self.altitude is not None:
            data['altitude'] = self.altitude
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Location':
        return cls(
            lat=float(data['lat']),
            lng=float(data['lng']),
            accuracy=data.get('accuracy', data.get('accuracy_meters')),
            altitude=data.get('altitude', data.get('altitude_meters')),
        )


@dataclass(frozen=True)
class Movement:
    """Movement block of a telemetry reading"""
    speed_kmh: Optional[float] = None
    heading_degrees: Optional[float] = None
    moving: Optional[bool] = None


@dataclass(frozen=True)
class DeviceStatus:
    """Tracking device block of a telemetry reading"""
    battery_level: Optional[float] = None
    charging: Optional[bool] = None


@dataclass(frozen=True)
class GPSEvent:
    """
    One timestamped telemetry reading belonging to a trip

    Optional blocks stay None when the log omits them. The verbatim wire
    object is kept in ``raw`` so it can be projected without loss.
    """
    event_id: str
    event_type: str
    timestamp: datetime
    vehicle_id: str
    trip_id: str

    location: Optional[Location] = None
    movement: Optional[Movement] = None
    device: Optional[DeviceStatus] = None

    distance_travelled_km: Optional[float] = None
    signal_quality: Optional[str] = None
    overspeed: Optional[bool] = None

    # Trip-level constants, replicated on (at least) the first event
    planned_distance_km: Optional[float] = None
    estimated_duration_hours: Optional[float] = None

    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def timestamp_ms(self) -> int:
        return to_epoch_ms(self.timestamp)

    @property
    def kind(self) -> Optional[EventType]:
        return EventType.from_wire(self.event_type)

    @property
    def has_location(self) -> bool:
        return self.location is not None

    @property
    def speed_kmh(self) -> Optional[float]:
        return self.movement.speed_kmh if self.movement else None

    @property
    def battery_level(self) -> Optional[float]:
        return self.device.battery_level if self.device else None


@dataclass
class FleetEvent:
    """Normalized projection of a GPSEvent for the event timeline"""
    id: str
    trip_id: str
    type: str
    timestamp: int
    data: Dict[str, Any]
    metadata: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'tripId': self.trip_id,
            'type': self.type,
            'timestamp': self.timestamp,
            'data': self.data,
            'metadata': self.metadata
        }


@dataclass
class TripMetrics:
    """Aggregated metrics derived from a trip's full event log"""
    progress_percent: int = 0
    distance_travelled: float = 0.0
    planned_distance: float = 0.0
    eta: int = 0
    avg_speed: int = 0
    max_speed: int = 0
    fuel_used: float = 0.0
    fuel_level: float = 100.0
    battery_level: int = 100
    safety_score: int = 100
    signal_health: int = 100
    dwell_time: int = 0  # milliseconds spent stationary
    violations: int = 0
    refuels: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'progressPercent': self.progress_percent,
            'distanceTravelled': self.distance_travelled,
            'plannedDistance': self.planned_distance,
            'eta': self.eta,
            'avgSpeed': self.avg_speed,
            'maxSpeed': self.max_speed,
            'fuelUsed': self.fuel_used,
            'fuelLevel': self.fuel_level,
            'batteryLevel': self.battery_level,
            'safetyScore': self.safety_score,
            'signalHealth': self.signal_health,
            'dwellTime': self.dwell_time,
            'violations': self.violations,
            'refuels': self.refuels
        }


@dataclass
class Checkpoint:
    """Synthetic start/destination marker for the trip timeline"""
    id: str
    location: Location
    name: str
    planned_time: int
    reached_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'location': self.location.to_dict(),
            'name': self.name,
            'plannedTime': self.planned_time
        }
        if self.reached_at is not None:
            data['reachedAt'] = self.reached_at
        return data


@dataclass
class Alert:
    """Exception raised against a trip by the monitoring layer"""
    id: str
    trip_id: str
    type: str
    severity: Severity
    title: str
    description: str
    timestamp: int
    resolved: bool = False
    resolved_at: Optional[int] = None


@dataclass
class Trip:
    """
    Aggregate view of one vehicle's journey

    Built once from a trip's event log. Replay keeps its own parallel state;
    the dashboard merges both views for display.
    """
    id: str
    vehicle_id: str
    driver_id: str
    start_location: Location
    end_location: Location
    current_location: Location
    planned_route: List[Location]
    status: TripStatus
    metrics: TripMetrics
    started_at: int
    expected_end_time: int
    actual_end_time: Optional[int] = None
    events: List[FleetEvent] = field(default_factory=list)
    alerts: List[Alert] = field(default_factory=list)
    checkpoints: List[Checkpoint] = field(default_factory=list)

    @property
    def is_on_time(self) -> bool:
        """Completed no later than expected"""
        return self.actual_end_time is not None and self.actual_end_time <= self.expected_end_time

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase view consumed by the map and panels"""
        data = {
            'id': self.id,
            'vehicleId': self.vehicle_id,
            'driverId': self.driver_id,
            'startLocation': self.start_location.to_dict(),
            'endLocation': self.end_location.to_dict(),
            'currentLocation': self.current_location.to_dict(),
            'plannedRoute': [loc.to_dict() for loc in self.planned_route],
            'status': self.status.value,
            'metrics': self.metrics.to_dict(),
            'startedAt': self.started_at,
            'expectedEndTime': self.expected_end_time,
            'events': [event.to_dict() for event in self.events],
            'alerts': [],
            'checkpoints': [cp.to_dict() for cp in self.checkpoints]
        }
        if self.actual_end_time is not None:
            data['actualEndTime'] = self.actual_end_time
        return data


@dataclass
class ReplaySettings:
    """Heuristic constants and timing used by the transformer and replay engines"""

    # Route sampling
    max_route_points: int = 100

    # Trip-level fallbacks when the log omits them
    default_planned_distance_km: float = 1000.0
    default_estimated_duration_hours: float = 24.0
    default_battery_level: int = 80
    default_signal_health: int = 85

    # Fuel heuristics (8 L/100 km)
    fuel_litres_per_km: float = 0.08
    fuel_level_drop_per_km: float = 0.15
    fuel_level_floor: float = 5.0

    # Safety score
    safety_penalty_per_violation: int = 5
    safety_score_floor: int = 40

    # Max speed is never reported below avg_speed * factor
    max_speed_factor: float = 1.2

    # Status inference
    status_precedence: Tuple[TripStatus, ...] = DEFAULT_STATUS_PRECEDENCE
    paused_progress_threshold: int = 50
    in_progress_window_hours: Optional[float] = None

    # Dwell time
    idle_speed_threshold_kmh: float = 5.0

    # Replay timing
    playback_base_interval_ms: int = 1000
    tracking_interval_ms: int = 3000
    default_playback_speed: PlaybackSpeed = PlaybackSpeed.X1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'max_route_points': self.max_route_points,
            'default_planned_distance_km': self.default_planned_distance_km,
            'default_estimated_duration_hours': self.default_estimated_duration_hours,
            'default_battery_level': self.default_battery_level,
            'default_signal_health': self.default_signal_health,
            'fuel_litres_per_km': self.fuel_litres_per_km,
            'fuel_level_drop_per_km': self.fuel_level_drop_per_km,
            'fuel_level_floor': self.fuel_level_floor,
            'safety_penalty_per_violation': self.safety_penalty_per_violation,
            'safety_score_floor': self.safety_score_floor,
            'max_speed_factor': self.max_speed_factor,
            'status_precedence': [status.value for status in self.status_precedence],
            'paused_progress_threshold': self.paused_progress_threshold,
            'in_progress_window_hours': self.in_progress_window_hours,
            'idle_speed_threshold_kmh': self.idle_speed_threshold_kmh,
            'playback_base_interval_ms': self.playback_base_interval_ms,
            'tracking_interval_ms': self.tracking_interval_ms,
            'default_playback_speed': self.default_playback_speed.value
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReplaySettings':
        """
        Build settings from a dictionary, keeping defaults for absent keys

        Raises:
            ValueError: If a status or playback speed value is unknown
        """
        settings = cls()
        for key, value in data.items():
            if not hasattr(settings, key):
                continue
            if value is None and key != 'in_progress_window_hours':
                continue
            if key == 'status_precedence':
                value = tuple(TripStatus(v) for v in value)
            elif key == 'default_playback_speed':
                value = PlaybackSpeed(int(value))
            setattr(settings, key, value)
        return settings
