#!/usr/bin/env python3
"""
Event log to Trip transformer

Derives the Trip aggregate (route, metrics, status, checkpoints and the
projected event timeline) from one trip's chronologically ordered events.
All heuristic constants come from ReplaySettings.
"""

from math import ceil, floor
from statistics import mean
from typing import Any, Dict, List, Optional, Sequence, Set
import logging

from core.exceptions import ConfigurationError, InvalidInputError
from fleet_replay.models.fleet_models import (
    Checkpoint, EventType, FleetEvent, GPSEvent, Location, ReplaySettings,
    Severity, SignalQuality, STATUS_MARKERS, Trip, TripMetrics, TripStatus
)

logger = logging.getLogger(__name__)


MS_PER_HOUR = 60 * 60 * 1000

# Wire blocks copied verbatim into FleetEvent.data
EVENT_DATA_FIELDS = ('location', 'movement', 'device', 'signal_quality', 'distance_travelled_km')


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3, -2.5 -> -2)"""
    return int(floor(value + 0.5))


class TripTransformer:
    """
    Builds Trip aggregates from event logs

    Stateless apart from its settings; transforming the same log twice
    yields equal trips.
    """

    def __init__(self, settings: Optional[ReplaySettings] = None):
        self.settings = settings or ReplaySettings()
        self._validate_precedence(self.settings.status_precedence)

    @staticmethod
    def _validate_precedence(precedence: Sequence[TripStatus]):
        for status in precedence:
            if status not in STATUS_MARKERS:
                raise ConfigurationError(
                    f"Status {status} has no marker event and cannot appear in the precedence table",
                    setting_key='status_precedence'
                )

    def transform(self, events: Sequence[GPSEvent]) -> Trip:
        """
        Derive a Trip from one trip's events

        Args:
            events: Chronologically ordered events of a single trip

        Raises:
            InvalidInputError: If the log is empty or has fewer than two located events
        """
        if not events:
            raise InvalidInputError("No events provided")

        located = [event for event in events if event.location is not None]
        if len(located) < 2:
            raise InvalidInputError(
                f"Insufficient location data in events: {len(located)} located event(s), need 2",
                source=events[0].trip_id
            )

        first_event, last_event = events[0], events[-1]
        trip_id = first_event.trip_id
        vehicle_id = first_event.vehicle_id

        start_location = located[0].location
        end_location = located[-1].location

        started_at = first_event.timestamp_ms
        ended_at = last_event.timestamp_ms

        planned_distance = (
            first_event.planned_distance_km
            if first_event.planned_distance_km is not None
            else self.settings.default_planned_distance_km
        )
        last_distance = events[-1].distance_travelled_km
        distance_travelled = last_distance if last_distance is not None else 0.0
        progress_percent = self._progress(distance_travelled, planned_distance)

        status = self._infer_status(events, progress_percent, ended_at - started_at)

        estimated_hours = first_event.estimated_duration_hours or self.settings.default_estimated_duration_hours
        expected_end_time = started_at + max(ended_at - started_at, int(round(estimated_hours * MS_PER_HOUR)))
        actual_end_time = ended_at if status == TripStatus.COMPLETED else None

        metrics = self._build_metrics(
            events, distance_travelled, planned_distance, progress_percent, expected_end_time
        )

        trip = Trip(
            id=trip_id,
            vehicle_id=vehicle_id,
            driver_id=self._driver_id(vehicle_id),
            start_location=start_location,
            end_location=end_location,
            current_location=end_location,
            planned_route=self.sample_route([event.location for event in located]),
            status=status,
            metrics=metrics,
            started_at=started_at,
            expected_end_time=expected_end_time,
            actual_end_time=actual_end_time,
            events=[self.project_event(event, trip_id) for event in events],
            alerts=[],
            checkpoints=[
                Checkpoint(
                    id=f"cp_{trip_id}_start",
                    location=start_location,
                    name="Start Point",
                    planned_time=started_at,
                    reached_at=started_at
                ),
                Checkpoint(
                    id=f"cp_{trip_id}_end",
                    location=end_location,
                    name="Destination",
                    planned_time=expected_end_time,
                    reached_at=actual_end_time
                )
            ]
        )

        logger.debug(
            f"Transformed trip {trip_id}: {len(events)} events, {len(trip.planned_route)} route points, "
            f"status {status.value}"
        )
        return trip

    def sample_route(self, locations: Sequence[Location]) -> List[Location]:
        """
        Thin a located-event sequence down to at most max_route_points + 1

        Every Nth point is kept, starting at index 0; the true start and end
        are added back when the stride skipped them.
        """
        if not locations:
            return []

        stride = max(1, ceil(len(locations) / self.settings.max_route_points))
        route = list(locations[::stride])

        start, end = locations[0], locations[-1]
        if not any(point.same_point(start) for point in route):
            route.insert(0, start)
        if not any(point.same_point(end) for point in route):
            route.append(end)

        return route

    @staticmethod
    def _progress(distance_travelled: float, planned_distance: float) -> int:
        if planned_distance <= 0:
            return 0
        return min(100, max(0, round_half_up(distance_travelled / planned_distance * 100)))

    def _infer_status(self, events: Sequence[GPSEvent], progress_percent: int, span_ms: int) -> TripStatus:
        """
        Walk the precedence table and return the first status whose marker
        event appears in the log
        """
        kinds: Set[Optional[EventType]] = {event.kind for event in events}

        for status in self.settings.status_precedence:
            if STATUS_MARKERS[status] not in kinds:
                continue
            if status == TripStatus.PAUSED and progress_percent >= self.settings.paused_progress_threshold:
                continue
            return status

        window = self.settings.in_progress_window_hours
        if window is not None and (span_ms >= window * MS_PER_HOUR or progress_percent >= 100):
            return TripStatus.COMPLETED

        return TripStatus.IN_PROGRESS

    def _build_metrics(self, events: Sequence[GPSEvent], distance_travelled: float,
                       planned_distance: float, progress_percent: int,
                       expected_end_time: int) -> TripMetrics:
        settings = self.settings

        speeds = [event.speed_kmh for event in events if event.speed_kmh is not None]
        avg_speed = mean(speeds) if speeds else 0.0
        max_speed = max(max(speeds, default=0.0), avg_speed * settings.max_speed_factor)

        batteries = [event.battery_level for event in events if event.battery_level is not None]
        battery_level = round_half_up(mean(batteries)) if batteries else settings.default_battery_level

        reported = [event.signal_quality for event in events if event.signal_quality]
        if reported:
            acceptable = sum(1 for quality in reported if SignalQuality.is_acceptable(quality))
            signal_health = round_half_up(acceptable / len(reported) * 100)
        else:
            signal_health = settings.default_signal_health

        violations = sum(1 for event in events if event.overspeed)

        return TripMetrics(
            progress_percent=progress_percent,
            distance_travelled=distance_travelled,
            planned_distance=planned_distance,
            eta=expected_end_time,
            avg_speed=round_half_up(avg_speed),
            max_speed=round_half_up(max_speed),
            fuel_used=distance_travelled * settings.fuel_litres_per_km,
            fuel_level=max(settings.fuel_level_floor, 100 - distance_travelled * settings.fuel_level_drop_per_km),
            battery_level=battery_level,
            safety_score=max(settings.safety_score_floor,
                             100 - violations * settings.safety_penalty_per_violation),
            signal_health=signal_health,
            dwell_time=self._dwell_time(events),
            violations=violations,
            refuels=sum(1 for event in events if event.kind == EventType.REFUELING_COMPLETED)
        )

    def _dwell_time(self, events: Sequence[GPSEvent]) -> int:
        """Milliseconds spent between consecutive events while the earlier one was stationary"""
        total = 0
        for previous, current in zip(events, events[1:]):
            if self._is_stationary(previous):
                total += max(0, current.timestamp_ms - previous.timestamp_ms)
        return total

    def _is_stationary(self, event: GPSEvent) -> bool:
        if event.movement is None:
            return False
        if event.movement.moving is False:
            return True
        speed = event.movement.speed_kmh
        return speed is not None and speed < self.settings.idle_speed_threshold_kmh

    @staticmethod
    def _driver_id(vehicle_id: str) -> str:
        parts = vehicle_id.split('_')
        suffix = parts[1] if len(parts) > 1 and parts[1] else '001'
        return f"drv_{suffix}"

    @staticmethod
    def project_event(event: GPSEvent, trip_id: str) -> FleetEvent:
        """Normalize a GPSEvent into the timeline representation"""
        data: Dict[str, Any] = {
            key: event.raw[key] for key in EVENT_DATA_FIELDS if key in event.raw
        }

        return FleetEvent(
            id=event.event_id,
            trip_id=trip_id,
            type=event.event_type,
            timestamp=event.timestamp_ms,
            data=data,
            metadata={
                'severity': (Severity.WARNING if event.overspeed else Severity.INFO).value,
                'source': 'device'
            }
        )


def transform_events(events: Sequence[GPSEvent], settings: Optional[ReplaySettings] = None) -> Trip:
    """Derive a Trip using a one-off transformer"""
    return TripTransformer(settings).transform(events)
