#!/usr/bin/env python3
"""
Playback replay state machine

Pure functions over SimulationState. Each advance moves the cursor one event
forward, extends the travelled path and accumulates haversine distance
between consecutive event locations. Timing is the driver's concern; speed
only changes the tick period.
"""

from dataclasses import replace
from typing import Optional, Sequence, Union

from core.exceptions import InvalidInputError, MalformedEventError, ValidationError
from fleet_replay.models.fleet_models import GPSEvent, Location, PlaybackSpeed
from fleet_replay.models.replay_models import LiveMetrics, SimulationState
from fleet_replay.services.geo_math import distance


def _require_events(events: Sequence[GPSEvent]):
    if not events:
        raise InvalidInputError("Cannot replay an empty event log")


def _location_of(events: Sequence[GPSEvent], index: int) -> Location:
    location = events[index].location
    if location is None:
        raise MalformedEventError(
            f"Event {events[index].event_id} has no location",
            event_index=index, field='location'
        )
    return location


def _clamp_index(index: int, events: Sequence[GPSEvent]) -> int:
    return min(max(index, 0), len(events) - 1)


def _progress(distance_traveled: float, target_distance: float) -> float:
    if target_distance <= 0:
        return 0.0
    return min(100.0, max(0.0, distance_traveled / target_distance * 100))


def coerce_speed(speed: Union[PlaybackSpeed, int]) -> PlaybackSpeed:
    """
    Accept a PlaybackSpeed or its integer multiplier

    Raises:
        ValidationError: If the multiplier is not one of 1, 5 or 10
    """
    if isinstance(speed, PlaybackSpeed):
        return speed
    try:
        return PlaybackSpeed(int(speed))
    except (TypeError, ValueError):
        allowed = ', '.join(str(s.value) for s in PlaybackSpeed)
        raise ValidationError({'speed': f"Playback speed must be one of {allowed}, got {speed!r}"})


def initialize(trip_id: str, events: Sequence[GPSEvent], planned_distance: float,
               planned_route: Optional[Sequence[Location]] = None,
               speed: Union[PlaybackSpeed, int] = PlaybackSpeed.X1) -> SimulationState:
    """
    Build the index-0 playback state for a trip

    Args:
        trip_id: Trip being replayed
        events: The trip's ordered events
        planned_distance: Distance progress is measured against
        planned_route: Route to expose to the map; defaults to every event location
        speed: Initial playback speed

    Raises:
        InvalidInputError: If events is empty
        MalformedEventError: If the first event has no location
    """
    _require_events(events)
    start = _location_of(events, 0)

    if planned_route is None:
        planned_route = [event.location for event in events if event.location is not None]

    return SimulationState(
        trip_id=trip_id,
        current_event_index=0,
        is_playing=False,
        speed=coerce_speed(speed),
        current_time=events[0].timestamp_ms,
        traveled_path=(start,),
        planned_route=tuple(planned_route),
        current_location=start,
        current_event=events[0],
        metrics=LiveMetrics(target_distance=planned_distance)
    )


def is_finished(state: SimulationState, events: Sequence[GPSEvent]) -> bool:
    """Whether the cursor sits on the last event"""
    return bool(events) and state.current_event_index >= len(events) - 1


def advance(state: SimulationState, events: Sequence[GPSEvent],
            planned_distance: Optional[float] = None) -> SimulationState:
    """
    Move playback one event forward

    At the last event the state is returned with ``is_playing`` cleared and
    the cursor unchanged.

    Args:
        state: Current playback state
        events: The trip's ordered events
        planned_distance: Overrides the state's target distance when given

    Raises:
        InvalidInputError: If events is empty
        MalformedEventError: If the next event has no location
    """
    _require_events(events)

    index = _clamp_index(state.current_event_index, events)
    if index >= len(events) - 1:
        return replace(state, current_event_index=index, is_playing=False)

    next_index = index + 1
    next_event = events[next_index]
    next_location = _location_of(events, next_index)

    metrics = state.metrics
    target = planned_distance if planned_distance is not None else metrics.target_distance
    traveled = metrics.distance_traveled + distance(state.current_location, next_location)
    overspeed = bool(next_event.overspeed)

    new_metrics = LiveMetrics(
        distance_traveled=traveled,
        target_distance=target,
        progress_percent=_progress(traveled, target),
        speed=next_event.speed_kmh if next_event.speed_kmh is not None else metrics.speed,
        battery=next_event.battery_level if next_event.battery_level is not None else metrics.battery,
        violations=metrics.violations + 1 if overspeed else metrics.violations,
        signal_quality=next_event.signal_quality or metrics.signal_quality,
        overspeed=overspeed
    )

    return replace(
        state,
        current_event_index=next_index,
        current_time=next_event.timestamp_ms,
        traveled_path=state.traveled_path + (next_location,),
        current_location=next_location,
        current_event=next_event,
        metrics=new_metrics
    )


def play(state: SimulationState) -> SimulationState:
    return replace(state, is_playing=True)


def pause(state: SimulationState) -> SimulationState:
    return replace(state, is_playing=False)


def set_speed(state: SimulationState, speed: Union[PlaybackSpeed, int]) -> SimulationState:
    """Change the playback multiplier; events per tick stay at one"""
    return replace(state, speed=coerce_speed(speed))


def reset(state: SimulationState, events: Sequence[GPSEvent]) -> SimulationState:
    """Return to the first event, stopped, keeping speed, route and target"""
    return initialize(
        state.trip_id,
        events,
        state.metrics.target_distance,
        planned_route=state.planned_route,
        speed=state.speed
    )


def seek(state: SimulationState, events: Sequence[GPSEvent], index: int) -> SimulationState:
    """
    Jump to an event index

    Replays from the start so the path, distance and violation counter
    match a continuous playback to that point. The playing flag is kept.
    """
    target_index = _clamp_index(index, events)

    sought = reset(state, events)
    for _ in range(target_index):
        sought = advance(sought, events)

    return replace(sought, is_playing=state.is_playing)


def tick_interval_ms(state: SimulationState, base_interval_ms: int = 1000) -> int:
    """Timer period for the state's speed"""
    return max(1, base_interval_ms // state.speed.value)
