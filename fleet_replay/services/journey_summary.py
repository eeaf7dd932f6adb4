#!/usr/bin/env python3
"""
Journey summaries for the progress panel and tracking popup
"""

from typing import Sequence

from core.exceptions import InvalidInputError, MalformedEventError
from fleet_replay.models.fleet_models import GPSEvent
from fleet_replay.models.replay_models import JourneySummary, TrackingSummary, TripTrackingState
from fleet_replay.services.geo_math import path_distance


def format_elapsed(elapsed_ms: int) -> str:
    """Render milliseconds as '{h}h {m}m {s}s', floored, negatives as zero"""
    elapsed_ms = max(0, elapsed_ms)
    hours = elapsed_ms // (60 * 60 * 1000)
    minutes = (elapsed_ms % (60 * 60 * 1000)) // (60 * 1000)
    seconds = (elapsed_ms % (60 * 1000)) // 1000
    return f"{hours}h {minutes}m {seconds}s"


def summarize(events: Sequence[GPSEvent], current_index: int) -> JourneySummary:
    """
    Summarize the journey from the first event up to a cursor

    Distance is recomputed from event locations every call, so the result
    only depends on the arguments. Every covered event must be located, as
    playback cannot step past one that is not.

    Args:
        events: The trip's ordered events
        current_index: Cursor position, clamped into the log

    Raises:
        InvalidInputError: If events is empty
        MalformedEventError: If a covered event has no location
    """
    if not events:
        raise InvalidInputError("Cannot summarize an empty event log")

    index = min(max(current_index, 0), len(events) - 1)
    covered = events[:index + 1]

    for position, event in enumerate(covered):
        if event.location is None:
            raise MalformedEventError(
                f"Event {event.event_id} has no location",
                event_index=position, field='location'
            )

    total_distance = path_distance(event.location for event in covered)

    elapsed_ms = max(0, covered[-1].timestamp_ms - covered[0].timestamp_ms)
    elapsed_hours = elapsed_ms / (60 * 60 * 1000)
    avg_speed = total_distance / elapsed_hours if elapsed_ms > 0 else 0.0

    return JourneySummary(
        events_covered=index + 1,
        total_events=len(events),
        total_distance=total_distance,
        time_elapsed=format_elapsed(elapsed_ms),
        elapsed_seconds=elapsed_ms // 1000,
        avg_speed=avg_speed
    )


def tracking_summary(state: TripTrackingState) -> TrackingSummary:
    """Rounded figures for a tracked vehicle's popup"""
    metrics = state.metrics
    if metrics.target_distance > 0:
        progress = metrics.distance_traveled / metrics.target_distance * 100
    else:
        progress = 0.0

    return TrackingSummary(
        trip_id=state.trip_id,
        distance_covered=round(metrics.distance_traveled, 2),
        total_distance=round(metrics.target_distance, 2),
        progress_percent=round(progress, 1),
        speed=round(metrics.speed, 1),
        signal_quality=metrics.signal_quality,
        overspeed=metrics.overspeed,
        battery=round(metrics.battery, 1),
        current_event_id=state.current_event.event_id if state.current_event else None
    )
