#!/usr/bin/env python3
"""
Continuous tracking replay

Like playback, but the cursor survives restarts through the injected
storage, distance comes from the device odometer field, and the replay loops
back to the first event after the last one.
"""

import json
from dataclasses import replace
from typing import Sequence
import logging

from core.error_handler import handle_error
from core.exceptions import InvalidInputError, MalformedEventError, StorageError
from fleet_replay.models.fleet_models import GPSEvent
from fleet_replay.models.replay_models import LiveMetrics, TripTrackingState
from fleet_replay.services.trip_state_storage import TripStateStorage, state_key

logger = logging.getLogger(__name__)


class TrackingEngine:
    """Tracking state machine bound to a storage backend"""

    def __init__(self, storage: TripStateStorage):
        self.storage = storage

    def initialize(self, trip_id: str, events: Sequence[GPSEvent],
                   total_distance: float) -> TripTrackingState:
        """
        Load the persisted state for a trip, or start fresh

        A blob that cannot be parsed is logged and replaced by a fresh state.

        Raises:
            InvalidInputError: If events is empty
            MalformedEventError: If a fresh state is needed and the first event has no location
        """
        if not events:
            raise InvalidInputError("Cannot track an empty event log", source=trip_id)

        stored = self.storage.get(state_key(trip_id))
        if stored:
            try:
                state = TripTrackingState.from_dict(json.loads(stored))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Discarding unreadable tracking state for {trip_id}: {e}")
            else:
                if state.trip_id == trip_id:
                    return self._reattach(state, events, total_distance)
                logger.warning(f"Stored tracking state belongs to {state.trip_id}, not {trip_id}; starting fresh")

        return self.fresh_state(trip_id, events, total_distance)

    def fresh_state(self, trip_id: str, events: Sequence[GPSEvent],
                    total_distance: float) -> TripTrackingState:
        """Index-0 state with zeroed metrics"""
        first_event = events[0]
        if first_event.location is None:
            raise MalformedEventError(
                f"Event {first_event.event_id} has no location",
                event_index=0, field='location'
            )

        return TripTrackingState(
            trip_id=trip_id,
            current_index=0,
            current_location=first_event.location,
            traveled_path=(first_event.location,),
            metrics=LiveMetrics(target_distance=total_distance),
            is_active=True,
            current_event=first_event
        )

    def _reattach(self, state: TripTrackingState, events: Sequence[GPSEvent],
                  total_distance: float) -> TripTrackingState:
        """Clamp a rehydrated cursor to the current log and restore the event reference"""
        index = min(max(state.current_index, 0), len(events) - 1)
        traveled_path = state.traveled_path
        if index != state.current_index:
            logger.debug(f"Clamped stored cursor for {state.trip_id} from {state.current_index} to {index}")
            traveled_path = traveled_path[:index + 1]

        event = events[index]
        return replace(
            state,
            current_index=index,
            traveled_path=traveled_path,
            current_location=event.location or state.current_location,
            current_event=event,
            metrics=replace(state.metrics, target_distance=total_distance)
        )

    def advance(self, state: TripTrackingState, events: Sequence[GPSEvent],
                total_distance: float) -> TripTrackingState:
        """
        Move tracking one event forward and persist the result

        At the last event the replay loops to a fresh index-0 state.

        Raises:
            InvalidInputError: If events is empty
            MalformedEventError: If the next event has no location
        """
        if not events:
            raise InvalidInputError("Cannot track an empty event log", source=state.trip_id)

        index = min(max(state.current_index, 0), len(events) - 1)

        if index >= len(events) - 1:
            logger.debug(f"Trip {state.trip_id} reached its last event, looping to start")
            new_state = self.fresh_state(state.trip_id, events, total_distance)
        else:
            next_index = index + 1
            next_event = events[next_index]
            if next_event.location is None:
                raise MalformedEventError(
                    f"Event {next_event.event_id} has no location",
                    event_index=next_index, field='location'
                )

            metrics = state.metrics
            traveled = (
                next_event.distance_travelled_km
                if next_event.distance_travelled_km is not None
                else metrics.distance_traveled
            )
            progress = (
                min(100.0, max(0.0, traveled / total_distance * 100)) if total_distance > 0 else 0.0
            )
            overspeed = bool(next_event.overspeed)

            new_state = replace(
                state,
                current_index=next_index,
                current_location=next_event.location,
                current_event=next_event,
                traveled_path=state.traveled_path + (next_event.location,),
                metrics=LiveMetrics(
                    distance_traveled=traveled,
                    target_distance=total_distance,
                    progress_percent=progress,
                    speed=next_event.speed_kmh if next_event.speed_kmh is not None else metrics.speed,
                    battery=(
                        next_event.battery_level if next_event.battery_level is not None else metrics.battery
                    ),
                    violations=metrics.violations + 1 if overspeed else metrics.violations,
                    signal_quality=next_event.signal_quality or metrics.signal_quality,
                    overspeed=overspeed
                ),
                is_active=True
            )

        self._persist(new_state)
        return new_state

    def step(self, trip_id: str, events: Sequence[GPSEvent],
             total_distance: float) -> TripTrackingState:
        """One timer tick: rehydrate, advance, persist"""
        return self.advance(self.initialize(trip_id, events, total_distance), events, total_distance)

    def clear(self, trip_id: str):
        """Forget the persisted position of a trip"""
        self.storage.remove(state_key(trip_id))

    def _persist(self, state: TripTrackingState):
        key = state_key(state.trip_id)
        try:
            self.storage.set(key, json.dumps(state.to_dict()))
        except StorageError as e:
            # Replay continues from the in-memory state
            handle_error(e, {'operation': 'persist_tracking_state', 'trip_id': state.trip_id})
