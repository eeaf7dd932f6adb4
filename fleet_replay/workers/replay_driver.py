#!/usr/bin/env python3
"""
Replay drivers - QTimer-based replay of one trip

Each driver owns a single timer, so a trip never has two ticks in flight.
Speed changes the timer period, never the number of events per tick. Every
tick hands a new immutable state to listeners through ``state_changed``.
"""

from typing import Optional, Sequence, Union

from PySide6.QtCore import QObject, QTimer, Signal

from core.error_handler import handle_error
from core.exceptions import FleetError
from core.logger import logger
from fleet_replay.models.fleet_models import GPSEvent, Location, PlaybackSpeed
from fleet_replay.models.replay_models import SimulationState, TripTrackingState
from fleet_replay.services import playback_engine
from fleet_replay.services.tracking_engine import TrackingEngine


class PlaybackDriver(QObject):
    """
    Drives playback of one trip

    Signals:
        state_changed(SimulationState): After every tick and control change
        playback_finished(str): Trip id, once the last event is reached
        error_occurred(FleetError): A tick failed; the driver has stopped
    """

    state_changed = Signal(object)
    playback_finished = Signal(str)
    error_occurred = Signal(object)

    def __init__(self, trip_id: str, events: Sequence[GPSEvent], planned_distance: float,
                 planned_route: Optional[Sequence[Location]] = None,
                 base_interval_ms: int = 1000,
                 speed: Union[PlaybackSpeed, int] = PlaybackSpeed.X1,
                 parent=None):
        super().__init__(parent)

        self.trip_id = trip_id
        self._events = list(events)
        self._base_interval_ms = base_interval_ms
        self._state = playback_engine.initialize(
            trip_id, self._events, planned_distance, planned_route, speed
        )

        self._timer = QTimer(self)
        self._timer.timeout.connect(self.tick)

    @property
    def state(self) -> SimulationState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._timer.isActive()

    @property
    def interval_ms(self) -> int:
        return playback_engine.tick_interval_ms(self._state, self._base_interval_ms)

    def play(self):
        """Start or resume playback, replacing any running timer"""
        self._timer.stop()

        if playback_engine.is_finished(self._state, self._events):
            logger.debug(f"Playback of {self.trip_id} already at last event")
            self._set_state(playback_engine.pause(self._state))
            self.playback_finished.emit(self.trip_id)
            return

        self._set_state(playback_engine.play(self._state))
        self._timer.start(self.interval_ms)

    def pause(self):
        self._timer.stop()
        self._set_state(playback_engine.pause(self._state))

    def stop(self):
        """Stop the timer without emitting; used on teardown"""
        self._timer.stop()
        self._state = playback_engine.pause(self._state)

    def set_speed(self, speed: Union[PlaybackSpeed, int]):
        """Change speed; a running timer is re-armed with the new period"""
        self._set_state(playback_engine.set_speed(self._state, speed))
        if self._timer.isActive():
            self._timer.start(self.interval_ms)

    def reset(self):
        self._timer.stop()
        self._set_state(playback_engine.reset(self._state, self._events))

    def seek(self, index: int):
        self._set_state(playback_engine.seek(self._state, self._events, index))

    def tick(self):
        """Advance one event; connected to the timer and callable directly"""
        try:
            new_state = playback_engine.advance(self._state, self._events)
        except FleetError as e:
            self._fail(e)
            return

        finished = playback_engine.is_finished(new_state, self._events)
        if finished:
            self._timer.stop()
            new_state = playback_engine.pause(new_state)

        self._set_state(new_state)

        if finished:
            logger.debug(f"Playback of {self.trip_id} finished at event {new_state.current_event_index}")
            self.playback_finished.emit(self.trip_id)

    def _set_state(self, state: SimulationState):
        self._state = state
        self.state_changed.emit(state)

    def _fail(self, error: FleetError):
        self._timer.stop()
        self._state = playback_engine.pause(self._state)
        handle_error(error, {'operation': 'playback_tick', 'trip_id': self.trip_id})
        self.error_occurred.emit(error)


class TrackingDriver(QObject):
    """
    Drives continuous tracking of one trip

    Each tick rehydrates the stored position, advances and persists it.
    Tracking loops at the end of the log, so it runs until stopped.

    Signals:
        state_changed(TripTrackingState): After every tick
        error_occurred(FleetError): A tick failed; the driver has stopped
    """

    state_changed = Signal(object)
    error_occurred = Signal(object)

    def __init__(self, trip_id: str, events: Sequence[GPSEvent], total_distance: float,
                 engine: TrackingEngine, interval_ms: int = 3000, parent=None):
        super().__init__(parent)

        self.trip_id = trip_id
        self._events = list(events)
        self._total_distance = total_distance
        self._engine = engine
        self._state: Optional[TripTrackingState] = None

        self._timer = QTimer(self)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self.tick)

    @property
    def state(self) -> Optional[TripTrackingState]:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._timer.isActive()

    @property
    def interval_ms(self) -> int:
        return self._timer.interval()

    def start(self):
        """Start ticking, replacing any running timer"""
        self._timer.stop()
        self._timer.start()

    def stop(self):
        self._timer.stop()

    def tick(self):
        try:
            state = self._engine.step(self.trip_id, self._events, self._total_distance)
        except FleetError as e:
            self._timer.stop()
            handle_error(e, {'operation': 'tracking_tick', 'trip_id': self.trip_id})
            self.error_occurred.emit(e)
            return

        self._state = state
        self.state_changed.emit(state)
