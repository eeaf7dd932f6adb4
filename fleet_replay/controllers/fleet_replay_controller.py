#!/usr/bin/env python3
"""
Fleet Replay Controller - Orchestration layer

Coordinates the replay service, the per-trip state maps and the timer
drivers. Each trip gets its own driver; trips never share replay state.
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from controllers.base_controller import BaseController
from core.result_types import Result
from core.exceptions import FleetError, ValidationError
from core.services.interfaces import IFleetReplayService

from fleet_replay.models.fleet_models import GPSEvent, PlaybackSpeed, Trip
from fleet_replay.models.replay_models import FleetLoadResult, FleetSummary, JourneySummary
from fleet_replay.services.geo_math import heading_at
from fleet_replay.services.tracking_engine import TrackingEngine
from fleet_replay.services.trip_state_storage import InMemoryTripStateStorage, TripStateStorage
from fleet_replay.workers.replay_driver import PlaybackDriver, TrackingDriver


class FleetReplayController(BaseController):
    """
    Controller for fleet replay operations

    Loads event logs through the service, keeps the loaded trips and their
    events, and creates playback or tracking drivers on demand.
    """

    def __init__(self, storage: Optional[TripStateStorage] = None):
        """
        Initialize fleet replay controller

        Args:
            storage: Backend for tracking positions; in-memory when omitted
        """
        super().__init__("FleetReplayController")

        # Service dependencies (injected via DI)
        self._replay_service: Optional[IFleetReplayService] = None

        self.tracking_engine = TrackingEngine(storage or InMemoryTripStateStorage())

        self.events_by_trip: Dict[str, List[GPSEvent]] = {}
        self.trips: Dict[str, Trip] = {}
        self.drivers: Dict[str, Union[PlaybackDriver, TrackingDriver]] = {}

    @property
    def replay_service(self) -> IFleetReplayService:
        """Lazy load fleet replay service"""
        if self._replay_service is None:
            self._replay_service = self._get_service(IFleetReplayService)
        return self._replay_service

    def load_trips(self, file_paths: Sequence[Union[str, Path]]) -> Result[FleetLoadResult]:
        """
        Load event log files and register their trips

        Logs that fail are reported in the result and skipped. A reloaded
        trip replaces the earlier one and its driver is stopped.
        """
        self._log_operation("load_trips", f"Loading {len(file_paths)} files")

        if not file_paths:
            error = ValidationError(
                {'files': 'No files selected'},
                user_message="Please select event log files to load"
            )
            self._handle_error(error, {'method': 'load_trips'})
            return Result.error(error)

        result = self.replay_service.load_trips(file_paths)
        if not result.success:
            return result

        for trip in result.value.trips:
            self._stop_driver(trip.id)
            self.trips[trip.id] = trip
            self.events_by_trip[trip.id] = result.value.events_by_trip[trip.id]

        self._log_operation("load_trips", result.value.get_summary())
        return result

    def get_trip(self, trip_id: str) -> Optional[Trip]:
        return self.trips.get(trip_id)

    def get_driver(self, trip_id: str) -> Optional[Union[PlaybackDriver, TrackingDriver]]:
        return self.drivers.get(trip_id)

    def _unknown_trip(self, trip_id: str, method: str) -> Result:
        error = ValidationError(
            {'trip_id': f"Trip {trip_id} is not loaded"},
            user_message=f"Trip {trip_id} is not loaded"
        )
        self._handle_error(error, {'method': method, 'trip_id': trip_id})
        return Result.error(error)

    def _stop_driver(self, trip_id: str):
        driver = self.drivers.pop(trip_id, None)
        if driver is not None:
            driver.stop()
            driver.deleteLater()

    def create_playback(self, trip_id: str,
                        speed: Optional[Union[PlaybackSpeed, int]] = None) -> Result[PlaybackDriver]:
        """Create a stopped playback driver for a trip, replacing any existing driver"""
        if trip_id not in self.trips:
            return self._unknown_trip(trip_id, 'create_playback')

        settings = self.replay_service.settings
        trip = self.trips[trip_id]

        try:
            driver = PlaybackDriver(
                trip_id,
                self.events_by_trip[trip_id],
                trip.metrics.planned_distance,
                planned_route=trip.planned_route,
                base_interval_ms=settings.playback_base_interval_ms,
                speed=speed if speed is not None else settings.default_playback_speed
            )
        except FleetError as e:
            self._handle_error(e, {'method': 'create_playback', 'trip_id': trip_id})
            return Result.error(e)

        self._stop_driver(trip_id)
        self.drivers[trip_id] = driver
        self._log_operation("create_playback", f"Trip {trip_id} at x{driver.state.speed.value}", level="debug")
        return Result.success(driver)

    def play(self, trip_id: str) -> Result[PlaybackDriver]:
        """Start or resume playback; creates the driver on first use"""
        driver = self.drivers.get(trip_id)
        if not isinstance(driver, PlaybackDriver):
            created = self.create_playback(trip_id)
            if not created.success:
                return created
            driver = created.value

        driver.play()
        self._log_operation("play", f"Trip {trip_id}")
        return Result.success(driver)

    def pause(self, trip_id: str) -> Result[None]:
        driver = self.drivers.get(trip_id)
        if not isinstance(driver, PlaybackDriver):
            return self._unknown_trip(trip_id, 'pause')
        driver.pause()
        return Result.success(None)

    def set_speed(self, trip_id: str, speed: Union[PlaybackSpeed, int]) -> Result[None]:
        driver = self.drivers.get(trip_id)
        if not isinstance(driver, PlaybackDriver):
            return self._unknown_trip(trip_id, 'set_speed')

        try:
            driver.set_speed(speed)
        except ValidationError as e:
            self._handle_error(e, {'method': 'set_speed', 'trip_id': trip_id})
            return Result.error(e)

        self._log_operation("set_speed", f"Trip {trip_id} at x{driver.state.speed.value}", level="debug")
        return Result.success(None)

    def start_tracking(self, trip_id: str) -> Result[TrackingDriver]:
        """
        Start continuous tracking for a trip

        Progress is measured against the distance the log reports at its
        end, falling back to the default planned distance.
        """
        if trip_id not in self.trips:
            return self._unknown_trip(trip_id, 'start_tracking')

        settings = self.replay_service.settings
        trip = self.trips[trip_id]
        total_distance = trip.metrics.distance_travelled or settings.default_planned_distance_km

        driver = TrackingDriver(
            trip_id,
            self.events_by_trip[trip_id],
            total_distance,
            self.tracking_engine,
            interval_ms=settings.tracking_interval_ms
        )

        self._stop_driver(trip_id)
        self.drivers[trip_id] = driver
        driver.start()

        self._log_operation("start_tracking", f"Trip {trip_id} every {driver.interval_ms} ms")
        return Result.success(driver)

    def stop(self, trip_id: str) -> Result[None]:
        """Stop and discard a trip's driver"""
        if trip_id not in self.drivers:
            return self._unknown_trip(trip_id, 'stop')
        self._stop_driver(trip_id)
        return Result.success(None)

    def current_index(self, trip_id: str) -> int:
        """Cursor of the trip's driver, 0 when none is running"""
        driver = self.drivers.get(trip_id)
        if isinstance(driver, PlaybackDriver):
            return driver.state.current_event_index
        if isinstance(driver, TrackingDriver) and driver.state is not None:
            return driver.state.current_index
        return 0

    def current_heading(self, trip_id: str) -> float:
        """Rendering heading at the trip's cursor"""
        events = self.events_by_trip.get(trip_id)
        if not events:
            return 0.0
        return heading_at(events, self.current_index(trip_id))

    def journey_summary(self, trip_id: str) -> Result[JourneySummary]:
        if trip_id not in self.events_by_trip:
            return self._unknown_trip(trip_id, 'journey_summary')
        return self.replay_service.summarize_journey(self.events_by_trip[trip_id], self.current_index(trip_id))

    def fleet_summary(self) -> Result[FleetSummary]:
        return self.replay_service.summarize_fleet(list(self.trips.values()))

    def cleanup(self) -> None:
        """Stop every driver"""
        for trip_id in list(self.drivers):
            self._stop_driver(trip_id)
        super().cleanup()
