#!/usr/bin/env python3
"""
Fleet Replay Service - loading, trip derivation and summaries

Wraps the pure parser, transformer and summary functions with Result-based
error handling so the dashboard can show a load-failure state instead of
crashing.
"""

from pathlib import Path
from typing import List, Optional, Sequence, Union
import logging

from core.services.base_service import BaseService
from core.services.interfaces import IFleetReplayService
from core.result_types import Result, BatchOperationResult
from core.exceptions import BatchLoadError, FleetError

from fleet_replay.models.fleet_models import GPSEvent, ReplaySettings, Trip
from fleet_replay.models.replay_models import FleetLoadResult, FleetSummary, JourneySummary
from fleet_replay.services.event_log_parser import load_event_log
from fleet_replay.services.fleet_kpis import fleet_summary
from fleet_replay.services.journey_summary import summarize
from fleet_replay.services.trip_transformer import TripTransformer

logger = logging.getLogger(__name__)


class FleetReplayError(FleetError):
    """Fleet replay specific errors"""
    pass


class FleetReplayService(BaseService, IFleetReplayService):
    """
    Service for fleet replay operations

    Holds the heuristic settings; every derived trip uses the same
    transformer so status and metrics stay consistent across the fleet.
    """

    def __init__(self, settings: Optional[ReplaySettings] = None):
        """Initialize fleet replay service"""
        super().__init__("FleetReplayService")
        self._settings = settings or ReplaySettings()
        self._transformer = TripTransformer(self._settings)

    @property
    def settings(self) -> ReplaySettings:
        return self._settings

    def update_settings(self, settings: ReplaySettings) -> Result[None]:
        """Swap heuristic settings; rejects precedence tables with unknown statuses"""
        try:
            transformer = TripTransformer(settings)
        except FleetError as e:
            self._handle_error(e, {'method': 'update_settings'})
            return Result.error(e)

        self._settings = settings
        self._transformer = transformer
        self._log_operation("update_settings", "Replay settings updated", level="debug")
        return Result.success(None)

    def load_event_log(self, path: Union[str, Path]) -> Result[List[GPSEvent]]:
        """
        Read and parse one event log file

        Args:
            path: Path to a JSON event log

        Returns:
            Result containing the parsed events or error
        """
        file_path = Path(path)
        try:
            self._log_operation("load_event_log", f"Reading {file_path.name}")
            events = load_event_log(file_path)
            self._log_operation("load_event_log", f"Parsed {len(events)} events from {file_path.name}")
            return Result.success(events, source=str(file_path))

        except FleetError as e:
            self._handle_error(e, {'method': 'load_event_log', 'path': str(file_path)})
            return Result.error(e)

        except Exception as e:
            error = FleetReplayError(
                f"Failed to load event log {file_path}: {e}",
                user_message=f"Error reading event log: {file_path.name}"
            )
            self._handle_error(error, {'method': 'load_event_log', 'path': str(file_path)})
            return Result.error(error)

    def build_trip(self, events: Sequence[GPSEvent]) -> Result[Trip]:
        """
        Derive a Trip from one trip's events

        Returns:
            Result containing the Trip or error
        """
        try:
            trip = self._transformer.transform(events)
            self._log_operation(
                "build_trip",
                f"Trip {trip.id}: {trip.status.value}, {trip.metrics.progress_percent}% complete",
                level="debug"
            )
            return Result.success(trip)

        except FleetError as e:
            self._handle_error(e, {'method': 'build_trip'})
            return Result.error(e)

        except Exception as e:
            error = FleetReplayError(
                f"Failed to build trip: {e}",
                user_message="Trip data could not be processed."
            )
            self._handle_error(error, {'method': 'build_trip'})
            return Result.error(error)

    def load_trip(self, path: Union[str, Path]) -> Result[Trip]:
        """Load one log and derive its trip"""
        return self.load_event_log(path).and_then(self.build_trip)

    def load_trips(self, sources: Sequence[Union[str, Path]]) -> Result[FleetLoadResult]:
        """
        Load several event logs, isolating failures per trip

        A failing log is recorded and skipped; the result is an error only
        when every log failed.
        """
        self._log_operation("load_trips", f"Loading {len(sources)} event log(s)")

        load_result = FleetLoadResult()
        item_results = []

        for source in sources:
            events_result = self.load_event_log(source)
            trip_result = events_result.and_then(self.build_trip)

            if trip_result.success:
                trip = trip_result.value
                load_result.trips.append(trip)
                load_result.events_by_trip[trip.id] = events_result.value
                item_results.append({'source': str(source), 'success': True, 'trip_id': trip.id})
            else:
                load_result.failures.append({'source': str(source), 'error': trip_result.error})
                item_results.append({'source': str(source), 'success': False,
                                     'error': trip_result.error.message})

        batch = BatchOperationResult.create(item_results)

        if not batch.success:
            error = BatchLoadError(
                successes=batch.successful_items,
                failures=batch.failed_items,
                error_details=[item for item in item_results if not item['success']]
            )
            self._handle_error(error, {'method': 'load_trips'})
            return Result.error(error)

        self._log_operation("load_trips", load_result.get_summary())

        result = Result.success(load_result).add_metadata('success_rate', batch.success_rate)
        for failure in load_result.failures:
            result.add_warning(f"{failure['source']}: {failure['error'].user_message}")
        return result

    def summarize_journey(self, events: Sequence[GPSEvent], current_index: int) -> Result[JourneySummary]:
        """Journey progress up to a cursor"""
        try:
            return Result.success(summarize(events, current_index))
        except FleetError as e:
            self._handle_error(e, {'method': 'summarize_journey'})
            return Result.error(e)

    def summarize_fleet(self, trips: Sequence[Trip]) -> Result[FleetSummary]:
        """Fleet-wide KPIs"""
        summary = fleet_summary(trips)
        self._log_operation(
            "summarize_fleet",
            f"{summary.total_trips} trips, {summary.completion_rate}% complete",
            level="debug"
        )
        return Result.success(summary)
