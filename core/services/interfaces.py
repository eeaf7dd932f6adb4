#!/usr/bin/env python3
"""
Service interfaces for dependency injection and testing
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Sequence, Union

from ..result_types import Result
from fleet_replay.models.fleet_models import GPSEvent, ReplaySettings, Trip
from fleet_replay.models.replay_models import FleetLoadResult, FleetSummary, JourneySummary


class IService(ABC):
    """Base interface for all services"""
    pass


class IFleetReplayService(IService):
    """
    Interface for the fleet replay service

    Loads recorded event logs, derives trips and computes summaries.
    """

    @property
    @abstractmethod
    def settings(self) -> ReplaySettings:
        """Heuristic constants and replay timing in use"""
        pass

    @abstractmethod
    def load_event_log(self, path: Union[str, Path]) -> Result[List[GPSEvent]]:
        """
        Read and parse one event log file

        Args:
            path: Path to a JSON event log

        Returns:
            Result containing the parsed events or error
        """
        pass

    @abstractmethod
    def build_trip(self, events: Sequence[GPSEvent]) -> Result[Trip]:
        """
        Derive a Trip from one trip's events

        Returns:
            Result containing the Trip or error
        """
        pass

    @abstractmethod
    def load_trips(self, sources: Sequence[Union[str, Path]]) -> Result[FleetLoadResult]:
        """
        Load several event logs, isolating failures per trip

        Returns:
            Result containing loaded trips plus per-source failures; an error
            only when every source failed
        """
        pass

    @abstractmethod
    def summarize_journey(self, events: Sequence[GPSEvent], current_index: int) -> Result[JourneySummary]:
        """Journey progress up to a cursor"""
        pass

    @abstractmethod
    def summarize_fleet(self, trips: Sequence[Trip]) -> Result[FleetSummary]:
        """Fleet-wide KPIs"""
        pass
