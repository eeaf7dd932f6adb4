#!/usr/bin/env python3
"""
Fleet-wide KPIs for the dashboard header
"""

from typing import Sequence

from fleet_replay.models.fleet_models import Trip, TripStatus
from fleet_replay.models.replay_models import FleetSummary
from fleet_replay.services.trip_transformer import round_half_up


def fleet_summary(trips: Sequence[Trip]) -> FleetSummary:
    """
    Aggregate KPIs over loaded trips

    Fuel efficiency is planned distance per litre, averaged over trips that
    burned any fuel. On-time rate only considers completed trips.
    """
    if not trips:
        return FleetSummary()

    completed = [trip for trip in trips if trip.status == TripStatus.COMPLETED]
    on_time = [trip for trip in completed if trip.is_on_time]

    efficiencies = [
        trip.metrics.planned_distance / trip.metrics.fuel_used
        for trip in trips if trip.metrics.fuel_used > 0
    ]
    avg_efficiency = sum(efficiencies) / len(efficiencies) if efficiencies else 0.0

    return FleetSummary(
        total_trips=len(trips),
        active_trips=sum(1 for trip in trips if trip.status == TripStatus.IN_PROGRESS),
        completed_trips=len(completed),
        cancelled_trips=sum(1 for trip in trips if trip.status == TripStatus.CANCELLED),
        completion_rate=round_half_up(len(completed) / len(trips) * 100),
        on_time_rate=round_half_up(len(on_time) / max(len(completed), 1) * 100),
        avg_fuel_efficiency=round_half_up(avg_efficiency * 10) / 10,
        avg_safety_score=round_half_up(sum(trip.metrics.safety_score for trip in trips) / len(trips)),
        total_violations=sum(trip.metrics.violations for trip in trips),
        active_alerts=sum(1 for trip in trips for alert in trip.alerts if not alert.resolved)
    )
