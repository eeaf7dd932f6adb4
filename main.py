#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Fleet Replay - Headless entry point

Replays recorded trip event logs under a Qt event loop and prints the
journey and fleet summaries when every trip is done.

    python main.py trip_001.json trip_002.json --mode playback --speed 10
"""

import argparse
import sys
from typing import Dict

from PySide6.QtCore import QCoreApplication

from core.exceptions import ConfigurationError
from core.logger import logger
from core.services import configure_services
from fleet_replay.controllers.fleet_replay_controller import FleetReplayController
from fleet_replay.models.fleet_models import PlaybackSpeed, ReplaySettings
from fleet_replay.services.replay_settings_store import ReplaySettingsStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay recorded fleet trip event logs")
    parser.add_argument('logs', nargs='+', help="JSON event log files, one trip per file")
    parser.add_argument('--mode', choices=['playback', 'tracking'], default='playback',
                        help="playback stops at the last event, tracking loops")
    parser.add_argument('--speed', type=int, choices=[s.value for s in PlaybackSpeed], default=None,
                        help="playback speed multiplier")
    parser.add_argument('--ticks', type=int, default=None,
                        help="stop each trip after this many ticks (tracking defaults to one pass)")
    parser.add_argument('--interval-ms', type=int, default=None,
                        help="override the base tick interval")
    parser.add_argument('--debug', action='store_true', help="show debug logging")
    return parser


def load_settings() -> ReplaySettings:
    """Stored replay settings, or defaults when they are invalid"""
    try:
        return ReplaySettingsStore().load()
    except ConfigurationError as e:
        logger.warning(f"Ignoring stored settings: {e.message}")
        return ReplaySettings()


def print_summaries(controller: FleetReplayController):
    for trip_id in sorted(controller.trips):
        trip = controller.trips[trip_id]
        journey = controller.journey_summary(trip_id).unwrap_or(None)
        if journey is None:
            continue
        print(
            f"{trip_id} [{trip.status.value}] "
            f"{journey.events_covered}/{journey.total_events} events, "
            f"{journey.total_distance:.2f} km in {journey.time_elapsed}, "
            f"avg {journey.avg_speed:.1f} km/h, heading {controller.current_heading(trip_id):.0f}"
        )

    fleet = controller.fleet_summary().unwrap()
    print(
        f"Fleet: {fleet.total_trips} trips, {fleet.active_trips} active, "
        f"{fleet.completion_rate}% complete, {fleet.on_time_rate}% on time, "
        f"safety {fleet.avg_safety_score}, {fleet.avg_fuel_efficiency} km/L"
    )


def main(argv=None) -> int:
    """Application entry point"""
    args = build_parser().parse_args(argv)

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app.setApplicationName("Fleet Replay")
    app.setOrganizationName("FleetReplay")

    if args.debug:
        logger.enable_debug(True)

    settings = load_settings()
    if args.interval_ms is not None:
        settings.playback_base_interval_ms = args.interval_ms
        settings.tracking_interval_ms = args.interval_ms

    configure_services(settings)
    controller = FleetReplayController()

    result = controller.load_trips(args.logs)
    if not result.success:
        print(result.error.user_message, file=sys.stderr)
        return 1
    if result.has_warnings():
        for warning in result.warnings:
            print(f"Skipped {warning}", file=sys.stderr)

    remaining: Dict[str, int] = {}

    def finish(trip_id: str):
        if remaining.pop(trip_id, None) is not None:
            controller.get_driver(trip_id).stop()
        if not remaining:
            app.quit()

    def on_tick(trip_id: str):
        if trip_id not in remaining:
            return
        remaining[trip_id] -= 1
        if remaining[trip_id] <= 0:
            finish(trip_id)

    for trip_id, events in list(controller.events_by_trip.items()):
        remaining[trip_id] = args.ticks if args.ticks is not None else len(events)

        if args.mode == 'playback':
            started = controller.create_playback(trip_id, args.speed)
        else:
            started = controller.start_tracking(trip_id)

        if not started.success:
            remaining.pop(trip_id, None)
            continue

        driver = started.value
        driver.error_occurred.connect(lambda _error, t=trip_id: finish(t))

        if args.mode == 'playback':
            driver.playback_finished.connect(finish)
            controller.play(trip_id)

        # Connected after play() so only advances are counted
        driver.state_changed.connect(lambda _state, t=trip_id: on_tick(t))

    if remaining:
        app.exec()

    print_summaries(controller)
    controller.cleanup()
    return 0


if __name__ == "__main__":
    sys.exit(main())
