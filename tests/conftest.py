#!/usr/bin/env python3
"""
Shared fixtures for the Fleet Replay test suite
"""

import json
import sys
from datetime import datetime, timedelta, timezone

import pytest
from PySide6.QtCore import QCoreApplication

from core.error_handler import shutdown_error_handling
from core.services import reset_services
from fleet_replay.services.event_log_parser import parse_event_log


START = datetime(2024, 3, 1, 8, 0, 0, tzinfo=timezone.utc)


# Ensure QCoreApplication exists for Qt tests
@pytest.fixture(scope="session")
def qapp():
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication(sys.argv[:1])
    yield app


@pytest.fixture(autouse=True)
def clean_globals():
    """Each test starts with an empty registry and error handler"""
    reset_services()
    shutdown_error_handling()
    yield
    reset_services()
    shutdown_error_handling()


def make_raw_event(index, event_type='location_updated', trip_id='trip_001',
                   vehicle_id='veh_042', minutes_per_step=10, location=True, **fields):
    """
    Build one wire event; consecutive indices step 0.01 degrees north

    Extra keyword arguments are merged into the wire object, so blocks can
    be overridden or removed (pass None to drop a key).
    """
    event = {
        'event_id': f"evt_{index:04d}",
        'event_type': event_type,
        'timestamp': (START + timedelta(minutes=index * minutes_per_step)).strftime('%Y-%m-%dT%H:%M:%SZ'),
        'vehicle_id': vehicle_id,
        'trip_id': trip_id,
    }
    if location:
        event['location'] = {'lat': 40.0 + index * 0.01, 'lng': -74.0, 'accuracy_meters': 5.0}
    event.update(fields)
    return {key: value for key, value in event.items() if value is not None}


def build_raw_log(count=5, first_type='trip_started', last_type='trip_completed', **first_fields):
    """
    A trip of `count` events driving north at 60 km/h

    Odometer readings grow by 10 km per event; the first event carries the
    trip constants.
    """
    events = []
    for index in range(count):
        if index == 0:
            event_type = first_type
        elif index == count - 1:
            event_type = last_type
        else:
            event_type = 'location_updated'

        fields = {
            'movement': {'speed_kmh': 60.0, 'heading_degrees': 0.0, 'moving': True},
            'device': {'battery_level': 90.0 - index, 'charging': False},
            'distance_travelled_km': index * 10.0,
            'signal_quality': 'good',
            'overspeed': False,
        }
        if index == 0:
            fields.update({'planned_distance_km': 100.0, 'estimated_duration_hours': 2.0})
            fields.update(first_fields)
        events.append(make_raw_event(index, event_type, **fields))
    return events


@pytest.fixture
def raw_log():
    return build_raw_log()


@pytest.fixture
def events(raw_log):
    return parse_event_log(raw_log)


@pytest.fixture
def write_log(tmp_path):
    """Write a wire log to a JSON file and return its path"""
    def _write(raw_events, name='trip_001.json'):
        path = tmp_path / name
        path.write_text(json.dumps(raw_events), encoding='utf-8')
        return path
    return _write
