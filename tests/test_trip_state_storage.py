#!/usr/bin/env python3
"""
Tests for the tracking position storage backends
"""

import json

import pytest
from PySide6.QtCore import QSettings

from fleet_replay.services.tracking_engine import TrackingEngine
from fleet_replay.services.trip_state_storage import (
    InMemoryTripStateStorage, QSettingsTripStateStorage, STATE_KEY_PREFIX, state_key
)


def test_state_key():
    assert state_key('trip_001') == 'fleet_trip_trip_001'
    assert state_key('trip_001').startswith(STATE_KEY_PREFIX)


class TestInMemoryStorage:

    def test_get_missing_key(self):
        assert InMemoryTripStateStorage().get('absent') is None

    def test_set_get_remove(self):
        storage = InMemoryTripStateStorage()
        storage.set('a', '1')

        assert storage.get('a') == '1'
        assert storage.keys() == ['a']

        storage.remove('a')
        storage.remove('a')
        assert storage.get('a') is None

    def test_initial_values_are_copied(self):
        initial = {'a': '1'}
        storage = InMemoryTripStateStorage(initial)
        storage.set('b', '2')
        assert initial == {'a': '1'}


class TestQSettingsStorage:

    @pytest.fixture
    def ini_path(self, tmp_path):
        return str(tmp_path / "positions.ini")

    @pytest.fixture
    def storage(self, qapp, ini_path):
        return QSettingsTripStateStorage(QSettings(ini_path, QSettings.Format.IniFormat))

    def test_get_missing_key(self, storage):
        assert storage.get(state_key('trip_001')) is None

    def test_json_blob_survives_reopen(self, storage, ini_path):
        blob = json.dumps({'trip_id': 'trip_001', 'path': [{'lat': 40.0, 'lng': -74.0}], 'note': 'a, b'})
        storage.set(state_key('trip_001'), blob)

        reopened = QSettingsTripStateStorage(QSettings(ini_path, QSettings.Format.IniFormat))
        assert json.loads(reopened.get(state_key('trip_001'))) == json.loads(blob)

    def test_keys_are_grouped(self, storage):
        storage.set(state_key('trip_001'), '{}')
        storage.set(state_key('trip_002'), '{}')
        assert sorted(storage.keys()) == ['fleet_trip_trip_001', 'fleet_trip_trip_002']

    def test_remove(self, storage):
        storage.set(state_key('trip_001'), '{}')
        storage.remove(state_key('trip_001'))
        assert storage.get(state_key('trip_001')) is None

    def test_clear_only_touches_its_group(self, ini_path, storage):
        settings = QSettings(ini_path, QSettings.Format.IniFormat)
        settings.setValue("replay/default_speed", 5)
        settings.sync()

        storage.set(state_key('trip_001'), '{}')
        storage.clear()

        assert storage.keys() == []
        reopened = QSettings(ini_path, QSettings.Format.IniFormat)
        assert reopened.contains("replay/default_speed")

    def test_tracking_engine_resumes_from_settings(self, qapp, ini_path, events):
        first = TrackingEngine(QSettingsTripStateStorage(QSettings(ini_path, QSettings.Format.IniFormat)))
        first.step('trip_001', events, 40.0)
        first.step('trip_001', events, 40.0)

        second = TrackingEngine(QSettingsTripStateStorage(QSettings(ini_path, QSettings.Format.IniFormat)))
        resumed = second.step('trip_001', events, 40.0)

        assert resumed.current_index == 3
        assert resumed.metrics.distance_traveled == 30.0
