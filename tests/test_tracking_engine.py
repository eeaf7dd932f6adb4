#!/usr/bin/env python3
"""
Tests for the continuous tracking state machine
"""

import json

import pytest

from core.error_handler import get_error_handler
from core.exceptions import InvalidInputError, MalformedEventError, StorageError
from fleet_replay.services.event_log_parser import parse_event_log
from fleet_replay.services.tracking_engine import TrackingEngine
from fleet_replay.services.trip_state_storage import InMemoryTripStateStorage, state_key

from conftest import build_raw_log, make_raw_event


TOTAL_DISTANCE = 40.0


class FailingStorage(InMemoryTripStateStorage):
    """Storage whose writes always fail"""

    def set(self, key, value):
        raise StorageError("disk full", key=key)


@pytest.fixture
def storage():
    return InMemoryTripStateStorage()


@pytest.fixture
def engine(storage):
    return TrackingEngine(storage)


def stored_blob(storage, trip_id='trip_001'):
    return json.loads(storage.get(state_key(trip_id)))


class TestInitialize:

    def test_fresh_state_when_nothing_stored(self, engine, events):
        state = engine.initialize('trip_001', events, TOTAL_DISTANCE)

        assert state.current_index == 0
        assert state.current_location == events[0].location
        assert state.current_event == events[0]
        assert state.traveled_path == (events[0].location,)
        assert state.metrics.distance_traveled == 0.0
        assert state.metrics.target_distance == TOTAL_DISTANCE
        assert state.is_active is True

    def test_initialize_does_not_persist(self, engine, storage, events):
        engine.initialize('trip_001', events, TOTAL_DISTANCE)
        assert storage.keys() == []

    def test_empty_log(self, engine):
        with pytest.raises(InvalidInputError):
            engine.initialize('trip_001', [], TOTAL_DISTANCE)

    def test_first_event_without_location(self, engine):
        events = parse_event_log([make_raw_event(0, location=False), make_raw_event(1)])
        with pytest.raises(MalformedEventError):
            engine.initialize('trip_001', events, TOTAL_DISTANCE)

    def test_rehydrates_persisted_state(self, engine, events):
        engine.step('trip_001', events, TOTAL_DISTANCE)
        engine.step('trip_001', events, TOTAL_DISTANCE)

        restored = engine.initialize('trip_001', events, TOTAL_DISTANCE)

        assert restored.current_index == 2
        assert restored.current_event == events[2]
        assert restored.traveled_path == tuple(event.location for event in events[:3])
        assert restored.metrics.distance_traveled == 20.0

    def test_rehydrate_in_a_new_engine(self, storage, events):
        TrackingEngine(storage).step('trip_001', events, TOTAL_DISTANCE)
        restored = TrackingEngine(storage).initialize('trip_001', events, TOTAL_DISTANCE)
        assert restored.current_index == 1

    def test_rehydrate_applies_new_total_distance(self, engine, events):
        engine.step('trip_001', events, TOTAL_DISTANCE)
        restored = engine.initialize('trip_001', events, 80.0)
        assert restored.metrics.target_distance == 80.0

    def test_stored_cursor_beyond_log_is_clamped(self, engine, storage, events):
        engine.step('trip_001', events, TOTAL_DISTANCE)
        blob = stored_blob(storage)
        blob['current_index'] = 99
        storage.set(state_key('trip_001'), json.dumps(blob))

        restored = engine.initialize('trip_001', events, TOTAL_DISTANCE)

        assert restored.current_index == len(events) - 1
        assert restored.current_event == events[-1]
        assert restored.current_location == events[-1].location

    def test_clamped_cursor_trims_traveled_path(self, engine, events):
        for _ in range(3):
            engine.step('trip_001', events, TOTAL_DISTANCE)

        shorter = events[:2]
        restored = engine.initialize('trip_001', shorter, TOTAL_DISTANCE)

        assert restored.current_index == 1
        assert restored.traveled_path == (events[0].location, events[1].location)

    @pytest.mark.parametrize("blob", ["not json", "[]", json.dumps({'trip_id': 'trip_001'}), "{}"])
    def test_unreadable_blob_starts_fresh(self, events, blob):
        engine = TrackingEngine(InMemoryTripStateStorage({state_key('trip_001'): blob}))
        state = engine.initialize('trip_001', events, TOTAL_DISTANCE)
        assert state.current_index == 0

    def test_blob_for_another_trip_is_ignored(self, engine, storage, events):
        engine.step('trip_001', events, TOTAL_DISTANCE)
        blob = stored_blob(storage)
        blob['trip_id'] = 'trip_999'
        storage.set(state_key('trip_001'), json.dumps(blob))

        assert engine.initialize('trip_001', events, TOTAL_DISTANCE).current_index == 0


class TestAdvance:

    def test_step_advances_and_persists(self, engine, storage, events):
        state = engine.step('trip_001', events, TOTAL_DISTANCE)

        assert state.current_index == 1
        assert state.metrics.distance_traveled == 10.0
        assert state.metrics.progress_percent == 25.0
        assert state.metrics.speed == 60.0
        assert state.metrics.battery == 89.0

        blob = stored_blob(storage)
        assert blob['current_index'] == 1
        assert blob['current_event_id'] == events[1].event_id
        assert len(blob['traveled_path']) == 2

    def test_storage_key_uses_trip_prefix(self, engine, storage, events):
        engine.step('trip_001', events, TOTAL_DISTANCE)
        assert storage.keys() == ['fleet_trip_trip_001']

    def test_distance_comes_from_odometer(self, engine, events):
        states = [engine.step('trip_001', events, TOTAL_DISTANCE) for _ in range(4)]
        assert [s.metrics.distance_traveled for s in states] == [10.0, 20.0, 30.0, 40.0]
        assert states[-1].metrics.progress_percent == 100.0

    def test_missing_odometer_keeps_previous_distance(self, engine):
        raw = build_raw_log()
        del raw[2]['distance_travelled_km']
        events = parse_event_log(raw)

        states = [engine.step('trip_001', events, TOTAL_DISTANCE) for _ in range(3)]
        assert [s.metrics.distance_traveled for s in states] == [10.0, 10.0, 30.0]

    def test_progress_is_clamped(self, engine, events):
        state = engine.step('trip_001', events, 5.0)
        assert state.metrics.progress_percent == 100.0

    def test_zero_total_distance(self, engine, events):
        assert engine.step('trip_001', events, 0.0).metrics.progress_percent == 0.0

    def test_loops_after_last_event(self, engine, storage, events):
        for _ in range(len(events) - 1):
            state = engine.step('trip_001', events, TOTAL_DISTANCE)
        assert state.current_index == len(events) - 1

        looped = engine.step('trip_001', events, TOTAL_DISTANCE)

        assert looped.current_index == 0
        assert looped.traveled_path == (events[0].location,)
        assert looped.metrics.distance_traveled == 0.0
        assert looped.metrics.violations == 0
        assert stored_blob(storage)['current_index'] == 0

    def test_replay_continues_after_loop(self, engine, events):
        for _ in range(len(events)):
            engine.step('trip_001', events, TOTAL_DISTANCE)
        assert engine.step('trip_001', events, TOTAL_DISTANCE).current_index == 1

    def test_violations_accumulate(self, engine):
        raw = build_raw_log()
        raw[1]['overspeed'] = True
        raw[2]['overspeed'] = True
        events = parse_event_log(raw)

        states = [engine.step('trip_001', events, TOTAL_DISTANCE) for _ in range(3)]
        assert [s.metrics.violations for s in states] == [1, 2, 2]

    def test_next_event_without_location(self, engine):
        events = parse_event_log([make_raw_event(0), make_raw_event(1, location=False), make_raw_event(2)])
        with pytest.raises(MalformedEventError) as exc_info:
            engine.step('trip_001', events, TOTAL_DISTANCE)
        assert exc_info.value.event_index == 1

    def test_trips_are_isolated(self, engine, storage):
        first = parse_event_log(build_raw_log())
        second = parse_event_log([make_raw_event(i, trip_id='trip_002') for i in range(3)])

        engine.step('trip_001', first, TOTAL_DISTANCE)
        engine.step('trip_001', first, TOTAL_DISTANCE)
        engine.step('trip_002', second, TOTAL_DISTANCE)

        assert stored_blob(storage, 'trip_001')['current_index'] == 2
        assert stored_blob(storage, 'trip_002')['current_index'] == 1

    def test_storage_failure_does_not_stop_replay(self, events):
        engine = TrackingEngine(FailingStorage())

        state = engine.step('trip_001', events, TOTAL_DISTANCE)

        assert state.current_index == 1
        assert get_error_handler().get_error_statistics()['warning'] == 1

    def test_clear_forgets_position(self, engine, storage, events):
        engine.step('trip_001', events, TOTAL_DISTANCE)
        engine.clear('trip_001')

        assert storage.get(state_key('trip_001')) is None
        assert engine.initialize('trip_001', events, TOTAL_DISTANCE).current_index == 0
