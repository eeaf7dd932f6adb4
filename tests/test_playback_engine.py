#!/usr/bin/env python3
"""
Tests for the playback replay state machine
"""

from dataclasses import replace

import pytest

from core.exceptions import InvalidInputError, MalformedEventError, ValidationError
from fleet_replay.models.fleet_models import PlaybackSpeed
from fleet_replay.services import playback_engine
from fleet_replay.services.event_log_parser import parse_event_log
from fleet_replay.services.geo_math import distance, path_distance

from conftest import START, build_raw_log, make_raw_event


START_MS = int(START.timestamp() * 1000)


@pytest.fixture
def state(events):
    return playback_engine.initialize('trip_001', events, 100.0)


def play_through(state, events):
    """Advance until the end, returning every intermediate state"""
    states = [state]
    while not playback_engine.is_finished(states[-1], events):
        states.append(playback_engine.advance(states[-1], events))
    return states


class TestInitialize:

    def test_initial_state(self, events, state):
        assert state.trip_id == 'trip_001'
        assert state.current_event_index == 0
        assert state.is_playing is False
        assert state.speed == PlaybackSpeed.X1
        assert state.current_time == START_MS
        assert state.traveled_path == (events[0].location,)
        assert state.current_location == events[0].location
        assert state.current_event == events[0]
        assert state.metrics.distance_traveled == 0.0
        assert state.metrics.target_distance == 100.0
        assert state.metrics.progress_percent == 0.0

    def test_route_defaults_to_event_locations(self, events, state):
        assert state.planned_route == tuple(event.location for event in events)

    def test_explicit_route_and_speed(self, events):
        route = [events[0].location, events[-1].location]
        state = playback_engine.initialize('trip_001', events, 100.0, planned_route=route, speed=10)

        assert state.planned_route == tuple(route)
        assert state.speed == PlaybackSpeed.X10

    def test_empty_log(self):
        with pytest.raises(InvalidInputError):
            playback_engine.initialize('trip_001', [], 100.0)

    def test_first_event_without_location(self):
        events = parse_event_log([make_raw_event(0, location=False), make_raw_event(1)])
        with pytest.raises(MalformedEventError) as exc_info:
            playback_engine.initialize('trip_001', events, 100.0)
        assert exc_info.value.event_index == 0


class TestAdvance:

    def test_single_step(self, events, state):
        stepped = playback_engine.advance(state, events)

        assert stepped.current_event_index == 1
        assert stepped.current_event == events[1]
        assert stepped.current_location == events[1].location
        assert stepped.current_time == events[1].timestamp_ms
        assert stepped.traveled_path == (events[0].location, events[1].location)

        expected = distance(events[0].location, events[1].location)
        assert stepped.metrics.distance_traveled == pytest.approx(expected)
        assert stepped.metrics.progress_percent == pytest.approx(expected)
        assert stepped.metrics.speed == 60.0
        assert stepped.metrics.battery == 89.0
        assert stepped.metrics.signal_quality == 'good'
        assert stepped.metrics.violations == 0

    def test_original_state_untouched(self, events, state):
        playback_engine.advance(state, events)
        assert state.current_event_index == 0
        assert len(state.traveled_path) == 1

    def test_path_tracks_cursor(self, events, state):
        for current in play_through(state, events):
            assert len(current.traveled_path) == current.current_event_index + 1

    def test_distance_is_monotonic(self, events, state):
        distances = [s.metrics.distance_traveled for s in play_through(state, events)]
        assert distances == sorted(distances)
        assert distances[-1] == pytest.approx(path_distance(event.location for event in events))

    def test_halts_at_last_event(self, events, state):
        final = playback_engine.play(play_through(state, events)[-1])
        stopped = playback_engine.advance(final, events)

        assert stopped.current_event_index == len(events) - 1
        assert stopped.is_playing is False
        assert stopped.traveled_path == final.traveled_path
        assert stopped.metrics == final.metrics

    def test_progress_is_clamped(self, events):
        state = playback_engine.initialize('trip_001', events, 0.5)
        stepped = playback_engine.advance(state, events)
        assert stepped.metrics.progress_percent == 100.0

    def test_zero_target_distance(self, events):
        state = playback_engine.initialize('trip_001', events, 0.0)
        assert playback_engine.advance(state, events).metrics.progress_percent == 0.0

    def test_planned_distance_override(self, events, state):
        stepped = playback_engine.advance(state, events, planned_distance=50.0)
        expected = distance(events[0].location, events[1].location) / 50.0 * 100

        assert stepped.metrics.target_distance == 50.0
        assert stepped.metrics.progress_percent == pytest.approx(expected)

    def test_missing_readings_keep_previous_values(self):
        raw = build_raw_log(count=3)
        del raw[2]['movement']
        del raw[2]['device']
        del raw[2]['signal_quality']
        events = parse_event_log(raw)

        state = playback_engine.initialize('trip_001', events, 100.0)
        state = playback_engine.advance(playback_engine.advance(state, events), events)

        assert state.metrics.speed == 60.0
        assert state.metrics.battery == 89.0
        assert state.metrics.signal_quality == 'good'

    def test_violation_counter(self):
        raw = build_raw_log()
        raw[1]['overspeed'] = True
        raw[3]['overspeed'] = True
        events = parse_event_log(raw)

        states = play_through(playback_engine.initialize('trip_001', events, 100.0), events)

        assert [s.metrics.violations for s in states] == [0, 1, 1, 2, 2]
        assert states[1].metrics.overspeed is True
        assert states[2].metrics.overspeed is False

    def test_next_event_without_location(self):
        events = parse_event_log([make_raw_event(0), make_raw_event(1, location=False), make_raw_event(2)])
        state = playback_engine.initialize('trip_001', events, 100.0)

        with pytest.raises(MalformedEventError) as exc_info:
            playback_engine.advance(state, events)
        assert exc_info.value.event_index == 1

    def test_out_of_range_cursor_is_clamped(self, events, state):
        runaway = replace(state, current_event_index=99)
        stopped = playback_engine.advance(runaway, events)
        assert stopped.current_event_index == len(events) - 1

    def test_is_finished(self, events, state):
        assert not playback_engine.is_finished(state, events)
        assert playback_engine.is_finished(play_through(state, events)[-1], events)


class TestControls:

    def test_play_and_pause(self, state):
        playing = playback_engine.play(state)
        assert playing.is_playing is True
        assert playback_engine.pause(playing).is_playing is False

    @pytest.mark.parametrize("speed, expected", [
        (PlaybackSpeed.X5, PlaybackSpeed.X5), (5, PlaybackSpeed.X5), ("10", PlaybackSpeed.X10)
    ])
    def test_set_speed(self, state, speed, expected):
        assert playback_engine.set_speed(state, speed).speed == expected

    @pytest.mark.parametrize("speed", [0, 2, 100, "fast", None])
    def test_invalid_speed(self, state, speed):
        with pytest.raises(ValidationError) as exc_info:
            playback_engine.set_speed(state, speed)
        assert 'speed' in exc_info.value.field_errors

    @pytest.mark.parametrize("speed, interval", [
        (PlaybackSpeed.X1, 1000), (PlaybackSpeed.X5, 200), (PlaybackSpeed.X10, 100)
    ])
    def test_tick_interval(self, state, speed, interval):
        assert playback_engine.tick_interval_ms(playback_engine.set_speed(state, speed)) == interval

    def test_tick_interval_never_zero(self, state):
        fast = playback_engine.set_speed(state, PlaybackSpeed.X10)
        assert playback_engine.tick_interval_ms(fast, base_interval_ms=5) == 1

    def test_reset_returns_to_start(self, events, state):
        advanced = playback_engine.play(playback_engine.set_speed(
            playback_engine.advance(playback_engine.advance(state, events), events), 5
        ))
        fresh = playback_engine.reset(advanced, events)

        assert fresh.current_event_index == 0
        assert fresh.is_playing is False
        assert fresh.speed == PlaybackSpeed.X5
        assert fresh.metrics.distance_traveled == 0.0
        assert fresh.metrics.target_distance == 100.0
        assert fresh.planned_route == state.planned_route

    def test_seek_matches_continuous_playback(self, events, state):
        continuous = play_through(state, events)[3]
        sought = playback_engine.seek(state, events, 3)

        assert sought.current_event_index == 3
        assert sought.traveled_path == continuous.traveled_path
        assert sought.metrics == continuous.metrics

    def test_seek_backwards(self, events, state):
        end = play_through(state, events)[-1]
        sought = playback_engine.seek(end, events, 1)

        assert sought.current_event_index == 1
        assert len(sought.traveled_path) == 2

    def test_seek_is_clamped_and_keeps_playing_flag(self, events, state):
        sought = playback_engine.seek(playback_engine.play(state), events, 42)

        assert sought.current_event_index == len(events) - 1
        assert sought.is_playing is True
