#!/usr/bin/env python3
"""
Tests for the headless command line entry point
"""

import pytest

import main as fleet_main
from fleet_replay.models.fleet_models import ReplaySettings

from conftest import build_raw_log


@pytest.fixture(autouse=True)
def default_settings(monkeypatch):
    # Keep the user's stored settings out of the run
    monkeypatch.setattr(fleet_main, 'load_settings', lambda: ReplaySettings())


class TestArguments:

    def test_defaults(self):
        args = fleet_main.build_parser().parse_args(['a.json'])

        assert args.logs == ['a.json']
        assert args.mode == 'playback'
        assert args.speed is None
        assert args.ticks is None

    def test_speed_must_be_supported(self):
        with pytest.raises(SystemExit):
            fleet_main.build_parser().parse_args(['a.json', '--speed', '3'])

    def test_logs_are_required(self):
        with pytest.raises(SystemExit):
            fleet_main.build_parser().parse_args([])


class TestMain:

    def test_playback_run(self, qapp, write_log, capsys):
        path = write_log(build_raw_log())

        exit_code = fleet_main.main([str(path), '--speed', '10', '--interval-ms', '10'])

        output = capsys.readouterr().out
        assert exit_code == 0
        assert "trip_001 [Completed] 5/5 events" in output
        assert "0h 40m 0s" in output
        assert "Fleet: 1 trips" in output

    def test_tracking_run_with_tick_limit(self, qapp, write_log, capsys):
        path = write_log(build_raw_log())

        exit_code = fleet_main.main([str(path), '--mode', 'tracking', '--ticks', '2', '--interval-ms', '5'])

        assert exit_code == 0
        assert "3/5 events" in capsys.readouterr().out

    def test_unreadable_log_is_skipped(self, qapp, write_log, tmp_path, capsys):
        path = write_log(build_raw_log())

        exit_code = fleet_main.main([str(path), str(tmp_path / "missing.json"), '--interval-ms', '5'])

        captured = capsys.readouterr()
        assert exit_code == 0
        assert "Skipped" in captured.err
        assert "missing.json" in captured.err
        assert "Fleet: 1 trips" in captured.out

    def test_unreadable_logs(self, qapp, tmp_path, capsys):
        exit_code = fleet_main.main([str(tmp_path / "missing.json")])

        assert exit_code == 1
        assert "could not be loaded" in capsys.readouterr().err
