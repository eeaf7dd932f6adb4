#!/usr/bin/env python3
"""
Tests for the exception hierarchy and centralized error handler
"""

from core.error_handler import get_error_handler, handle_error, shutdown_error_handling
from core.exceptions import (
    BatchLoadError, ConfigurationError, ErrorSeverity, FleetError, InvalidInputError,
    MalformedEventError, StorageError, ValidationError
)


class TestExceptions:

    def test_hierarchy(self):
        for error in (
            InvalidInputError("x"), MalformedEventError("x"), StorageError("x"),
            ValidationError({'a': 'b'}), ConfigurationError("x"), BatchLoadError(0, 1)
        ):
            assert isinstance(error, FleetError)

    def test_to_dict(self):
        error = MalformedEventError("missing trip_id", event_index=4, field='trip_id')
        data = error.to_dict()

        assert data['error_code'] == 'MalformedEventError'
        assert data['message'] == "missing trip_id"
        assert data['severity'] == 'error'
        assert data['context'] == {'event_index': 4, 'field': 'trip_id'}
        assert "#4" in data['user_message']

    def test_storage_errors_are_recoverable_warnings(self):
        error = StorageError("quota exceeded", key='fleet_trip_trip_001')

        assert error.recoverable
        assert error.severity == ErrorSeverity.WARNING
        assert error.context['key'] == 'fleet_trip_trip_001'

    def test_validation_error_message(self):
        error = ValidationError({'speed': 'bad', 'trip_id': 'unknown'})

        assert error.message == "Validation failed: 2 field(s) have errors"
        assert error.user_message == "Please correct 2 validation errors."

    def test_batch_load_error(self):
        error = BatchLoadError(0, 3, [{'source': 'a.json'}])

        assert error.message == "Batch load failed: 3 of 3 trips could not be loaded"
        assert error.context['error_details'] == [{'source': 'a.json'}]

    def test_custom_user_message(self):
        error = InvalidInputError("empty", source="trip.json", user_message="Nothing to replay")
        assert error.user_message == "Nothing to replay"
        assert error.context['source'] == "trip.json"


class TestErrorHandler:

    def test_statistics_by_severity(self):
        handle_error(InvalidInputError("empty"))
        handle_error(StorageError("disk full"))
        handle_error(StorageError("disk full again"))

        stats = get_error_handler().get_error_statistics()

        assert stats['error'] == 1
        assert stats['warning'] == 2
        assert stats['critical'] == 0

    def test_recent_errors_merge_context(self):
        handle_error(InvalidInputError("empty", source="a.json"), {'operation': 'load'})

        recent = get_error_handler().get_recent_errors(1)[0]

        assert recent['error_code'] == 'InvalidInputError'
        assert recent['context']['operation'] == 'load'
        assert recent['context']['source'] == 'a.json'

    def test_ui_callbacks_receive_errors(self, qapp):
        received = []
        handler = get_error_handler()
        handler.register_ui_callback(lambda error, context: received.append((error, context)))

        error = ConfigurationError("bad", setting_key='replay.max_route_points')
        handle_error(error, {'method': 'load'})

        assert received[0][0] is error
        assert received[0][1]['method'] == 'load'

    def test_failing_callback_does_not_propagate(self, qapp):
        def broken(error, context):
            raise RuntimeError("callback failed")

        get_error_handler().register_ui_callback(broken)
        handle_error(InvalidInputError("empty"))

    def test_shutdown_drops_handler(self):
        first = get_error_handler()
        shutdown_error_handling()
        assert get_error_handler() is not first
