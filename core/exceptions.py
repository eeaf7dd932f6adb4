#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Thread-aware exception hierarchy for the Fleet Replay engine

Every error raised by the engine derives from FleetError. Errors carry a
technical message for logs, a user-facing message for the dashboard, a
severity level and free-form context, and can be routed through the Qt
error handler from any thread.
"""

from PySide6.QtCore import QThread
from typing import Dict, Any, Optional, List
from datetime import datetime, timezone
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels for categorization and UI display"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class FleetError(Exception):
    """
    Base exception for all Fleet Replay errors

    Thread-aware exception that captures context information and provides
    user-friendly messages for UI display.
    """

    def __init__(self,
                 message: str,
                 error_code: Optional[str] = None,
                 user_message: Optional[str] = None,
                 recoverable: bool = False,
                 severity: ErrorSeverity = ErrorSeverity.ERROR,
                 context: Optional[Dict[str, Any]] = None):
        """
        Initialize fleet error

        Args:
            message: Technical error message for logging
            error_code: Unique error code for categorization
            user_message: User-friendly message for UI display
            recoverable: Whether operation can be retried
            severity: Error severity level
            context: Additional context information
        """
        super().__init__(message)

        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.user_message = user_message or self._generate_user_message()
        self.recoverable = recoverable
        self.severity = severity
        self.timestamp = datetime.now(timezone.utc)
        self.context = context or {}

        # Thread context information
        current_thread = QThread.currentThread()
        self.thread_name = current_thread.objectName() or current_thread.__class__.__name__

    def _generate_user_message(self) -> str:
        """Generate user-friendly message from technical message"""
        return "An error occurred during the operation. Please check the logs for details."

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging and serialization"""
        return {
            'error_code': self.error_code,
            'message': self.message,
            'user_message': self.user_message,
            'severity': self.severity.value,
            'recoverable': self.recoverable,
            'timestamp': self.timestamp.isoformat(),
            'thread_name': self.thread_name,
            'context': self.context
        }


class InvalidInputError(FleetError):
    """Event log cannot produce a trip (empty, too few locations, unreadable)"""

    def __init__(self, message: str, source: Optional[str] = None, **kwargs):
        """
        Initialize invalid input error

        Args:
            message: Technical error message
            source: File path or label of the offending event log
            **kwargs: Additional FleetError arguments
        """
        context = kwargs.get('context', {})
        if source:
            context['source'] = source
        kwargs['context'] = context

        super().__init__(message, **kwargs)

    def _generate_user_message(self) -> str:
        return "The trip data could not be loaded. The event log is empty or incomplete."


class MalformedEventError(FleetError):
    """A single event is missing a required field or carries a malformed value"""

    def __init__(self, message: str, event_index: Optional[int] = None,
                 field: Optional[str] = None, **kwargs):
        """
        Initialize malformed event error

        Args:
            message: Technical error message
            event_index: Position of the event inside its log
            field: Name of the missing or malformed field
            **kwargs: Additional FleetError arguments
        """
        self.event_index = event_index
        self.field = field

        context = kwargs.get('context', {})
        if event_index is not None:
            context['event_index'] = event_index
        if field:
            context['field'] = field
        kwargs['context'] = context

        super().__init__(message, **kwargs)

    def _generate_user_message(self) -> str:
        if self.event_index is not None:
            return f"Trip data is corrupted at event #{self.event_index}."
        return "Trip data contains a corrupted event."


class StorageError(FleetError):
    """Replay position could not be written to the key-value store"""

    def __init__(self, message: str, key: Optional[str] = None, **kwargs):
        context = kwargs.get('context', {})
        if key:
            context['key'] = key
        kwargs['context'] = context
        kwargs.setdefault('recoverable', True)
        kwargs.setdefault('severity', ErrorSeverity.WARNING)

        super().__init__(message, **kwargs)

    def _generate_user_message(self) -> str:
        return "Replay position could not be saved. Playback will continue from memory."


class ValidationError(FleetError):
    """Form and data validation errors"""

    def __init__(self, field_errors: Dict[str, str], **kwargs):
        """
        Initialize validation error

        Args:
            field_errors: Dictionary mapping field names to error messages
            **kwargs: Additional FleetError arguments
        """
        self.field_errors = field_errors
        context = kwargs.get('context', {})
        context['field_errors'] = field_errors
        kwargs['context'] = context

        message = f"Validation failed: {len(field_errors)} field(s) have errors"
        super().__init__(message, severity=ErrorSeverity.WARNING, **kwargs)

    def _generate_user_message(self) -> str:
        error_count = len(self.field_errors)
        if error_count == 1:
            return "Please correct the validation error."
        return f"Please correct {error_count} validation errors."


class ConfigurationError(FleetError):
    """Invalid replay or heuristic settings"""

    def __init__(self, message: str, setting_key: Optional[str] = None, **kwargs):
        """
        Initialize configuration error

        Args:
            message: Technical error message
            setting_key: Settings key that has the invalid value
            **kwargs: Additional FleetError arguments
        """
        context = kwargs.get('context', {})
        if setting_key:
            context['setting_key'] = setting_key
        kwargs['context'] = context

        super().__init__(message, **kwargs)

    def _generate_user_message(self) -> str:
        return "Replay settings are invalid. Please review the configuration."


class BatchLoadError(FleetError):
    """Every trip in a batch of event logs failed to load"""

    def __init__(self, successes: int, failures: int,
                 error_details: Optional[List[Dict[str, Any]]] = None, **kwargs):
        """
        Initialize batch load error

        Args:
            successes: Number of trips loaded
            failures: Number of trips that failed
            error_details: Per-trip failure records (source, error)
            **kwargs: Additional FleetError arguments
        """
        self.successes = successes
        self.failures = failures
        self.error_details = error_details or []

        context = kwargs.get('context', {})
        context.update({
            'successes': successes,
            'failures': failures,
            'error_details': self.error_details
        })
        kwargs['context'] = context

        message = f"Batch load failed: {failures} of {successes + failures} trips could not be loaded"
        super().__init__(message, **kwargs)

    def _generate_user_message(self) -> str:
        return f"{self.failures} trip(s) could not be loaded. Use retry to load them again."
