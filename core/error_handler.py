#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Centralized error handling for the Fleet Replay engine

Routes errors raised anywhere in the engine to the log and, through a Qt
signal, to any dashboard component that registered a callback.
"""

from PySide6.QtCore import QObject, Signal, QThread, QCoreApplication, Qt
from typing import Callable, List, Dict, Any, Optional
import logging
from datetime import datetime, timezone

from .exceptions import FleetError, ErrorSeverity


def _in_main_thread() -> bool:
    app = QCoreApplication.instance()
    return app is None or QThread.currentThread() == app.thread()


class ErrorHandler(QObject):
    """
    Thread-safe centralized error handling system

    Logs immediately in the calling thread, keeps per-severity statistics and
    a bounded list of recent errors, and notifies UI callbacks on the main
    thread.
    """

    error_occurred = Signal(object, dict)  # error, context

    def __init__(self, parent=None):
        super().__init__(parent)

        self.logger = logging.getLogger(__name__)

        self._ui_callbacks: List[Callable[[FleetError, dict], None]] = []

        self._error_counts = {severity: 0 for severity in ErrorSeverity}

        self._recent_errors: List[Dict[str, Any]] = []
        self._max_recent_errors = 100

        self.error_occurred.connect(
            self._handle_error_main_thread,
            Qt.QueuedConnection  # Ensure main thread execution
        )

    def register_ui_callback(self, callback: Callable[[FleetError, dict], None]):
        """
        Register UI callback for error notifications

        Args:
            callback: Function to call with (error, context) parameters
        """
        if not _in_main_thread():
            self.logger.warning("UI callback registered from non-main thread")
        self._ui_callbacks.append(callback)

    def unregister_ui_callback(self, callback: Callable[[FleetError, dict], None]):
        """Unregister UI callback"""
        try:
            self._ui_callbacks.remove(callback)
        except ValueError:
            self.logger.warning("Attempted to unregister non-existent UI callback")

    def handle_error(self, error: FleetError, context: Optional[dict] = None):
        """
        Handle error from any thread

        Args:
            error: The error that occurred
            context: Additional context information
        """
        context = dict(context or {})
        context['timestamp'] = datetime.now(timezone.utc).isoformat()

        self._log_error(error, context)
        self._error_counts[error.severity] += 1
        self._store_recent_error(error, context)

        if _in_main_thread():
            self._handle_error_main_thread(error, context)
        else:
            self.error_occurred.emit(error, context)

    def _handle_error_main_thread(self, error: FleetError, context: dict):
        for callback in self._ui_callbacks:
            try:
                callback(error, context)
            except Exception as callback_error:
                self.logger.error(f"UI callback failed: {callback_error}", exc_info=True)

    def _log_error(self, error: FleetError, context: dict):
        context_items = [f"{key}={value}" for key, value in context.items() if key != 'timestamp']

        log_msg = f"[{error.error_code}] {error.message}"
        if context_items:
            log_msg += f" | Context: {', '.join(context_items)}"

        if error.severity == ErrorSeverity.CRITICAL:
            self.logger.critical(log_msg)
        elif error.severity == ErrorSeverity.ERROR:
            self.logger.error(log_msg)
        elif error.severity == ErrorSeverity.WARNING:
            self.logger.warning(log_msg)
        else:
            self.logger.info(log_msg)

    def _store_recent_error(self, error: FleetError, context: dict):
        error_record = error.to_dict()
        error_record['context'] = dict(context, **error.context)
        self._recent_errors.append(error_record)

        # Trim to maximum size
        if len(self._recent_errors) > self._max_recent_errors:
            self._recent_errors = self._recent_errors[-self._max_recent_errors:]

    def get_error_statistics(self) -> Dict[str, int]:
        """Get error count statistics keyed by severity value"""
        return {severity.value: count for severity, count in self._error_counts.items()}

    def get_recent_errors(self, count: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Get recent errors for debugging

        Args:
            count: Number of recent errors to return (None for all)
        """
        if count is None:
            return self._recent_errors.copy()
        return self._recent_errors[-count:] if self._recent_errors else []

    def clear_statistics(self):
        """Clear error statistics and recent errors"""
        self._error_counts = {severity: 0 for severity in ErrorSeverity}
        self._recent_errors.clear()


# Global singleton instance
_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance, creating it on first use"""
    global _global_error_handler

    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()

    return _global_error_handler


def shutdown_error_handling():
    """Drop the global error handler (application shutdown and tests)"""
    global _global_error_handler

    if _global_error_handler is not None:
        _global_error_handler.clear_statistics()
        _global_error_handler = None


def handle_error(error: FleetError, context: Optional[dict] = None):
    """
    Handle an error using the global error handler

    Args:
        error: The error that occurred
        context: Additional context information
    """
    get_error_handler().handle_error(error, context)
