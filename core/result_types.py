#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Result objects for the Fleet Replay engine

Services return Result objects instead of raising, so the dashboard can show
a load-failure state with the error's user message and keep going.
"""

from typing import TypeVar, Generic, Optional, List, Dict, Any
from dataclasses import dataclass, field

from .exceptions import FleetError

# Type variable for generic result values
T = TypeVar('T')


@dataclass
class Result(Generic[T]):
    """
    Universal result object

    Provides type-safe error handling with rich context information
    and support for warnings and metadata.
    """
    success: bool
    value: Optional[T] = None
    error: Optional[FleetError] = None
    warnings: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, value: T, warnings: Optional[List[str]] = None, **metadata) -> 'Result[T]':
        """
        Create a successful result

        Args:
            value: The successful result value
            warnings: Optional list of warnings
            **metadata: Additional metadata to store

        Returns:
            Result object indicating success
        """
        return cls(
            success=True,
            value=value,
            warnings=warnings or [],
            metadata=metadata
        )

    @classmethod
    def error(cls, error: FleetError, warnings: Optional[List[str]] = None) -> 'Result[T]':
        """
        Create an error result

        Args:
            error: The error that occurred
            warnings: Optional list of warnings that occurred before the error

        Returns:
            Result object indicating failure
        """
        return cls(
            success=False,
            error=error,
            warnings=warnings or []
        )

    def unwrap(self) -> T:
        """
        Get value or raise error

        Raises:
            FleetError: If the result indicates failure
        """
        if not self.success:
            raise self.error
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Get value or return default"""
        return self.value if self.success else default

    def and_then(self, func) -> 'Result':
        """
        Chain operations that return Results

        Args:
            func: Function that takes value and returns a Result

        Returns:
            New Result from the function, or original error
        """
        if self.success:
            return func(self.value)
        return self

    def has_warnings(self) -> bool:
        """Check if result has warnings"""
        return len(self.warnings) > 0

    def add_warning(self, warning: str) -> 'Result[T]':
        """Add a warning to this result"""
        self.warnings.append(warning)
        return self

    def add_metadata(self, key: str, value: Any) -> 'Result[T]':
        """Add metadata to this result"""
        self.metadata[key] = value
        return self


@dataclass
class BatchOperationResult(Result[List[Dict[str, Any]]]):
    """
    Batch operation results with success/failure tracking

    Used when several event logs are loaded together and each one succeeds
    or fails on its own.
    """
    total_items: int = 0
    successful_items: int = 0
    failed_items: int = 0
    item_results: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Calculate success rate as percentage"""
        if self.total_items == 0:
            return 100.0
        return (self.successful_items / self.total_items) * 100

    @classmethod
    def create(cls, item_results: List[Dict[str, Any]], **kwargs) -> 'BatchOperationResult':
        """
        Create BatchOperationResult from individual item results

        Args:
            item_results: List of results for individual items, each with a
                'success' flag
            **kwargs: Additional arguments

        Returns:
            BatchOperationResult instance
        """
        total = len(item_results)
        successful = sum(1 for result in item_results if result.get('success', False))
        failed = total - successful

        # A batch with at least one loaded trip is still usable
        overall_success = total == 0 or successful > 0

        return cls(
            success=overall_success,
            value=item_results,
            total_items=total,
            successful_items=successful,
            failed_items=failed,
            item_results=item_results,
            **kwargs
        )
