#!/usr/bin/env python3
"""
Service layer for the Fleet Replay engine

This package provides:
- Dependency injection through service registry
- Separation of replay logic from any dashboard components
- Testable, mockable service interfaces
"""

from .service_registry import (
    ServiceRegistry, get_registry, get_service, register_service,
    register_factory, reset_services
)
from .interfaces import IService, IFleetReplayService
from .base_service import BaseService

# Service configuration
from .service_config import configure_services, verify_service_configuration

__all__ = [
    'ServiceRegistry', 'get_registry', 'get_service', 'register_service',
    'register_factory', 'reset_services',
    'IService', 'IFleetReplayService',
    'BaseService',
    'configure_services', 'verify_service_configuration'
]
