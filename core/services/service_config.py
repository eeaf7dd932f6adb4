#!/usr/bin/env python3
"""
Service configuration and registration
"""
import logging

from .service_registry import register_service, get_service
from .interfaces import IFleetReplayService

logger = logging.getLogger("ServiceConfiguration")


def configure_services(settings=None):
    """
    Configure and register all application services

    Args:
        settings: Optional ReplaySettings; defaults are used when omitted
    """
    try:
        from fleet_replay.services.fleet_replay_service import FleetReplayService
        register_service(IFleetReplayService, FleetReplayService(settings))

        logger.info("All services configured successfully")

    except Exception as e:
        # Log configuration errors, then let the caller decide
        logger.error(f"Service configuration failed: {e}")
        raise


def get_configured_services():
    """Get list of all configured service interfaces for debugging"""
    return [IFleetReplayService]


def verify_service_configuration():
    """Verify all services are properly configured (for testing/debugging)"""
    results = {}

    for service_interface in get_configured_services():
        try:
            service = get_service(service_interface)
            results[service_interface.__name__] = {
                'configured': True,
                'instance': service.__class__.__name__,
                'error': None
            }
        except ValueError as e:
            results[service_interface.__name__] = {
                'configured': False,
                'instance': None,
                'error': str(e)
            }

    return results
