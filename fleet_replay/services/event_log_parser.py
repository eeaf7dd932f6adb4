#!/usr/bin/env python3
"""
Event log parsing

Turns a recorded trip log (a JSON array of telemetry objects) into GPSEvent
instances. Only the identity fields and the timestamp are required; every
other block is optional and stays None when absent.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

from core.exceptions import InvalidInputError, MalformedEventError
from fleet_replay.models.fleet_models import DeviceStatus, GPSEvent, Location, Movement

logger = logging.getLogger(__name__)


REQUIRED_FIELDS = ('event_id', 'event_type', 'timestamp', 'vehicle_id', 'trip_id')


def parse_timestamp(value: Any, position: Optional[int] = None) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware datetime

    Accepts a trailing ``Z``, an explicit offset, or no offset at all (read
    as UTC).

    Raises:
        MalformedEventError: If the value is not an ISO-8601 string
    """
    if not isinstance(value, str) or not value.strip():
        raise MalformedEventError(
            f"Timestamp must be an ISO-8601 string, got {value!r}",
            event_index=position, field='timestamp'
        )

    text = value.strip()
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'

    try:
        moment = datetime.fromisoformat(text)
    except ValueError as e:
        raise MalformedEventError(
            f"Unparseable timestamp {value!r}: {e}",
            event_index=position, field='timestamp'
        ) from e

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _optional_number(obj: Dict[str, Any], key: str, position: int,
                     field_path: Optional[str] = None) -> Optional[float]:
    value = obj.get(key)
    if value is None:
        return None
    if not _is_number(value):
        raise MalformedEventError(
            f"Field {field_path or key} must be numeric, got {value!r}",
            event_index=position, field=field_path or key
        )
    return float(value)


def _optional_bool(obj: Dict[str, Any], key: str) -> Optional[bool]:
    value = obj.get(key)
    return None if value is None else bool(value)


def _optional_block(obj: Dict[str, Any], key: str, position: int) -> Optional[Dict[str, Any]]:
    block = obj.get(key)
    if block is None:
        return None
    if not isinstance(block, dict):
        raise MalformedEventError(
            f"Field {key} must be an object, got {type(block).__name__}",
            event_index=position, field=key
        )
    return block


def _parse_location(block: Dict[str, Any], position: int) -> Location:
    for key in ('lat', 'lng'):
        if not _is_number(block.get(key)):
            raise MalformedEventError(
                f"Location {key} must be numeric, got {block.get(key)!r}",
                event_index=position, field=f"location.{key}"
            )

    return Location(
        lat=float(block['lat']),
        lng=float(block['lng']),
        accuracy=_optional_number(block, 'accuracy_meters', position, 'location.accuracy_meters'),
        altitude=_optional_number(block, 'altitude_meters', position, 'location.altitude_meters')
    )


def parse_event(obj: Any, position: int = 0) -> GPSEvent:
    """
    Parse one wire object into a GPSEvent

    Args:
        obj: Decoded JSON object
        position: Index of the object within its log, used in error reports

    Raises:
        MalformedEventError: If a required field is missing or a value is malformed
    """
    if not isinstance(obj, dict):
        raise MalformedEventError(
            f"Event must be an object, got {type(obj).__name__}",
            event_index=position
        )

    for key in REQUIRED_FIELDS:
        value = obj.get(key)
        if value is None or value == '':
            raise MalformedEventError(
                f"Event is missing required field '{key}'",
                event_index=position, field=key
            )

    location_block = _optional_block(obj, 'location', position)
    movement_block = _optional_block(obj, 'movement', position)
    device_block = _optional_block(obj, 'device', position)

    movement = None
    if movement_block is not None:
        movement = Movement(
            speed_kmh=_optional_number(movement_block, 'speed_kmh', position, 'movement.speed_kmh'),
            heading_degrees=_optional_number(movement_block, 'heading_degrees', position,
                                             'movement.heading_degrees'),
            moving=_optional_bool(movement_block, 'moving')
        )

    device = None
    if device_block is not None:
        device = DeviceStatus(
            battery_level=_optional_number(device_block, 'battery_level', position, 'device.battery_level'),
            charging=_optional_bool(device_block, 'charging')
        )

    signal_quality = obj.get('signal_quality')

    return GPSEvent(
        event_id=str(obj['event_id']),
        event_type=str(obj['event_type']),
        timestamp=parse_timestamp(obj['timestamp'], position),
        vehicle_id=str(obj['vehicle_id']),
        trip_id=str(obj['trip_id']),
        location=_parse_location(location_block, position) if location_block is not None else None,
        movement=movement,
        device=device,
        distance_travelled_km=_optional_number(obj, 'distance_travelled_km', position),
        signal_quality=str(signal_quality) if signal_quality is not None else None,
        overspeed=_optional_bool(obj, 'overspeed'),
        planned_distance_km=_optional_number(obj, 'planned_distance_km', position),
        estimated_duration_hours=_optional_number(obj, 'estimated_duration_hours', position),
        raw=dict(obj)
    )


def parse_event_log(payload: Any, source: Optional[str] = None) -> List[GPSEvent]:
    """
    Parse a decoded event log

    Args:
        payload: Decoded JSON document, expected to be an array of events
        source: Label for error reports (usually the file path)

    Raises:
        InvalidInputError: If the payload is not an array
        MalformedEventError: If any event is malformed
    """
    if not isinstance(payload, list):
        raise InvalidInputError(
            f"Event log must be a JSON array, got {type(payload).__name__}",
            source=source
        )

    events = [parse_event(obj, position) for position, obj in enumerate(payload)]

    unknown = {event.event_type for event in events if event.kind is None}
    if unknown:
        logger.debug(f"Unrecognized event types kept as-is: {sorted(unknown)}")

    return events


def load_event_log(path: Union[str, Path]) -> List[GPSEvent]:
    """
    Read and parse a UTF-8 JSON event log file

    Raises:
        InvalidInputError: If the file is missing, unreadable or not valid JSON
        MalformedEventError: If any event is malformed
    """
    file_path = Path(path)

    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            payload = json.load(f)
    except FileNotFoundError as e:
        raise InvalidInputError(
            f"Event log not found: {file_path}",
            source=str(file_path),
            user_message=f"Event log not found: {file_path.name}"
        ) from e
    except json.JSONDecodeError as e:
        raise InvalidInputError(
            f"Event log is not valid JSON: {file_path} ({e})",
            source=str(file_path),
            user_message=f"Event log is not valid JSON: {file_path.name}"
        ) from e
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidInputError(
            f"Cannot read event log {file_path}: {e}",
            source=str(file_path)
        ) from e

    events = parse_event_log(payload, source=str(file_path))
    logger.debug(f"Parsed {len(events)} events from {file_path.name}")
    return events
