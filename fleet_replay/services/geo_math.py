#!/usr/bin/env python3
"""
Geospatial helpers for trip replay

Great-circle distance and bearing on a spherical Earth, plus the index-based
route interpolation used to place a vehicle along its planned route.
"""

from math import radians, degrees, sin, cos, sqrt, atan2, floor
from typing import Iterable, List, Sequence

from core.exceptions import InvalidInputError
from fleet_replay.models.fleet_models import GPSEvent, Location


# Earth's radius in kilometers
EARTH_RADIUS_KM = 6371.0


def distance(a: Location, b: Location) -> float:
    """
    Haversine distance between two coordinates

    Args:
        a: First coordinate
        b: Second coordinate

    Returns:
        Distance in kilometers
    """
    lat1, lon1 = radians(a.lat), radians(a.lng)
    lat2, lon2 = radians(b.lat), radians(b.lng)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(h), sqrt(1 - h))

    return EARTH_RADIUS_KM * c


def bearing(a: Location, b: Location) -> float:
    """
    Initial great-circle bearing from a to b

    Returns:
        Compass bearing in degrees, 0 = north, 90 = east, in [0, 360).
        Identical points give 0.0.
    """
    if a.same_point(b):
        return 0.0

    lat1, lat2 = radians(a.lat), radians(b.lat)
    dlon = radians(b.lng - a.lng)

    y = sin(dlon) * cos(lat2)
    x = cos(lat1) * sin(lat2) - sin(lat1) * cos(lat2) * cos(dlon)

    result = degrees(atan2(y, x)) % 360
    # -0.0 and float rounding can land exactly on 360
    if result >= 360:
        result -= 360
    return result


def interpolated_position(route: Sequence[Location], progress_percent: float) -> Location:
    """
    Position along a route for a completion percentage

    Progress is mapped onto point indices, not onto distance, so unevenly
    spaced routes move faster across long segments.

    Args:
        route: Ordered route points
        progress_percent: Completion, clamped to [0, 100]

    Raises:
        InvalidInputError: If the route is empty
    """
    if not route:
        raise InvalidInputError("Cannot interpolate along an empty route")

    if len(route) == 1:
        return route[0]

    progress = min(100.0, max(0.0, progress_percent))
    position = progress / 100 * (len(route) - 1)

    index = int(floor(position))
    if index >= len(route) - 1:
        return route[-1]

    ratio = position - index
    start, end = route[index], route[index + 1]

    return Location(
        lat=start.lat + (end.lat - start.lat) * ratio,
        lng=start.lng + (end.lng - start.lng) * ratio
    )


def heading_at(events: Sequence[GPSEvent], index: int) -> float:
    """
    Rendering heading at a cursor position

    Bearing towards the next event's location, or 0.0 when there is no next
    located event.
    """
    if index < 0 or index + 1 >= len(events):
        return 0.0

    current, following = events[index].location, events[index + 1].location
    if current is None or following is None:
        return 0.0

    return bearing(current, following)


def path_distance(locations: Iterable[Location]) -> float:
    """Sum of haversine distances over consecutive points"""
    points: List[Location] = list(locations)
    return sum(distance(points[i - 1], points[i]) for i in range(1, len(points)))
