"""
Geo Service
===========

Geographic helpers for provider location reports and for ordering the
pending-request board by distance from a provider.

Uses the haversine formula for great-circle distance between two points
on Earth's surface. Accurate enough for roadside dispatch radii
(error < 0.5% for distances under 100 km).
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Optional, Union

from roadside.core.exceptions import ValidationError

# Earth's mean radius in kilometres
EARTH_RADIUS_KM: float = 6371.0

Coordinate = Union[float, Decimal]


def validate_coordinates(latitude: Coordinate, longitude: Coordinate) -> None:
    """Range-check a coordinate pair.

    Raises:
        ValidationError: If either value is not finite or out of range.
    """
    lat, lng = float(latitude), float(longitude)
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise ValidationError("Coordinates must be finite numbers.")
    if not -90.0 <= lat <= 90.0:
        raise ValidationError(f"Latitude {lat} is out of range [-90, 90].")
    if not -180.0 <= lng <= 180.0:
        raise ValidationError(f"Longitude {lng} is out of range [-180, 180].")


def haversine_distance(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """Calculate the great-circle distance between two points using the
    haversine formula.

    Args:
        lat1: Latitude of point 1 in decimal degrees.
        lon1: Longitude of point 1 in decimal degrees.
        lat2: Latitude of point 2 in decimal degrees.
        lon2: Longitude of point 2 in decimal degrees.

    Returns:
        Distance in kilometres.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def distance_between(
    origin_lat: Optional[Coordinate],
    origin_lng: Optional[Coordinate],
    dest_lat: Optional[Coordinate],
    dest_lng: Optional[Coordinate],
) -> Optional[float]:
    """Distance in km, or ``None`` when either point is unknown."""
    if None in (origin_lat, origin_lng, dest_lat, dest_lng):
        return None
    return haversine_distance(
        float(origin_lat), float(origin_lng), float(dest_lat), float(dest_lng)
    )
