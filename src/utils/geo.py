"""Geospatial utilities used for distance calculations."""

from __future__ import annotations

from math import atan2, cos, degrees, isfinite, radians, sin, sqrt

from src.utils.errors import InvalidCoordinateError

EARTH_RADIUS_KM = 6371.0


def validate_coordinate(lat: float, lng: float) -> None:
    """Raise InvalidCoordinateError unless (lat, lng) is a finite position."""

    for value in (lat, lng):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidCoordinateError(
                f"Coordinates must be numbers, got ({lat!r}, {lng!r})"
            )

    if not isfinite(lat) or not isfinite(lng):
        raise InvalidCoordinateError(
            f"Coordinates must be finite, got ({lat}, {lng})"
        )
    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinateError(f"Latitude out of range: {lat}")
    if not -180.0 <= lng <= 180.0:
        raise InvalidCoordinateError(f"Longitude out of range: {lng}")


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Calculate distance between two lat/lng points in kilometers.

    Args:
        lat1: Latitude of the first point.
        lng1: Longitude of the first point.
        lat2: Latitude of the second point.
        lng2: Longitude of the second point.

    Returns:
        Distance in kilometers.

    Raises:
        InvalidCoordinateError: If any input is non-finite or out of range.

    Notes:
        The Haversine formula accounts for spherical distance and is accurate
        enough for discovery radii (approx. +/- 0.5%).
    """

    validate_coordinate(lat1, lng1)
    validate_coordinate(lat2, lng2)

    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)

    delta_lat = lat2_rad - lat1_rad
    delta_lng = radians(lng2 - lng1)

    a = sin(delta_lat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(
        delta_lng / 2
    ) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Calculate distance between two lat/lng points in meters."""

    return haversine_km(lat1, lng1, lat2, lng2) * 1000.0


def bearing_degrees(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Initial compass bearing from point 1 to point 2, in [0, 360)."""

    validate_coordinate(lat1, lng1)
    validate_coordinate(lat2, lng2)

    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)
    delta_lng = radians(lng2 - lng1)

    y = sin(delta_lng) * cos(lat2_rad)
    x = cos(lat1_rad) * sin(lat2_rad) - sin(lat1_rad) * cos(lat2_rad) * cos(
        delta_lng
    )

    bearing = (degrees(atan2(y, x)) + 360.0) % 360.0
    # Float rounding can land exactly on 360.0 for tiny negative angles.
    return 0.0 if bearing >= 360.0 else bearing


def is_within_radius(
    center: tuple[float, float],
    point: tuple[float, float],
    radius_km: float,
) -> bool:
    """Return True when ``point`` lies within ``radius_km`` of ``center``."""

    return haversine_km(center[0], center[1], point[0], point[1]) <= radius_km
