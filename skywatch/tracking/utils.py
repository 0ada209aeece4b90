"""
SkyWatch Geometry and Formatting Utilities
Distance, bearing and bounding box calculations plus display helpers.
"""

from math import radians, sin, cos, sqrt, atan2, degrees
from typing import Optional, Tuple

from ..config import Constants
from .models import Position


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great circle distance between two points on Earth.

    The intermediate haversine term is clamped into [0, 1] so that
    floating-point overshoot near antipodal points never leaves the domain
    of the square roots. NaN inputs propagate as NaN.

    Args:
        lat1: Latitude of first point in degrees
        lon1: Longitude of first point in degrees
        lat2: Latitude of second point in degrees
        lon2: Longitude of second point in degrees

    Returns:
        Distance in kilometers

    Example:
        >>> round(haversine_distance(0.0, 0.0, 0.0, 5.0), 1)
        556.0
    """
    # Convert to radians
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])

    # Haversine formula
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # a first, so NaN survives both comparisons
    a = min(max(a, 0.0), 1.0)
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return Constants.EARTH_RADIUS_KM * c


def distance_km(a: Position, b: Position) -> float:
    """Great circle distance between two positions in kilometers."""
    return haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate bearing (direction) from point 1 to point 2.

    Returns the initial bearing (forward azimuth) from the first
    point to the second point.

    Args:
        lat1, lon1: Start point (degrees)
        lat2, lon2: End point (degrees)

    Returns:
        Bearing in degrees (0-360, where 0/360=North, 90=East, 180=South, 270=West)
    """
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])

    dlon = lon2 - lon1

    x = sin(dlon) * cos(lat2)
    y = cos(lat1) * sin(lat2) - sin(lat1) * cos(lat2) * cos(dlon)

    bearing = degrees(atan2(x, y))
    return (bearing + 360) % 360


def bearing_deg(origin: Position, target: Position) -> float:
    """Initial bearing from ``origin`` towards ``target`` in degrees."""
    return calculate_bearing(
        origin.latitude, origin.longitude, target.latitude, target.longitude
    )


def get_bounding_box(
    lat: float, lon: float, delta_deg: float
) -> Tuple[float, float, float, float]:
    """
    Calculate a square bounding box of +/- ``delta_deg`` around a point.

    The box is a plain degree offset, so it covers roughly 55 km per
    half-degree at the equator and narrows in longitude towards the poles.

    Args:
        lat: Center latitude in degrees
        lon: Center longitude in degrees
        delta_deg: Half-width of the box in degrees

    Returns:
        Tuple of (lat_min, lon_min, lat_max, lon_max)

    Example:
        >>> get_bounding_box(49.0, 8.0, 0.5)
        (48.5, 7.5, 49.5, 8.5)
    """
    return (
        lat - delta_deg,  # lat_min
        lon - delta_deg,  # lon_min
        lat + delta_deg,  # lat_max
        lon + delta_deg,  # lon_max
    )


def validate_coordinates(lat: float, lon: float) -> bool:
    """
    Validate latitude and longitude coordinates.

    Example:
        >>> validate_coordinates(49.3508, 8.1364)
        True
        >>> validate_coordinates(100, 200)
        False
    """
    return -90 <= lat <= 90 and -180 <= lon <= 180


def format_altitude(altitude_m: Optional[float], include_feet: bool = True) -> str:
    """
    Format altitude with optional feet conversion.

    Example:
        >>> format_altitude(10000)
        '10000 m (32808 ft)'
    """
    if altitude_m is None:
        return "N/A"

    if include_feet:
        feet = altitude_m * Constants.METERS_TO_FEET
        return f"{altitude_m:.0f} m ({feet:.0f} ft)"

    return f"{altitude_m:.0f} m"


def format_speed(velocity_ms: Optional[float], unit: str = "kmh") -> str:
    """
    Format speed in various units.

    Args:
        velocity_ms: Velocity in meters per second
        unit: Output unit ('kmh', 'ms', 'knots')

    Example:
        >>> format_speed(100, 'kmh')
        '360.0 km/h'
    """
    if velocity_ms is None:
        return "N/A"

    if unit == "kmh":
        return f"{velocity_ms * Constants.MS_TO_KMH:.1f} km/h"
    elif unit == "knots":
        return f"{velocity_ms * Constants.MS_TO_KNOTS:.1f} knots"
    else:  # ms
        return f"{velocity_ms:.1f} m/s"


def format_distance(distance: Optional[float]) -> str:
    """Format a distance in kilometers, or N/A when unknown."""
    if distance is None:
        return "N/A"
    return f"{distance:.2f} km"
