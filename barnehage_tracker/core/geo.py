"""Great-circle distance helpers for radius queries."""

from math import asin, cos, radians, sin, sqrt

EARTH_RADIUS_KM = 6378.1


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Calculate the great-circle distance between two points.

    Args:
        lat1: Latitude of the first point in degrees
        lng1: Longitude of the first point in degrees
        lat2: Latitude of the second point in degrees
        lng2: Longitude of the second point in degrees

    Returns:
        Distance in kilometres
    """
    dlat = radians(lat2 - lat1)
    dlng = radians(lng2 - lng1)
    a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * asin(sqrt(min(1.0, a)))


def within_radius(
    lat: float | None,
    lng: float | None,
    center_lat: float,
    center_lng: float,
    max_distance_km: float,
) -> bool:
    """Check if a point lies inside a circle; points without coordinates never do."""
    if lat is None or lng is None:
        return False
    return haversine_km(lat, lng, center_lat, center_lng) <= max_distance_km
