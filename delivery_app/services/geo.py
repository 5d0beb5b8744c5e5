"""
Geo Distance

Great-circle distance between a driver and a restaurant.

The same haversine formula is evaluated two ways: in Python to annotate
results, and as a SQL expression so the proximity filter runs in the
database. Distances are meters on the sphere PostGIS uses for
``ST_DistanceSphere``.
"""

import math
from types import SimpleNamespace

from sqlalchemy import func
from sqlalchemy.sql.elements import ColumnElement

from delivery_app.models import Restaurant

EARTH_RADIUS_METERS = 6370986.0

_PY_MATH = SimpleNamespace(
    sin=math.sin,
    cos=math.cos,
    sqrt=math.sqrt,
    radians=math.radians,
    asin=math.asin,
    least=min,
)


def _haversine(m, lat1, lng1, lat2, lng2):
    d_lat = m.radians(lat2 - lat1)
    d_lng = m.radians(lng2 - lng1)
    sin_lat = m.sin(d_lat / 2)
    sin_lng = m.sin(d_lng / 2)
    a = sin_lat * sin_lat + m.cos(m.radians(lat1)) * m.cos(m.radians(lat2)) * sin_lng * sin_lng
    # Rounding can push sqrt(a) just past 1 for near-antipodal points
    return 2 * EARTH_RADIUS_METERS * m.asin(m.least(1.0, m.sqrt(a)))


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Distance in meters between two (lat, lng) points.

    Example:
        >>> round(haversine_meters(0, 0, 0, 0))
        0
    """
    return _haversine(_PY_MATH, lat1, lng1, lat2, lng2)


def restaurant_distance_expression(lat: float, lng: float) -> ColumnElement:
    """SQL expression for the distance from (lat, lng) to each restaurant."""
    return _haversine(func, lat, lng, Restaurant.latitude, Restaurant.longitude)


def within_radius(distance, radius_meters: float):
    """
    Exclusive radius check; exactly ``radius_meters`` away does not match.

    Works on floats and on the SQL distance expression alike.
    """
    return distance < radius_meters


def distance_to_restaurant(lat: float, lng: float, restaurant: Restaurant):
    """Distance from (lat, lng) to a restaurant, None if it has no position."""
    if restaurant is None or not restaurant.has_position:
        return None
    return haversine_meters(lat, lng, restaurant.latitude, restaurant.longitude)
