import math
from math import radians, sin, cos, atan2, sqrt

EARTH_RADIUS_KM = 6371.0

# Used when either point lacks coordinates, so such donations stay visible
MISSING_COORDINATES_DISTANCE_KM = 10


def _missing(value):
    if value is None or value == '':
        return True
    return isinstance(value, float) and math.isnan(value)


def distance_km(lat1, lon1, lat2, lon2):
    """
    Great-circle (haversine) distance between two points in km, rounded to
    0.1 km. If any coordinate is missing the fixed 10 km default is returned.
    """
    if any(_missing(v) for v in (lat1, lon1, lat2, lon2)):
        return MISSING_COORDINATES_DISTANCE_KM

    lat1, lon1, lat2, lon2 = float(lat1), float(lon1), float(lat2), float(lon2)
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return round(EARTH_RADIUS_KM * c, 1)
