import math
from typing import List, Sequence, Tuple

from ridesim.errors import InvalidCoordinateError

Coordinate = Tuple[float, float]  # (lng, lat)

EARTH_RADIUS_M = 6371000.0


# -------------------------
# small utils
# -------------------------
def haversine_m(a: Coordinate, b: Coordinate) -> float:
    lon1, lat1 = map(math.radians, a)
    lon2, lat2 = map(math.radians, b)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    x = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(x))


def bearing(start: Coordinate, end: Coordinate) -> float:
    """
    Initial great-circle bearing from start to end in degrees, in [0, 360).
    bearing(a, a) is 0.0.
    """
    lng1, lat1 = start
    lng2, lat2 = end
    d_lng = math.radians(lng2 - lng1)
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)

    y = math.sin(d_lng) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(d_lng)
    theta = math.degrees(math.atan2(y, x))
    return (theta + 360.0) % 360.0


def lerp(a: Coordinate, b: Coordinate, t: float) -> Coordinate:
    return (a[0] + (b[0] - a[0]) * t, a[1] + (b[1] - a[1]) * t)


def offset(point: Coordinate, d_lng: float, d_lat: float) -> Coordinate:
    lng, lat = point
    return lng + d_lng, lat + d_lat


def format_coordinate(point: Coordinate) -> str:
    lng, lat = point
    return f"{lat:.6f}, {lng:.6f}"


def validate_coordinate(point: Coordinate) -> Coordinate:
    try:
        lng, lat = float(point[0]), float(point[1])
    except (TypeError, ValueError, IndexError) as e:
        raise InvalidCoordinateError(f"Not a coordinate: {point!r}") from e
    if not (math.isfinite(lng) and math.isfinite(lat)):
        raise InvalidCoordinateError(f"Non-finite coordinate: {point!r}")
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lng <= 180.0:
        raise InvalidCoordinateError(f"Coordinate out of range: {point!r}")
    return lng, lat


def validate_path(path: Sequence[Coordinate]) -> List[Coordinate]:
    if len(path) < 2:
        raise InvalidCoordinateError(f"Path needs at least 2 points, got {len(path)}")
    return [validate_coordinate(p) for p in path]
