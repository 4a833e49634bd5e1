"""Bounding boxes and great-circle lengths of GeoJSON line geometries."""

import math

from shapely.geometry import MultiPoint

from config import EARTH_RADIUS_M
from errors import DimensionError, ShapeError


def haversine_m(lat1, lon1, lat2, lon2):
    """Return the great-circle distance in metres between two points."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlon / 2) ** 2)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def line_parts(geometry: dict) -> list[list[list[float]]]:
    """Return the coordinate sequences of a LineString or MultiLineString."""
    if geometry["type"] == "LineString":
        return [geometry["coordinates"]]
    if geometry["type"] == "MultiLineString":
        return geometry["coordinates"]
    raise ShapeError(f"expected a line geometry, got {geometry['type']}")


def part_distance(coords) -> float:
    """Length in metres of one coordinate sequence; 0 for fewer than two points."""
    return sum(
        haversine_m(coords[i][1], coords[i][0], coords[i + 1][1], coords[i + 1][0])
        for i in range(len(coords) - 1)
    )


def distance(geometry: dict) -> float:
    """Total length in metres, summed over every part of the geometry."""
    return sum(part_distance(part) for part in line_parts(geometry))


def bounding_box(geometry: dict) -> list[float]:
    """GeoJSON bbox of a line geometry.

    Returns ``[min_lon, min_lat, max_lon, max_lat]``, or
    ``[min_lon, min_lat, min_alt, max_lon, max_lat, max_alt]`` when the
    coordinates carry altitude.  Raises DimensionError when 2-D and 3-D
    positions are mixed.
    """
    points = [tuple(p) for part in line_parts(geometry) for p in part]
    if not points:
        raise ShapeError("cannot compute the bounding box of an empty geometry")

    dims = {len(p) for p in points}
    if len(dims) != 1 or not dims <= {2, 3}:
        raise DimensionError(f"inconsistent coordinate dimensions {sorted(dims)}")

    min_lon, min_lat, max_lon, max_lat = MultiPoint(points).bounds
    if dims == {2}:
        return [min_lon, min_lat, max_lon, max_lat]

    alts = [p[2] for p in points]
    return [min_lon, min_lat, min(alts), max_lon, max_lat, max(alts)]
