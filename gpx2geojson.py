#!/usr/bin/env python3
"""
gpx2geojson.py — Convert a directory of GPX walks into one GeoJSON feature per day.

Standalone usage (stdout pipe into the index builder):
    python3 gpx2geojson.py gpx/ > walks.json
    python3 gpx2geojson.py gpx/ | python3 walk_index.py walks-meta.json > index.json

Importable usage:
    from gpx2geojson import build_geojson
    data = build_geojson("gpx/")

How it works:
  1. Reads every .gpx file in the directory and tags its features with the file name.
  2. Splits MultiLineStrings into LineStrings, then splits each line by calendar day
     using its per-point timestamps (or dates it by start time / file name).
  3. Sorts the day segments by time and merges segments of the same day into a
     MultiLineString.
  4. Adds a bounding box and the total distance in metres to every day.
"""

import argparse
import json
import logging
import math
import os
import sys
from typing import TypedDict

import gpxpy
import gpxpy.gpx

from config import DATE_LENGTH, GPX_SUFFIX, LOG_FORMAT, OUTPUT_INDENT, SKIP_INVALID_FILES
from errors import LengthMismatchError, ShapeError, TimeMismatchError, TrackError
from geometry import bounding_box, distance
from ranges import for_each_unique_range

logger = logging.getLogger(__name__)


class TrackProperties(TypedDict, total=False):
    """Property bag carried by track features between pipeline stages.

    ``coordTimes`` holds one timestamp per coordinate of a LineString, or one
    such list per part of a MultiLineString.
    """

    gpxFileName: str
    name: str
    desc: str
    time: str
    coordTimes: list
    date: str
    distance: int


# ── GPX loading ──────────────────────────────────────────────────────

def _iso(dt) -> str:
    text = dt.isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def _position(point) -> list[float]:
    """GeoJSON position [lon, lat] or [lon, lat, ele]."""
    if point.elevation is None:
        return [point.longitude, point.latitude]
    return [point.longitude, point.latitude, point.elevation]


def _line(points):
    """Coordinates and timestamps of a point list, or None if it is not a line."""
    if len(points) < 2:
        return None
    coords = [_position(p) for p in points]
    times = [_iso(p.time) for p in points if p.time is not None]
    return coords, times


def _base_properties(name, desc) -> TrackProperties:
    properties: TrackProperties = {}
    if name:
        properties["name"] = name
    if desc:
        properties["desc"] = desc
    return properties


def _line_feature(lines, name, desc) -> dict:
    """Build a LineString or MultiLineString feature from (coords, times) pairs."""
    properties = _base_properties(name, desc)
    coords = [c for c, _ in lines]
    times = [t for _, t in lines if t]
    if times:
        properties["coordTimes"] = times[0] if len(lines) == 1 else times
        properties["time"] = times[0][0]

    if len(coords) == 1:
        geometry = {"type": "LineString", "coordinates": coords[0]}
    else:
        geometry = {"type": "MultiLineString", "coordinates": coords}
    return {"type": "Feature", "properties": properties, "geometry": geometry}


def gpx_to_collection(path: str) -> dict:
    """Parse a GPX file into a GeoJSON FeatureCollection.

    Each track becomes a LineString, or a MultiLineString when it has several
    segments; segments with fewer than two points are dropped.  Routes become
    LineStrings and waypoints become Points.
    """
    file_name = os.path.basename(path)
    try:
        with open(path, encoding="utf-8") as f:
            gpx = gpxpy.parse(f)
    except (gpxpy.gpx.GPXException, UnicodeDecodeError) as e:
        raise ShapeError(f"cannot parse GPX: {e}", source=file_name) from e

    features = []
    for track in gpx.tracks:
        lines = [line for line in (_line(seg.points) for seg in track.segments) if line]
        if lines:
            features.append(_line_feature(lines, track.name, track.description))

    for route in gpx.routes:
        line = _line(route.points)
        if line:
            features.append(_line_feature([line], route.name, route.description))

    for wpt in gpx.waypoints:
        properties = _base_properties(wpt.name, wpt.description)
        if wpt.time is not None:
            properties["time"] = _iso(wpt.time)
        features.append({
            "type": "Feature",
            "properties": properties,
            "geometry": {"type": "Point", "coordinates": _position(wpt)},
        })

    logger.info(f"Read {len(features)} features from {file_name}")
    return {"type": "FeatureCollection", "features": features}


def tag_features(collection: dict, gpx_file_name: str) -> list[dict]:
    """Return the collection's features with the source file name added."""
    if collection.get("type") != "FeatureCollection":
        raise ShapeError(f"expected a FeatureCollection, got {collection.get('type')}",
                         source=gpx_file_name)
    tagged = []
    for feature in collection["features"]:
        _check_feature(feature, gpx_file_name)
        properties = dict(feature.get("properties") or {}, gpxFileName=gpx_file_name)
        tagged.append({"type": "Feature", "properties": properties,
                       "geometry": feature["geometry"]})
    return tagged


# ── Splitting ────────────────────────────────────────────────────────

def _context(properties) -> dict:
    return {"source": properties.get("gpxFileName"),
            "time": properties.get("time") or properties.get("date")}


def _check_feature(feature: dict, source: str | None = None) -> None:
    if feature.get("type") != "Feature":
        raise ShapeError(f"expected a Feature, got {feature.get('type')}", source=source)


def multi_split(feature: dict) -> list[dict]:
    """Split a MultiLineString feature into one LineString feature per part.

    Properties are copied to every part.  A nested ``coordTimes`` is sliced
    so each part keeps its own timestamps, and ``time`` becomes the part's
    first timestamp.  Other geometries are returned as they are.
    """
    _check_feature(feature)
    if feature["geometry"]["type"] != "MultiLineString":
        return [feature]

    parts = []
    for i, coordinates in enumerate(feature["geometry"]["coordinates"]):
        properties = dict(feature["properties"])

        times = properties.get("coordTimes")
        if times:
            if i >= len(times):
                raise LengthMismatchError(f"no coordTimes for part {i}", **_context(properties))
            if len(times[i]) != len(coordinates):
                raise LengthMismatchError(
                    f"part {i} has {len(coordinates)} coordinates but {len(times[i])} coordTimes",
                    **_context(properties))
            if properties.get("time") != times[0][0]:
                raise TimeMismatchError(f"time does not match first coordTime {times[0][0]}",
                                        **_context(properties))
            properties["coordTimes"] = times[i]
            properties["time"] = times[i][0]

        parts.append({
            "type": "Feature",
            "properties": properties,
            "geometry": {"type": "LineString", "coordinates": coordinates},
        })
    return parts


def _day(timestamp: str) -> str:
    return timestamp[:DATE_LENGTH]


def date_split(feature: dict) -> list[dict]:
    """Split a LineString feature into one feature per calendar day.

    Without a ``coordTimes`` entry for every coordinate the feature is only
    dated, by its start time or else by its file name.
    """
    _check_feature(feature)
    properties = feature["properties"]
    geometry = feature["geometry"]
    times = properties.get("coordTimes")

    if geometry["type"] != "LineString" or not times or len(times) != len(geometry["coordinates"]):
        stamp = properties.get("time") or properties.get("gpxFileName")
        if not stamp:
            raise ShapeError("no time or file name to date the track", **_context(properties))
        return [{
            "type": "Feature",
            "properties": dict(properties, date=_day(stamp)),
            "geometry": geometry,
        }]

    def day_segment(lo, hi, _times):
        # Per-run copy of the properties.
        sliced = dict(properties)
        sliced["coordTimes"] = times[lo:hi]
        sliced["time"] = times[lo]
        sliced["date"] = _day(times[lo])
        return {
            "type": "Feature",
            "properties": sliced,
            "geometry": {"type": "LineString", "coordinates": geometry["coordinates"][lo:hi]},
        }

    return for_each_unique_range(times, lambda lhs, rhs: _day(lhs) == _day(rhs), day_segment)


def time_key(feature: dict) -> str:
    """Sort key: the feature's start time, falling back to its date."""
    _check_feature(feature)
    return feature["properties"].get("time") or feature["properties"]["date"]


# ── Merging and enrichment ───────────────────────────────────────────

def merge_lines(lo: int, hi: int, features) -> dict:
    """Merge ``features[lo:hi]``, all of one date, into a MultiLineString."""
    if hi - lo <= 1:
        return features[lo]

    run = features[lo:hi]
    for walk in run:
        if walk["geometry"]["type"] != "LineString":
            raise ShapeError(f"cannot merge a {walk['geometry']['type']}",
                             **_context(walk["properties"]))

    properties: TrackProperties = {"date": run[0]["properties"]["date"]}
    if run[0]["properties"].get("coordTimes"):
        coord_times = []
        for walk in run:
            times = walk["properties"].get("coordTimes") or []
            if len(times) != len(walk["geometry"]["coordinates"]):
                raise LengthMismatchError(
                    f"{len(walk['geometry']['coordinates'])} coordinates but "
                    f"{len(times)} coordTimes",
                    **_context(walk["properties"]))
            coord_times.append(times)
        properties["coordTimes"] = coord_times
        properties["time"] = coord_times[0][0]

    return {
        "type": "Feature",
        "properties": properties,
        "geometry": {"type": "MultiLineString",
                     "coordinates": [walk["geometry"]["coordinates"] for walk in run]},
    }


def add_bbox(feature: dict) -> dict:
    """Attach bbox and distance (whole metres) to a line feature.

    The result keeps only the ``date`` and ``distance`` properties.
    Non-line features are returned unchanged.
    """
    _check_feature(feature)
    geometry = feature["geometry"]
    if not geometry["type"].endswith("LineString"):
        return feature

    properties = feature["properties"]
    try:
        bbox = bounding_box(geometry)
    except TrackError as e:
        raise type(e)(str(e), **_context(properties)) from e

    return {
        "type": "Feature",
        "bbox": bbox,
        "properties": {
            "date": properties["date"],
            # Half-up rounding, as JavaScript's Math.round.
            "distance": int(math.floor(distance(geometry) + 0.5)),
        },
        "geometry": geometry,
    }


# ── Core build logic ─────────────────────────────────────────────────

def day_segments(path: str) -> list[dict]:
    """Load one GPX file and split it into single-day LineString features."""
    features = tag_features(gpx_to_collection(path), os.path.basename(path))
    lines = [
        part for feature in features for part in multi_split(feature)
        if part["geometry"]["type"] == "LineString"
    ]
    return [day for line in lines for day in date_split(line)]


def build_geojson(gpx_dir: str, skip_invalid: bool | None = None) -> dict:
    """
    Convert all GPX files in gpx_dir into a FeatureCollection with one feature per day.

    Returns the dict; writing it out is up to the caller.
    A TrackError in any file aborts the build unless skip_invalid is set, in
    which case that file is left out.
    """
    if skip_invalid is None:
        skip_invalid = SKIP_INVALID_FILES

    walks = []
    for file_name in sorted(os.listdir(gpx_dir)):
        if not file_name.endswith(GPX_SUFFIX):
            continue
        try:
            walks.extend(day_segments(os.path.join(gpx_dir, file_name)))
        except TrackError as e:
            if not skip_invalid:
                raise
            logger.warning(f"Skipping {file_name}: {e}")

    # Stable, so same-time features keep their file order.
    walks.sort(key=time_key)
    days = for_each_unique_range(
        walks,
        lambda lhs, rhs: lhs["properties"]["date"] == rhs["properties"]["date"],
        merge_lines,
    )
    logger.info(f"Merged {len(walks)} day segments into {len(days)} days")
    return {"type": "FeatureCollection", "features": [add_bbox(day) for day in days]}


# ── Standalone entry point ───────────────────────────────────────────

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Convert GPX walks into one GeoJSON feature per day",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 gpx2geojson.py gpx/ > walks.json
        """
    )
    parser.add_argument("directory", nargs="?", help="Directory containing any number of .gpx files")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, handlers=[logging.StreamHandler()])

    if not args.directory:
        parser.print_usage(sys.stderr)
        return 1

    try:
        data = build_geojson(args.directory)
    except TrackError as e:
        logger.error(f"Conversion failed: {e}")
        return 1
    except OSError as e:
        logger.error(f"Error reading {args.directory}: {e}")
        return 1

    json.dump(data, sys.stdout, indent=OUTPUT_INDENT)
    logger.info(f"Done! Output {len(data['features'])} days")
    return 0


if __name__ == "__main__":
    sys.exit(main())
