#!/usr/bin/env python3
"""
walk_index.py — Build the walk index read by the map front end.

Usage:
    python3 gpx2geojson.py gpx/ | python3 walk_index.py walks-meta.json > index.json
    python3 walk_index.py https://example.org/walks.json walks.json > index.json

The metadata is a JSON list of walks, each with at least a ``dates`` list
of YYYY-MM-DD days and usually ``title``, ``link``, ``walkers``,
``categories`` and ``people``.  Every walk in the index additionally gets
the ``distances`` (metres, one per date) and ``bboxes`` of its tracks,
taken from the per-day GeoJSON written by gpx2geojson.py.
"""

import argparse
import json
import logging
import sys
import time

import requests

from config import (
    LOG_FORMAT, METADATA_MAX_RETRIES, METADATA_RETRY_DELAY, METADATA_TIMEOUT, OUTPUT_INDENT,
)
from errors import ShapeError
from ranges import search

logger = logging.getLogger(__name__)


class MetadataLoader:
    """Loads walk metadata from a local JSON file or an HTTP URL."""

    def __init__(self, timeout=METADATA_TIMEOUT):
        self.timeout = timeout
        self.max_retries = METADATA_MAX_RETRIES
        self.retry_delay = METADATA_RETRY_DELAY

    def load(self, source):
        """Return the validated walk records found at source."""
        if source.startswith(("http://", "https://")):
            walks = self.fetch(source)
        else:
            logger.info(f"Loading walk metadata from {source}")
            with open(source, encoding="utf-8") as f:
                walks = json.load(f)
        return validate_walks(walks)

    def fetch(self, url):
        """Download the metadata with retry logic."""
        logger.info(f"Downloading walk metadata from {url}")

        for attempt in range(self.max_retries):
            try:
                logger.info(f"Attempt {attempt + 1}/{self.max_retries}")
                response = requests.get(url, timeout=self.timeout)

                if response.status_code == 200:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise ValueError(f"Walk metadata at {url} is not valid JSON: {e}") from e
                elif response.status_code == 429 or response.status_code >= 500:
                    logger.warning(f"Metadata server returned {response.status_code}, retrying...")
                    time.sleep(self.retry_delay * (attempt + 1))
                else:
                    raise RuntimeError(f"Error downloading walk metadata: {response.status_code}")

            except requests.exceptions.Timeout:
                logger.warning(f"Request timeout on attempt {attempt + 1}, retrying...")
                time.sleep(self.retry_delay)
            except requests.exceptions.RequestException as e:
                logger.error(f"Network error: {e}")
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_delay)

        raise RuntimeError("Failed to download walk metadata after all retries")


def validate_walks(walks):
    """Check the metadata shape and return copies with sorted dates."""
    if not isinstance(walks, list):
        raise ValueError("Walk metadata must be a JSON list")

    validated = []
    for i, walk in enumerate(walks):
        if not isinstance(walk, dict):
            raise ValueError(f"Walk {i} is not an object")
        dates = walk.get("dates")
        if not dates or not all(isinstance(d, str) for d in dates):
            raise ValueError(f"Walk {i} ({walk.get('title', 'untitled')}) has no dates")
        validated.append(dict(walk, dates=sorted(dates)))
    return validated


def build_walk_index(geojson: dict, walks: list[dict]) -> list[dict]:
    """Attach per-day distances and bounding boxes to every walk.

    The index is ordered by each walk's first date so it can be searched
    with find_walk.  Dates without a track get a distance of 0 and no bbox.
    """
    if geojson.get("type") != "FeatureCollection":
        raise ShapeError(f"expected a FeatureCollection, got {geojson.get('type')}")

    days = {}
    for feature in geojson["features"]:
        date = feature.get("properties", {}).get("date")
        if date:
            days[date] = feature

    index = []
    covered = set()
    for walk in sorted(walks, key=lambda w: w["dates"][0]):
        entry = dict(walk)
        entry.setdefault("categories", [])
        entry.setdefault("people", [])
        entry.setdefault("walkers", len(entry["people"]))
        entry["distances"] = [
            days[d]["properties"].get("distance", 0) if d in days else 0
            for d in walk["dates"]
        ]
        entry["bboxes"] = [days[d]["bbox"] for d in walk["dates"] if "bbox" in days.get(d, {})]
        covered.update(walk["dates"])
        index.append(entry)

    for date in sorted(set(days) - covered):
        logger.warning(f"No walk metadata for the track on {date}")

    logger.info(f"Indexed {len(index)} walks covering {len(covered & set(days))} tracked days")
    return index


def find_walk(index: list[dict], date: str):
    """Return ``(walk, i)`` with ``walk["dates"][i] == date``, or None."""
    idx = search(index, lambda walk: date < walk["dates"][0]) - 1
    if idx < 0:
        return None

    walk = index[idx]
    i = search(walk["dates"], lambda d: date <= d)
    if i == len(walk["dates"]) or walk["dates"][i] != date:
        return None
    return walk, i


def years(index: list[dict]) -> list[str]:
    """All years with at least one walk, ascending."""
    return sorted({date[:4] for walk in index for date in walk["dates"]})


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Build the walk index from walk metadata and per-day GeoJSON",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 gpx2geojson.py gpx/ | python3 walk_index.py walks-meta.json > index.json
  python3 walk_index.py walks-meta.json walks.json > index.json
        """
    )
    parser.add_argument("metadata", nargs="?", help="Walk metadata JSON file or URL")
    parser.add_argument("geojson", nargs="?", help="Per-day GeoJSON (default: stdin)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, handlers=[logging.StreamHandler()])

    if not args.metadata:
        parser.print_usage(sys.stderr)
        return 1

    try:
        walks = MetadataLoader().load(args.metadata)
        if args.geojson:
            with open(args.geojson, encoding="utf-8") as f:
                geojson = json.load(f)
        else:
            geojson = json.load(sys.stdin)
        index = build_walk_index(geojson, walks)
    except (OSError, ValueError, RuntimeError) as e:
        logger.error(f"Building the walk index failed: {e}")
        return 1

    json.dump(index, sys.stdout, indent=OUTPUT_INDENT)
    return 0


if __name__ == "__main__":
    sys.exit(main())
