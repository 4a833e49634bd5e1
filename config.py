# config.py — Walk map pipeline configuration
# Edit this file to change file matching, output layout, error policy, etc.

# ── Source files ─────────────────────────────────────────────────────
# Only files in the source directory ending with this suffix are read.
GPX_SUFFIX = ".gpx"

# ── Dates ────────────────────────────────────────────────────────────
# Number of leading characters of an ISO-8601 timestamp (or of a file
# name such as "2017-06-10-loop.gpx") that make up the calendar day.
DATE_LENGTH = 10

# ── Distance ─────────────────────────────────────────────────────────
# Mean Earth radius in metres, the same sphere Leaflet's CRS.Earth uses.
EARTH_RADIUS_M = 6371000.0

# ── Output ───────────────────────────────────────────────────────────
# Indentation of the JSON written to stdout (None for compact output).
OUTPUT_INDENT = 1

# ── Error policy ─────────────────────────────────────────────────────
# When False, the first malformed GPX file aborts the whole run and no
# output is written.  When True, the offending file is logged and skipped.
SKIP_INVALID_FILES = False

# ── Logging ──────────────────────────────────────────────────────────
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

# ── Walk index ───────────────────────────────────────────────────────
# HTTP settings used when the walk metadata is fetched from a URL.
METADATA_TIMEOUT = 60
METADATA_MAX_RETRIES = 3
METADATA_RETRY_DELAY = 5
