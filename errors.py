"""Exceptions raised while converting GPX recordings to GeoJSON."""


class TrackError(ValueError):
    """A track violates one of the pipeline's shape or length invariants.

    ``source`` is the GPX file name and ``time`` the feature's start
    timestamp, when known, so the offending recording can be found.
    """

    def __init__(self, message: str, source: str | None = None, time: str | None = None):
        self.source = source
        self.time = time
        context = ": ".join(part for part in (source, time) if part)
        super().__init__(f"{context}: {message}" if context else message)


class ShapeError(TrackError):
    """Input is not a FeatureCollection/Feature or has the wrong geometry."""


class LengthMismatchError(TrackError):
    """Per-point timestamps do not line up with the coordinates."""


class DimensionError(TrackError):
    """Coordinates of one geometry mix 2-D and 3-D positions."""


class TimeMismatchError(TrackError):
    """A track's start time differs from its first per-point timestamp."""
