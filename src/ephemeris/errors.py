"""Failure taxonomy for the ephemeris pipeline.

Only the resolver decides what a failure means for the caller; the
components below it raise these and nothing more.
"""

from __future__ import annotations


class EphemerisError(Exception):
    """Base class for every ephemeris pipeline failure."""


class UpstreamError(EphemerisError):
    """A single body could not be obtained from Horizons."""

    def __init__(self, body_id: str | None, message: str):
        self.body_id = body_id
        prefix = f"[{body_id}] " if body_id else ""
        super().__init__(f"{prefix}{message}")


class UpstreamUnavailable(UpstreamError):
    """Network or HTTP failure talking to Horizons."""


class UpstreamMalformed(UpstreamError):
    """Horizons answered, but the payload is missing markers or numbers."""


class RequestTimeout(UpstreamError):
    """The Horizons request exceeded its timeout."""


class CacheUnavailable(EphemerisError):
    """The cache backend could not be reached.  Never leaves the cache layer."""


class ValidationFailed(EphemerisError):
    """A record failed its sanity checks (missing fields, non-finite values)."""
