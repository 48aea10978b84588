"""Async client for the JPL Horizons REST API.

Fetches a heliocentric ecliptic state vector (position + velocity) for
one body on one day and converts it to the scene frame in km and km/s.
Every outbound request goes through a shared ``RateLimiter`` because the
upstream quota is per client, not per request.

The client does not retry; retry policy lives in the resolver.

API docs: https://ssd-api.jpl.nasa.gov/doc/horizons.html
"""

from __future__ import annotations

import asyncio
import re
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

from config import settings
from ephemeris.bodies import AU_KM, BODY_BY_ID, SUN_ID
from ephemeris.errors import (
    RequestTimeout,
    UpstreamError,
    UpstreamMalformed,
    UpstreamUnavailable,
)
from ephemeris.events import EventSink, LoggingEventSink
from ephemeris.records import ORIGIN, EphemerisRecord, Vector3, utc_now_iso
from mechanics.transforms import ecliptic_to_scene, next_day_iso

# Horizons vector table settings
# CENTER      = 500@10  (Sun body centre)
# REF_PLANE   = ecliptic, REF_SYSTEM = ICRF
# VEC_TABLE   = 3  (state vectors + light time / range / range-rate)
# OUT_UNITS   = AU-D  (AU and AU/day)

AU_PER_DAY_TO_KM_PER_S = AU_KM / 86400.0

SOE_MARKER = "$$SOE"
EOE_MARKER = "$$EOE"

# "X = 1.234E-01", "VX=-5.6E-03"; label anchored, not column based
_NUMBER = r"([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)"
_POSITION_PATTERNS = tuple(
    re.compile(rf"(?<![A-Z]){axis}\s*=\s*{_NUMBER}") for axis in ("X", "Y", "Z")
)
_VELOCITY_PATTERNS = tuple(
    re.compile(rf"V{axis}\s*=\s*{_NUMBER}") for axis in ("X", "Y", "Z")
)


# --------------------------------------------------------------------------- #
#  Rate limiting
# --------------------------------------------------------------------------- #
class RateLimiter:
    """Enforces a minimum interval between outbound requests.

    Callers are delayed, never rejected.  The lock serialises waiters so
    the last-request timestamp has a single writer at a time.
    """

    def __init__(
        self,
        min_interval_s: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.min_interval_s = min_interval_s
        self._clock = clock
        self._sleep = sleep
        self._last_request: float | None = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            if self._last_request is not None:
                elapsed = self._clock() - self._last_request
                if elapsed < self.min_interval_s:
                    await self._sleep(self.min_interval_s - elapsed)
            self._last_request = self._clock()


# --------------------------------------------------------------------------- #
#  Parsing
# --------------------------------------------------------------------------- #
@dataclass(frozen=True, slots=True)
class ParsedVectors:
    position: Vector3  # km, scene frame
    velocity: Vector3 | None  # km/s, scene frame


def _extract(line: str, patterns: tuple[re.Pattern, ...]) -> tuple[float, float, float] | None:
    values = []
    for pattern in patterns:
        match = pattern.search(line)
        if match is None:
            return None
        try:
            values.append(float(match.group(1)))
        except ValueError:
            return None
    return values[0], values[1], values[2]


def parse_vectors(text: str, body_id: str | None = None) -> ParsedVectors:
    """Parse the first state vector of a Horizons VECTORS table.

    The data block sits between $$SOE and $$EOE markers.
    With VEC_TABLE=3 and CSV_FORMAT=NO a record looks like:
        2460318.500000000 = A.D. 2024-Jan-15 00:00:00.0000 TDB
         X = 9.876543210987654E-01 Y = 2.345678901234567E-01 Z = 1.234567890123456E-04
         VX= 1.234567890123456E-02 VY= 5.678901234567890E-02 VZ= 9.012345678901234E-04
         LT= ...

    Raises UpstreamMalformed when a marker or a position component is
    missing.  A bad velocity line only drops the velocity.
    """
    soe = text.find(SOE_MARKER)
    eoe = text.find(EOE_MARKER)
    if soe == -1 or eoe == -1 or eoe < soe:
        raise UpstreamMalformed(body_id, "Could not locate $$SOE / $$EOE markers in Horizons response")

    block = text[soe + len(SOE_MARKER):eoe]
    lines = [line.strip() for line in block.splitlines() if line.strip()]
    if not lines:
        raise UpstreamMalformed(body_id, "No data lines between $$SOE and $$EOE")

    position_line = next(
        (ln for ln in lines if "X =" in ln and "Y =" in ln and "Z =" in ln), None
    )
    if position_line is None:
        raise UpstreamMalformed(body_id, "Could not find position vector line")

    pos_au = _extract(position_line, _POSITION_PATTERNS)
    if pos_au is None:
        raise UpstreamMalformed(body_id, f"Could not parse X/Y/Z values from: {position_line[:80]}")

    x, y, z = ecliptic_to_scene(*pos_au)
    position = Vector3(x * AU_KM, y * AU_KM, z * AU_KM)

    velocity = None
    velocity_line = next(
        (ln for ln in lines if "VX" in ln and "VY" in ln and "VZ" in ln), None
    )
    if velocity_line is not None:
        vel_au_d = _extract(velocity_line, _VELOCITY_PATTERNS)
        if vel_au_d is not None:
            vx, vy, vz = ecliptic_to_scene(*vel_au_d)
            velocity = Vector3(
                vx * AU_PER_DAY_TO_KM_PER_S,
                vy * AU_PER_DAY_TO_KM_PER_S,
                vz * AU_PER_DAY_TO_KM_PER_S,
            )

    return ParsedVectors(position=position, velocity=velocity)


# --------------------------------------------------------------------------- #
#  Client
# --------------------------------------------------------------------------- #
def build_params(body_id: str, date: str) -> dict[str, str]:
    """Query parameters for a one-day, one-step vector table."""
    return {
        "format": "json",
        "COMMAND": f"'{body_id}'",
        "OBJ_DATA": "NO",
        "MAKE_EPHEM": "YES",
        "EPHEM_TYPE": "VECTORS",
        "CENTER": "'500@10'",  # Sun-centred
        "START_TIME": f"'{date}'",
        "STOP_TIME": f"'{next_day_iso(date)}'",
        "STEP_SIZE": "'1 d'",
        "VEC_TABLE": "'3'",
        "REF_PLANE": "ECLIPTIC",
        "REF_SYSTEM": "ICRF",
        "VEC_CORR": "'NONE'",
        "OUT_UNITS": "'AU-D'",
        "CSV_FORMAT": "NO",
    }


def sun_record() -> EphemerisRecord:
    """The Sun is the origin of the heliocentric frame; never fetched."""
    return EphemerisRecord(
        body_id=SUN_ID, name="Sun", position=ORIGIN,
        velocity=ORIGIN, timestamp=utc_now_iso(),
    )


class HorizonsClient:
    """Rate-limited Horizons client producing ``EphemerisRecord``s."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        rate_limiter: RateLimiter,
        events: EventSink | None = None,
        base_url: str | None = None,
    ) -> None:
        self._http = http
        self._rate_limiter = rate_limiter
        self._events = events or LoggingEventSink()
        self._base_url = base_url or settings.horizons_url

    async def fetch_state(self, body_id: str, date: str) -> EphemerisRecord:
        """Fetch one body's state vector at ``date`` (``YYYY-MM-DD``).

        Raises RequestTimeout, UpstreamUnavailable or UpstreamMalformed.
        """
        await self._rate_limiter.acquire()
        self._events.emit("upstream.request", body_id=body_id, date=date)

        try:
            resp = await self._http.get(self._base_url, params=build_params(body_id, date))
        except httpx.TimeoutException as e:
            raise RequestTimeout(body_id, f"Horizons request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(body_id, f"Horizons request failed: {e}") from e

        if resp.status_code != 200:
            raise UpstreamUnavailable(body_id, f"Horizons HTTP error: {resp.status_code}")

        try:
            payload = resp.json()
        except ValueError as e:
            raise UpstreamMalformed(body_id, "Horizons response is not JSON") from e

        if not isinstance(payload, dict):
            raise UpstreamMalformed(body_id, "Horizons response is not a JSON object")
        if payload.get("error"):
            raise UpstreamMalformed(body_id, f"Horizons error: {payload['error']}")
        result = payload.get("result")
        if not result:
            raise UpstreamMalformed(body_id, "No result in Horizons response")

        parsed = parse_vectors(result, body_id)
        body = BODY_BY_ID.get(body_id)
        self._events.emit(
            "upstream.parsed", body_id=body_id,
            has_velocity=parsed.velocity is not None,
        )
        return EphemerisRecord(
            body_id=body_id,
            name=body.name if body else f"Body {body_id}",
            position=parsed.position,
            velocity=parsed.velocity,
            timestamp=utc_now_iso(),
        )

    async def fetch_one(self, body_id: str, date: str) -> EphemerisRecord | None:
        """Like ``fetch_state`` but a failure yields None instead of raising."""
        if body_id == SUN_ID:
            return sun_record()
        try:
            return await self.fetch_state(body_id, date)
        except UpstreamError as e:
            self._events.emit("upstream.failed", body_id=body_id, error=type(e).__name__, detail=str(e))
            return None

    async def fetch_many(self, body_ids: list[str], date: str) -> list[EphemerisRecord]:
        """Fetch several bodies one after another (rate limit), skipping failures."""
        results: list[EphemerisRecord] = []
        for body_id in body_ids:
            record = await self.fetch_one(body_id, date)
            if record is not None:
                results.append(record)
        return results
