"""Shared fixtures and fakes for the Orrery test suite.

Run: python -m pytest
"""

from __future__ import annotations

import math
from typing import Any

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from ephemeris.bodies import BODY_BY_ID
from ephemeris.events import EventSink
from ephemeris.fallback import FallbackCatalog
from ephemeris.records import EphemerisRecord, Vector3

DATE = "2024-01-15"


# --------------------------------------------------------------------------- #
#  Fakes
# --------------------------------------------------------------------------- #

class RecordingEventSink(EventSink):
    """Keeps every emitted event so tests can assert on diagnostics."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event: str, **fields: Any) -> None:
        self.events.append((event, fields))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def of(self, name: str) -> list[dict[str, Any]]:
        return [fields for n, fields in self.events if n == name]


class FakeRedis:
    """In-memory stand-in for ``redis.asyncio.Redis`` with expiry and faults."""

    def __init__(self) -> None:
        self.store: dict[str, tuple[str, float | None]] = {}
        self.ttls: dict[str, int | None] = {}
        self.now = 0.0
        self.fail_keys: set[str] = set()
        self.down = False

    def _check(self, key: str | None = None) -> None:
        if self.down or (key is not None and key in self.fail_keys):
            raise RedisConnectionError("Connection refused")

    async def get(self, key: str) -> str | None:
        self._check(key)
        item = self.store.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and self.now >= expires_at:
            del self.store[key]
            return None
        return value

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._check(key)
        self.store[key] = (value, self.now + ex if ex else None)
        self.ttls[key] = ex
        return True

    async def ping(self) -> bool:
        self._check()
        return True

    async def aclose(self) -> None:
        return None


class FakeSource:
    """Scripted replacement for ``HorizonsClient.fetch_state``.

    ``errors`` maps body id to exceptions raised on successive calls
    before a call succeeds.  ``fail_all`` makes every call fail.
    """

    def __init__(
        self,
        errors: dict[str, list[Exception]] | None = None,
        fail_all: Exception | None = None,
        overrides: dict[str, EphemerisRecord] | None = None,
    ) -> None:
        self.calls: list[str] = []
        self.errors = {k: list(v) for k, v in (errors or {}).items()}
        self.fail_all = fail_all
        self.overrides = overrides or {}

    async def fetch_state(self, body_id: str, date: str) -> EphemerisRecord:
        self.calls.append(body_id)
        queue = self.errors.get(body_id)
        if queue:
            raise queue.pop(0)
        if self.fail_all is not None:
            raise self.fail_all
        if body_id in self.overrides:
            return self.overrides[body_id]
        return make_record(body_id)


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# --------------------------------------------------------------------------- #
#  Builders
# --------------------------------------------------------------------------- #

def make_record(body_id: str, x: float = 1.0e8, z: float = 2.0e8) -> EphemerisRecord:
    return EphemerisRecord(
        body_id=body_id,
        name=BODY_BY_ID[body_id].name if body_id in BODY_BY_ID else f"Body {body_id}",
        position=Vector3(x, 0.0, z),
        velocity=Vector3(10.0, 0.5, -20.0),
        timestamp="2024-01-15T00:00:00Z",
    )


def nan_record(body_id: str) -> EphemerisRecord:
    return EphemerisRecord(
        body_id=body_id,
        name=BODY_BY_ID[body_id].name,
        position=Vector3(math.nan, 0.0, 0.0),
        timestamp="2024-01-15T00:00:00Z",
    )


def horizons_text(
    pos: tuple[float, float, float] = (1.0, 0.0, 0.0),
    vel: tuple[float, float, float] | None = (0.0, 1.0e-2, 2.0e-3),
) -> str:
    """A VEC_TABLE=3 Horizons result block around one state vector."""
    lines = [
        "*******************************************************************************",
        "Ephemeris / API_USER Mon Jan 15 00:00:00 2024 Pasadena, USA      / Horizons",
        "*******************************************************************************",
        "$$SOE",
        "2460324.500000000 = A.D. 2024-Jan-15 00:00:00.0000 TDB ",
        " X = {:.15E} Y = {:.15E} Z = {:.15E}".format(*pos),
    ]
    if vel is not None:
        lines.append(" VX= {:.15E} VY= {:.15E} VZ= {:.15E}".format(*vel))
    lines += [
        " LT= 5.775518331436995E-03 RG= 1.000000000000000E+00 RR= 1.234567890123456E-05",
        "$$EOE",
        "*******************************************************************************",
    ]
    return "\n".join(lines)


# --------------------------------------------------------------------------- #
#  Fixtures
# --------------------------------------------------------------------------- #

@pytest.fixture(scope="session")
def fallback() -> FallbackCatalog:
    return FallbackCatalog.load()


@pytest.fixture
def events() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


