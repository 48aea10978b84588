"""Redis-backed ephemeris cache with per-body TTLs.

Entries are keyed by body and date, ``ephemeris:<body_id>:<YYYY-MM-DD>``,
and hold the JSON form of an ``EphemerisRecord``.  TTL depends on how
fast the body moves: the outer planets can be a day stale, Earth cannot.

The cache is optional.  Constructed without a Redis handle it is
disabled: every read is a full miss and every write a no-op.  Backend
errors are absorbed here and reported as events; nothing in this module
raises into the pipeline.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config import settings
from ephemeris.bodies import SPEED_TIER_BY_ID, SpeedTier
from ephemeris.errors import CacheUnavailable, ValidationFailed
from ephemeris.events import EventSink, LoggingEventSink
from ephemeris.records import EphemerisRecord, validate_record

CACHE_PREFIX = "ephemeris"


def cache_key(body_id: str, date: str) -> str:
    return f"{CACHE_PREFIX}:{body_id}:{date}"


def create_redis_client(url: str | None = None) -> aioredis.Redis | None:
    """Build the Redis handle from settings, or None when caching is off.

    ``from_url`` does not connect, so an unreachable server surfaces later
    as per-call errors, which the cache layer absorbs.
    """
    url = settings.redis_url if url is None else url
    if not url:
        return None
    try:
        return aioredis.from_url(url, decode_responses=True)
    except ValueError:
        return None


@dataclass(frozen=True)
class TtlPolicy:
    """Cache lifetime per speed tier, in seconds."""

    fast_s: int = 3_600
    default_s: int = 21_600
    slow_s: int = 86_400

    @classmethod
    def from_settings(cls) -> TtlPolicy:
        return cls(
            fast_s=settings.ttl_fast_s,
            default_s=settings.ttl_default_s,
            slow_s=settings.ttl_slow_s,
        )

    def ttl_for(self, body_id: str) -> int:
        tier = SPEED_TIER_BY_ID.get(body_id, SpeedTier.DEFAULT)
        if tier is SpeedTier.FAST:
            return self.fast_s
        if tier is SpeedTier.SLOW:
            return self.slow_s
        return self.default_s


@dataclass
class CacheLookup:
    hits: list[EphemerisRecord] = field(default_factory=list)
    misses: list[str] = field(default_factory=list)


class EphemerisCacheLayer:
    """Bulk get/set of ephemeris records over an optional Redis handle."""

    def __init__(
        self,
        client: aioredis.Redis | None,
        ttl_policy: TtlPolicy | None = None,
        events: EventSink | None = None,
    ) -> None:
        self._client = client
        self._ttl = ttl_policy or TtlPolicy()
        self._events = events or LoggingEventSink()
        if client is None:
            self._events.emit("cache.disabled", reason="no redis client configured")

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def ttl_for(self, body_id: str) -> int:
        return self._ttl.ttl_for(body_id)

    # ----- Single key ----- #

    async def _get(self, body_id: str, date: str) -> EphemerisRecord | None:
        try:
            raw = await self._client.get(cache_key(body_id, date))
        except (RedisError, OSError) as e:
            raise CacheUnavailable(str(e)) from e
        if raw is None:
            return None
        try:
            record = validate_record(EphemerisRecord.from_dict(json.loads(raw)))
            if record.body_id != body_id:
                raise ValidationFailed(f"Entry holds body {record.body_id}")
            return record
        except (ValueError, ValidationFailed) as e:
            self._events.emit("cache.corrupt_entry", body_id=body_id, date=date, error=str(e))
            return None

    async def _set(self, date: str, record: EphemerisRecord) -> None:
        ttl = self.ttl_for(record.body_id)
        try:
            await self._client.set(
                cache_key(record.body_id, date),
                json.dumps(record.to_dict(), separators=(",", ":")),
                ex=ttl,
            )
        except (RedisError, OSError) as e:
            raise CacheUnavailable(str(e)) from e

    # ----- Public API ----- #

    async def get_many(self, body_ids: list[str], date: str) -> CacheLookup:
        """Look up every body concurrently; any failed key counts as a miss."""
        if self._client is None:
            return CacheLookup(misses=list(body_ids))

        results = await asyncio.gather(
            *(self._get(body_id, date) for body_id in body_ids),
            return_exceptions=True,
        )

        lookup = CacheLookup()
        for body_id, result in zip(body_ids, results):
            if isinstance(result, EphemerisRecord):
                lookup.hits.append(result)
                continue
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                self._events.emit("cache.read_failed", body_id=body_id, error=str(result))
            lookup.misses.append(body_id)

        self._events.emit(
            "cache.lookup", date=date, hits=len(lookup.hits), misses=len(lookup.misses),
        )
        return lookup

    async def set_many(self, date: str, records: list[EphemerisRecord]) -> None:
        """Write records under ``date`` with tier TTLs; failures are dropped."""
        if self._client is None or not records:
            return

        results = await asyncio.gather(
            *(self._set(date, record) for record in records),
            return_exceptions=True,
        )
        written = 0
        for record, result in zip(records, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                self._events.emit("cache.write_failed", body_id=record.body_id, error=str(result))
            else:
                written += 1
        self._events.emit("cache.stored", date=date, count=written)

    async def is_available(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError):
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
