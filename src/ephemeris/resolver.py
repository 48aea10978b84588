"""Resilience orchestrator — cache, live fetch and fallback, in that order.

``EphemerisResolver.resolve`` always answers.  Bodies come from the cache
when possible, otherwise from Horizons (sequentially, behind the shared
rate limiter, with bounded retries), otherwise from the bundled fallback
table.  If the pipeline itself blows up, the whole batch is served from
the fallback table and tagged ``FALLBACK``.

Aggregate source tag:
    LIVE       at least one record was fetched fresh, or only the Sun
               was asked for
    CACHE_HIT  nothing fresh, at least one body came from cache
    FALLBACK   no fetchable body came from cache or Horizons,
               or the pipeline failed outright

The per-body ``sources`` map carries the detail a blended batch loses.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from config import settings
from ephemeris.bodies import SUN_ID
from ephemeris.cache import EphemerisCacheLayer
from ephemeris.errors import RequestTimeout, UpstreamError, UpstreamUnavailable, ValidationFailed
from ephemeris.events import EventSink, LoggingEventSink
from ephemeris.fallback import FallbackCatalog
from ephemeris.horizons_client import HorizonsClient, sun_record
from ephemeris.records import DataSource, EphemerisRecord, utc_now_iso, validate_record


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retries for a single body's live fetch.

    ``backoff_s[n]`` is the wait after failed attempt ``n + 1``; the last
    entry repeats if there are more attempts than entries.
    """

    max_attempts: int = 3
    backoff_s: tuple[float, ...] = (1.0, 2.0)
    retry_on: tuple[type[UpstreamError], ...] = (RequestTimeout, UpstreamUnavailable)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    @classmethod
    def from_settings(cls) -> RetryPolicy:
        attempts = max(1, settings.retry_max_attempts)
        # linear backoff: 1x, 2x, 3x ... the base delay
        backoff = tuple(settings.retry_backoff_s * (n + 1) for n in range(attempts - 1))
        return cls(max_attempts=attempts, backoff_s=backoff)

    def should_retry(self, error: Exception, attempt: int) -> bool:
        return attempt < self.max_attempts and isinstance(error, self.retry_on)

    def delay_for(self, attempt: int) -> float:
        if not self.backoff_s:
            return 0.0
        return self.backoff_s[min(attempt - 1, len(self.backoff_s) - 1)]


@dataclass
class ResolveResult:
    data: list[EphemerisRecord]
    source: DataSource
    requested_date: str
    timestamp: str = field(default_factory=utc_now_iso)
    cache_hits: int | None = None
    cache_misses: int | None = None
    sources: dict[str, DataSource] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)


class EphemerisResolver:
    """Cache-aside ephemeris lookup with per-body fallback."""

    def __init__(
        self,
        client: HorizonsClient,
        cache: EphemerisCacheLayer,
        fallback: FallbackCatalog,
        retry: RetryPolicy | None = None,
        events: EventSink | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._cache = cache
        self._fallback = fallback
        self._retry = retry or RetryPolicy()
        self._events = events or LoggingEventSink()
        self._sleep = sleep

    async def resolve(
        self,
        body_ids: list[str],
        date: str,
        force_refresh: bool = False,
    ) -> ResolveResult:
        """Positions for ``body_ids`` at ``date``; never raises for data failures."""
        ids = list(dict.fromkeys(body_ids))
        try:
            return await self._resolve(ids, date, force_refresh)
        except Exception as e:
            self._events.emit(
                "resolver.pipeline_failed", date=date,
                error=type(e).__name__, detail=str(e),
            )
            return self._fallback_result(ids, date)

    # ----- Internals ----- #

    async def _resolve(self, ids: list[str], date: str, force_refresh: bool) -> ResolveResult:
        records: dict[str, EphemerisRecord] = {}
        sources: dict[str, DataSource] = {}
        failures: dict[str, str] = {}

        fetchable = [b for b in ids if b != SUN_ID]
        if SUN_ID in ids:
            records[SUN_ID] = sun_record()

        # Step 1: cache (skip when forcing)
        misses = fetchable
        hits: list[EphemerisRecord] = []
        if not force_refresh and fetchable:
            lookup = await self._cache.get_many(fetchable, date)
            hits, misses = lookup.hits, lookup.misses
        for record in hits:
            records[record.body_id] = record
            sources[record.body_id] = DataSource.CACHE_HIT

        # Step 2: every fetchable body cached
        if hits and not misses:
            return self._build(ids, date, records, sources, failures,
                               DataSource.CACHE_HIT, len(hits), 0)

        # Step 3: live fetch, sequential because of the shared rate limiter
        fresh: list[EphemerisRecord] = []
        for body_id in misses:
            try:
                record = validate_record(await self._fetch_with_retry(body_id, date))
            except ValidationFailed as e:
                # an invalid record is dropped, not replaced
                failures[body_id] = type(e).__name__
                self._events.emit("resolver.record_invalid", body_id=body_id, detail=str(e))
                continue
            except UpstreamError as e:
                failures[body_id] = type(e).__name__
                record = None

            if record is not None:
                fresh.append(record)
                records[body_id] = record
                sources[body_id] = DataSource.LIVE
                continue

            # Step 4: per-body fallback
            fallback = self._fallback.get(body_id)
            if fallback is not None:
                records[body_id] = fallback
                sources[body_id] = DataSource.FALLBACK
                self._events.emit("resolver.fallback_body", body_id=body_id, reason=failures[body_id])

        # Step 5: write through
        if fresh:
            await self._cache.set_many(date, fresh)

        # Step 6: aggregate tag
        if fresh:
            source = DataSource.LIVE
        elif hits:
            source = DataSource.CACHE_HIT
        elif not fetchable:
            source = DataSource.LIVE  # only synthesised bodies requested
        else:
            # every fetchable body was backfilled or dropped
            source = DataSource.FALLBACK

        return self._build(ids, date, records, sources, failures,
                           source, len(hits), len(misses))

    async def _fetch_with_retry(self, body_id: str, date: str) -> EphemerisRecord:
        attempt = 1
        while True:
            try:
                return await self._client.fetch_state(body_id, date)
            except UpstreamError as e:
                if not self._retry.should_retry(e, attempt):
                    self._events.emit(
                        "upstream.failed", body_id=body_id, attempts=attempt,
                        error=type(e).__name__, detail=str(e),
                    )
                    raise
                delay = self._retry.delay_for(attempt)
                self._events.emit(
                    "resolver.retry", body_id=body_id, attempt=attempt,
                    delay_s=delay, error=type(e).__name__,
                )
                await self._sleep(delay)
                attempt += 1

    def _build(
        self,
        ids: list[str],
        date: str,
        records: dict[str, EphemerisRecord],
        sources: dict[str, DataSource],
        failures: dict[str, str],
        source: DataSource,
        cache_hits: int,
        cache_misses: int,
    ) -> ResolveResult:
        if SUN_ID in records:
            sources[SUN_ID] = source
        result = ResolveResult(
            data=[records[b] for b in ids if b in records],
            source=source,
            requested_date=date,
            cache_hits=cache_hits,
            cache_misses=cache_misses,
            sources={b: sources[b] for b in ids if b in sources},
            failures=failures,
        )
        self._events.emit(
            "resolver.resolved", date=date, source=source.name, bodies=len(result.data),
            cache_hits=cache_hits, cache_misses=cache_misses, failures=len(failures),
        )
        return result

    def _fallback_result(self, ids: list[str], date: str) -> ResolveResult:
        data = self._fallback.get_many(ids)
        return ResolveResult(
            data=data,
            source=DataSource.FALLBACK,
            requested_date=date,
            sources={r.body_id: DataSource.FALLBACK for r in data},
        )
