#!/usr/bin/env python3
"""Regenerate the bundled fallback dataset from JPL Horizons.

Fetches every catalog body for one date and writes the fallback JSON the
service serves when Horizons and the cache are both down.  Bodies that
fail keep their previous entry.

Usage:
    python scripts/fetch_ephemeris.py
    python scripts/fetch_ephemeris.py --date 2026-01-01 --version 2026.1
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from datetime import date as date_cls

# Add src to path
sys.path.insert(0, "src")

import httpx

from config import settings
from ephemeris.bodies import ALL_BODY_IDS
from ephemeris.fallback import FALLBACK_PATH, FallbackCatalog
from ephemeris.horizons_client import HorizonsClient, RateLimiter


async def main(date: str, version: str) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    logger = logging.getLogger("fetch_ephemeris")

    previous = FallbackCatalog.load()
    logger.info("Fetching %d bodies for %s (current dataset v%s)",
                len(ALL_BODY_IDS), date, previous.version)

    t0 = time.time()
    async with httpx.AsyncClient(timeout=settings.horizons_timeout_s) as http:
        client = HorizonsClient(http, RateLimiter(settings.horizons_min_interval_s))
        fetched = {r.body_id: r for r in await client.fetch_many(ALL_BODY_IDS, date)}
    elapsed = time.time() - t0

    stale = [b for b in ALL_BODY_IDS if b not in fetched]
    if stale:
        logger.warning("Keeping previous entries for: %s", ", ".join(stale))

    data = []
    for body_id in ALL_BODY_IDS:
        record = fetched.get(body_id) or previous.get(body_id)
        entry = record.to_dict()
        entry.pop("timestamp", None)
        entry.pop("velocity", None)
        data.append(entry)

    with open(FALLBACK_PATH, "w", encoding="utf-8") as f:
        json.dump({
            "version": version,
            "epoch": date,
            "description": "Heliocentric positions (km, y-up scene frame) from JPL Horizons. "
                           "Served only when Horizons and the cache are both unavailable.",
            "data": data,
        }, f, indent=2)
        f.write("\n")

    logger.info("Done. %d/%d bodies fetched in %.1f seconds.",
                len(fetched), len(ALL_BODY_IDS), elapsed)
    logger.info("Fallback dataset written to: %s", FALLBACK_PATH.resolve())


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Regenerate the fallback ephemeris dataset")
    parser.add_argument("--date", default=date_cls.today().isoformat(), help="Epoch date (ISO)")
    parser.add_argument("--version", default=None, help="Dataset version label")
    args = parser.parse_args()

    asyncio.run(main(args.date, args.version or args.date.replace("-", ".")))
