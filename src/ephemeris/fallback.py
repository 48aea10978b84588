"""Static fallback positions for degraded mode.

Loaded once from the bundled JSON and read-only afterwards.  The table
must cover every body in the catalog so the resolver can always answer.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path

from ephemeris.bodies import ALL_BODY_IDS, BODY_BY_ID
from ephemeris.records import EphemerisRecord, utc_now_iso, validate_record

logger = logging.getLogger("orrery.fallback")

FALLBACK_PATH = Path(__file__).parent / "data" / "fallback_planets.json"


class FallbackCatalog:
    """Approximate records for every catalog body, keyed by body id."""

    def __init__(self, records: dict[str, EphemerisRecord], version: str = "", epoch: str = "") -> None:
        missing = [body_id for body_id in ALL_BODY_IDS if body_id not in records]
        if missing:
            raise ValueError(f"Fallback dataset does not cover bodies: {', '.join(missing)}")
        unknown = [body_id for body_id in records if body_id not in BODY_BY_ID]
        if unknown:
            raise ValueError(f"Fallback dataset has unknown bodies: {', '.join(unknown)}")
        self._records = records
        self.version = version
        self.epoch = epoch

    @classmethod
    def load(cls, path: Path = FALLBACK_PATH) -> FallbackCatalog:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        records = {}
        for item in raw["data"]:
            record = validate_record(EphemerisRecord.from_dict(item))
            records[record.body_id] = record
        catalog = cls(records, version=str(raw.get("version", "")), epoch=str(raw.get("epoch", "")))
        logger.info("Loaded fallback dataset v%s (%d bodies, epoch %s)",
                    catalog.version, len(records), catalog.epoch)
        return catalog

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, body_id: str) -> bool:
        return body_id in self._records

    def get(self, body_id: str) -> EphemerisRecord | None:
        """Fallback record for one body, stamped with the current time."""
        record = self._records.get(body_id)
        if record is None:
            return None
        return dataclasses.replace(record, timestamp=utc_now_iso())

    def get_many(self, body_ids: list[str]) -> list[EphemerisRecord]:
        return [r for r in (self.get(body_id) for body_id in body_ids) if r is not None]
