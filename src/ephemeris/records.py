"""Ephemeris records — the unit of data flowing through the pipeline.

Positions are km and velocities km/s, already in the scene frame (y up).
The dict form matches what the viewer consumes and what is stored in
the cache, so a cache replay is indistinguishable from a fresh fetch.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from ephemeris.errors import ValidationFailed


class DataSource(str, enum.Enum):
    """Where a response (or a single record in it) came from."""

    LIVE = "NASA_LIVE"
    CACHE_HIT = "CACHE_HIT"
    FALLBACK = "FALLBACK_DATASET"


@dataclass(frozen=True, slots=True)
class Vector3:
    x: float
    y: float
    z: float

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Vector3:
        return cls(float(data["x"]), float(data["y"]), float(data["z"]))

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y) and math.isfinite(self.z)


ORIGIN = Vector3(0.0, 0.0, 0.0)


@dataclass(frozen=True, slots=True)
class EphemerisRecord:
    body_id: str
    name: str
    position: Vector3  # km
    timestamp: str  # ISO-8601, when the record was produced
    velocity: Vector3 | None = None  # km/s

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "bodyId": self.body_id,
            "name": self.name,
            "position": self.position.to_dict(),
            "timestamp": self.timestamp,
        }
        if self.velocity is not None:
            out["velocity"] = self.velocity.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EphemerisRecord:
        """Rebuild a record from its dict form.

        Raises ValidationFailed if a required field is missing or not numeric.
        """
        try:
            velocity = data.get("velocity")
            return cls(
                body_id=str(data["bodyId"]),
                name=str(data["name"]),
                position=Vector3.from_dict(data["position"]),
                timestamp=str(data.get("timestamp") or utc_now_iso()),
                velocity=Vector3.from_dict(velocity) if velocity else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationFailed(f"Malformed ephemeris record: {e}") from e


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def validate_record(record: EphemerisRecord) -> EphemerisRecord:
    """Raise ValidationFailed unless the record is safe to hand to the viewer."""
    if not record.body_id or not record.name:
        raise ValidationFailed(f"Record is missing body id or name: {record!r}")
    if not record.position.is_finite():
        raise ValidationFailed(f"Non-finite position for {record.name}: {record.position}")
    if record.velocity is not None and not record.velocity.is_finite():
        raise ValidationFailed(f"Non-finite velocity for {record.name}: {record.velocity}")
    return record
