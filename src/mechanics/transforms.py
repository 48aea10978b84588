"""Coordinate transforms and unit conversions for the 3D scene.

Handles:
- Real units (km, AU) <-> Scene units (1 unit = 1,000,000 km)
- Horizons ecliptic frame (z up) -> scene frame (y up)
- Didactic radius inflation so small bodies stay visible
- ISO date helpers for the one-day Horizons window
"""

from __future__ import annotations

from datetime import date, timedelta

import numpy as np

from ephemeris.bodies import AU_KM, BodyClass, CelestialBody

# --------------------------------------------------------------------------- #
#  Unit conversions
# --------------------------------------------------------------------------- #
KM_TO_UNIT = 1.0 / 1_000_000.0  # 1 scene unit = 1 million km
AU_TO_UNIT = AU_KM * KM_TO_UNIT  # ~149.598 units per AU


def km_to_scene(pos_km: np.ndarray) -> np.ndarray:
    """Convert position from km to scene units."""
    return np.asarray(pos_km, dtype=np.float64) * KM_TO_UNIT


def scene_to_km(pos_scene: np.ndarray) -> np.ndarray:
    """Convert position from scene units back to km."""
    return np.asarray(pos_scene, dtype=np.float64) / KM_TO_UNIT


def km_to_au(pos_km: np.ndarray) -> np.ndarray:
    return np.asarray(pos_km, dtype=np.float64) / AU_KM


def au_to_km(pos_au: np.ndarray) -> np.ndarray:
    return np.asarray(pos_au, dtype=np.float64) * AU_KM


def au_to_scene(pos_au: np.ndarray) -> np.ndarray:
    return np.asarray(pos_au, dtype=np.float64) * AU_TO_UNIT


def scene_to_au(pos_scene: np.ndarray) -> np.ndarray:
    return np.asarray(pos_scene, dtype=np.float64) / AU_TO_UNIT


def scale_position_from_km(x: float, y: float, z: float) -> tuple[float, float, float]:
    """Scalar variant of ``km_to_scene`` for a single position."""
    return x * KM_TO_UNIT, y * KM_TO_UNIT, z * KM_TO_UNIT


def unit_to_million_km(units: float) -> float:
    """Scene units to millions of km for display (1 unit = 1 million km)."""
    return float(units)


# --------------------------------------------------------------------------- #
#  Frame remap
# --------------------------------------------------------------------------- #
def ecliptic_to_scene(x: float, y: float, z: float) -> tuple[float, float, float]:
    """Remap an ecliptic vector (z = north ecliptic pole) to the y-up scene.

    X stays put; ecliptic Z becomes scene up (Y) and ecliptic Y becomes
    scene depth (Z).
    """
    return x, z, y


# --------------------------------------------------------------------------- #
#  Didactic scale
# --------------------------------------------------------------------------- #
DIDACTIC_SCALE: dict[BodyClass, float] = {
    BodyClass.STAR: 50.0,
    BodyClass.GAS_GIANT: 400.0,
    BodyClass.ROCKY_PLANET: 2000.0,
    BodyClass.DWARF_PLANET: 2000.0,
    BodyClass.MOON: 3000.0,
}


def didactic_radius(body: CelestialBody) -> float:
    """Inflated render radius in scene units.

    Positions stay true to scale; only radii are exaggerated.
    """
    multiplier = DIDACTIC_SCALE.get(body.body_class, DIDACTIC_SCALE[BodyClass.ROCKY_PLANET])
    return body.radius * KM_TO_UNIT * multiplier


# --------------------------------------------------------------------------- #
#  Dates
# --------------------------------------------------------------------------- #
def parse_iso_date(value: str) -> date:
    """Parse ``YYYY-MM-DD`` (a trailing time component is ignored)."""
    return date.fromisoformat(value[:10])


def next_day_iso(value: str) -> str:
    """ISO date one day after ``value``; the Horizons STOP_TIME."""
    return (parse_iso_date(value) + timedelta(days=1)).isoformat()
