"""Canonical catalog of the bodies the viewer shows.

One entry per body, keyed by its NAIF ID string (the same ID Horizons
accepts as COMMAND).  Every other per-body table in the service (orbital
elements, TTL tiers, name lookups) is derived from ``ALL_BODIES`` so the
tables cannot drift apart.

Orbital elements are J2000 mean elements (JPL "Approximate Positions of
the Planets"), good enough for drawing orbits, not for navigation.
Radii in km (equatorial for the gas giants).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class BodyClass(str, enum.Enum):
    STAR = "STAR"
    ROCKY_PLANET = "ROCKY_PLANET"
    GAS_GIANT = "GAS_GIANT"
    DWARF_PLANET = "DWARF_PLANET"
    MOON = "MOON"


class SpeedTier(str, enum.Enum):
    """How fast a body drifts across the sky; drives cache TTL."""

    FAST = "FAST"
    DEFAULT = "DEFAULT"
    SLOW = "SLOW"


@dataclass(frozen=True, slots=True)
class OrbitalElements:
    semi_major_axis_au: float
    eccentricity: float
    inclination_deg: float  # i
    long_asc_node_deg: float  # Ω
    long_perihelion_deg: float  # ϖ
    mean_longitude_deg: float = 0.0  # L at J2000
    orbital_period_days: float = 0.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.eccentricity < 1.0:
            raise ValueError(
                f"Eccentricity must be in [0, 1) for a closed orbit, got {self.eccentricity}"
            )
        if self.semi_major_axis_au <= 0.0:
            raise ValueError(f"Semi-major axis must be positive, got {self.semi_major_axis_au}")

    @property
    def arg_perihelion_deg(self) -> float:
        """ω = ϖ − Ω"""
        return self.long_perihelion_deg - self.long_asc_node_deg


@dataclass(frozen=True, slots=True)
class CelestialBody:
    body_id: str
    name: str
    body_class: BodyClass
    speed_tier: SpeedTier
    radius: float  # km
    color: str  # hex hint for frontend
    elements: OrbitalElements | None = None  # None = fixed at the origin


# --------------------------------------------------------------------------- #
#  Sun
# --------------------------------------------------------------------------- #
SUN = CelestialBody(
    body_id="10", name="Sun", body_class=BodyClass.STAR,
    speed_tier=SpeedTier.SLOW, radius=696_000.0, color="#FDB813",
)

# --------------------------------------------------------------------------- #
#  Planets
# --------------------------------------------------------------------------- #
MERCURY = CelestialBody(
    body_id="199", name="Mercury", body_class=BodyClass.ROCKY_PLANET,
    speed_tier=SpeedTier.DEFAULT, radius=2_440.0, color="#8C7853",
    elements=OrbitalElements(0.387, 0.2056, 7.0, 48.33, 77.45, 252.25, 88.0),
)
VENUS = CelestialBody(
    body_id="299", name="Venus", body_class=BodyClass.ROCKY_PLANET,
    speed_tier=SpeedTier.DEFAULT, radius=6_052.0, color="#FFC649",
    elements=OrbitalElements(0.723, 0.0068, 3.4, 76.68, 131.53, 181.98, 225.0),
)
EARTH = CelestialBody(
    body_id="399", name="Earth", body_class=BodyClass.ROCKY_PLANET,
    speed_tier=SpeedTier.FAST, radius=6_371.0, color="#6B93D6",
    # Earth defines the ecliptic, so i = Ω = 0
    elements=OrbitalElements(1.0, 0.0167, 0.0, 0.0, 102.94, 100.46, 365.25),
)
MARS = CelestialBody(
    body_id="499", name="Mars", body_class=BodyClass.ROCKY_PLANET,
    speed_tier=SpeedTier.DEFAULT, radius=3_390.0, color="#C1440E",
    elements=OrbitalElements(1.524, 0.0934, 1.85, 49.58, 336.04, 355.45, 687.0),
)
JUPITER = CelestialBody(
    body_id="599", name="Jupiter", body_class=BodyClass.GAS_GIANT,
    speed_tier=SpeedTier.SLOW, radius=71_492.0, color="#D8CA9D",
    elements=OrbitalElements(5.203, 0.0489, 1.3, 100.46, 14.75, 34.40, 4_333.0),
)
SATURN = CelestialBody(
    body_id="699", name="Saturn", body_class=BodyClass.GAS_GIANT,
    speed_tier=SpeedTier.SLOW, radius=60_268.0, color="#EAD6B8",
    elements=OrbitalElements(9.537, 0.0565, 2.49, 113.66, 92.43, 49.94, 10_759.0),
)
URANUS = CelestialBody(
    body_id="799", name="Uranus", body_class=BodyClass.GAS_GIANT,
    speed_tier=SpeedTier.SLOW, radius=25_559.0, color="#D1E7E7",
    elements=OrbitalElements(19.191, 0.0457, 0.77, 74.01, 170.96, 313.23, 30_687.0),
)
NEPTUNE = CelestialBody(
    body_id="899", name="Neptune", body_class=BodyClass.GAS_GIANT,
    speed_tier=SpeedTier.SLOW, radius=24_764.0, color="#5B5DDF",
    elements=OrbitalElements(30.069, 0.0113, 1.77, 131.78, 44.97, 304.88, 60_190.0),
)

# --------------------------------------------------------------------------- #
#  Lookup tables (derived views)
# --------------------------------------------------------------------------- #
ALL_BODIES: list[CelestialBody] = [
    SUN,
    MERCURY, VENUS, EARTH, MARS, JUPITER, SATURN, URANUS, NEPTUNE,
]

BODY_BY_ID: dict[str, CelestialBody] = {b.body_id: b for b in ALL_BODIES}
BODY_BY_NAME: dict[str, CelestialBody] = {b.name.lower(): b for b in ALL_BODIES}

PLANETS: list[CelestialBody] = [b for b in ALL_BODIES if b.elements is not None]

ORBITAL_ELEMENTS: dict[str, OrbitalElements] = {
    b.body_id: b.elements for b in ALL_BODIES if b.elements is not None
}

SPEED_TIER_BY_ID: dict[str, SpeedTier] = {b.body_id: b.speed_tier for b in ALL_BODIES}

ALL_BODY_IDS: list[str] = [b.body_id for b in ALL_BODIES]

SUN_ID: str = SUN.body_id

# 1 AU in km
AU_KM: float = 149_597_870.7
