"""Orbit geometry — Keplerian elements to renderable paths and positions.

The central body sits at the origin, which is the ellipse's focus, not
its centre.  Orientation follows the classical element convention and is
expressed in the y-up scene frame:

    R = R_y(Ω) · R_x(i) · R_y(ω),   ω = ϖ − Ω

i.e. swing the line of nodes out by Ω, tilt about it by i, then turn the
perihelion within the orbital plane by ω.  The order matters; any other
composition gives a different (wrong) orbit.

Lengths are returned in scene units unless ``scale`` says otherwise
(``scale=1.0`` gives AU).
"""

from __future__ import annotations

import math
from datetime import datetime, timezone

import numpy as np
from numba import njit

from ephemeris.bodies import OrbitalElements
from mechanics.transforms import AU_TO_UNIT

# --------------------------------------------------------------------------- #
#  Constants
# --------------------------------------------------------------------------- #
TWO_PI = 2.0 * math.pi
DEFAULT_SEGMENTS = 128

_J2000 = datetime(2000, 1, 1, 12, 0, 0, tzinfo=timezone.utc)  # JD 2451545.0

# Opacity ramp, distances in scene units (million km)
OPACITY_NEAR = 50.0
OPACITY_FAR = 5000.0
OPACITY_MIN = 0.04
OPACITY_MAX = 0.15


# --------------------------------------------------------------------------- #
#  Rotations
# --------------------------------------------------------------------------- #
def _rot_x(angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    return np.array([
        [1.0, 0.0, 0.0],
        [0.0, c, -s],
        [0.0, s, c],
    ], dtype=np.float64)


def _rot_y(angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    return np.array([
        [c, 0.0, s],
        [0.0, 1.0, 0.0],
        [-s, 0.0, c],
    ], dtype=np.float64)


def orbit_rotation_matrix(elements: OrbitalElements) -> np.ndarray:
    """Orbital plane -> scene rotation, R_y(Ω) · R_x(i) · R_y(ω)."""
    node = math.radians(elements.long_asc_node_deg)
    inc = math.radians(elements.inclination_deg)
    argp = math.radians(elements.arg_perihelion_deg)
    return _rot_y(node) @ _rot_x(inc) @ _rot_y(argp)


# --------------------------------------------------------------------------- #
#  Paths
# --------------------------------------------------------------------------- #
def _focal_ellipse(a: float, e: float, anomalies: np.ndarray) -> np.ndarray:
    """Flat ellipse in the XZ plane, shifted so the origin is a focus.

    ``anomalies`` are eccentric anomalies; perihelion lies on +X.
    """
    b = a * math.sqrt(1.0 - e * e)
    c = a * e
    return np.column_stack([
        a * np.cos(anomalies) - c,
        np.zeros_like(anomalies),
        b * np.sin(anomalies),
    ])


def generate_orbit_path(
    elements: OrbitalElements,
    segment_count: int = DEFAULT_SEGMENTS,
    scale: float = AU_TO_UNIT,
) -> np.ndarray:
    """Sample the orbit ellipse into ``segment_count`` points.

    Parameters
    ----------
    elements : orbital elements of the body
    segment_count : number of points; the path is a closed loop, so the
        last point connects back to the first (it is not repeated)
    scale : length units per AU

    Returns
    -------
    (segment_count, 3) array of positions with the central body at the
    origin.
    """
    if segment_count < 3:
        raise ValueError(f"segment_count must be at least 3, got {segment_count}")

    a = elements.semi_major_axis_au * scale
    anomalies = np.linspace(0.0, TWO_PI, segment_count, endpoint=False)
    flat = _focal_ellipse(a, elements.eccentricity, anomalies)
    return flat @ orbit_rotation_matrix(elements).T


def position_on_orbit(
    elements: OrbitalElements,
    eccentric_anomaly: float,
    scale: float = AU_TO_UNIT,
) -> np.ndarray:
    """Single point on the same path ``generate_orbit_path`` draws."""
    a = elements.semi_major_axis_au * scale
    flat = _focal_ellipse(a, elements.eccentricity, np.array([eccentric_anomaly]))
    return (flat @ orbit_rotation_matrix(elements).T)[0]


# --------------------------------------------------------------------------- #
#  Kepler's equation
# --------------------------------------------------------------------------- #
@njit(cache=True)
def solve_kepler(M: float, ecc: float, tol: float = 1e-12) -> float:
    """Solve Kepler's equation M = E - e*sin(E) via Newton-Raphson."""
    M = M % (2.0 * math.pi)
    E = M if ecc < 0.8 else math.pi  # initial guess
    for _ in range(50):
        dE = (E - ecc * math.sin(E) - M) / (1.0 - ecc * math.cos(E))
        E -= dE
        if abs(dE) < tol:
            break
    return E


def mean_anomaly_at(elements: OrbitalElements, when: datetime) -> float:
    """Mean anomaly (rad) at ``when`` from J2000 mean longitude and period."""
    if elements.orbital_period_days <= 0.0:
        raise ValueError("Orbital period is required to place a body on its orbit")
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    days = (when - _J2000).total_seconds() / 86400.0
    mean_longitude = elements.mean_longitude_deg + 360.0 * days / elements.orbital_period_days
    return math.radians(mean_longitude - elements.long_perihelion_deg) % TWO_PI


def position_at_date(
    elements: OrbitalElements,
    when: datetime,
    scale: float = AU_TO_UNIT,
) -> np.ndarray:
    """Approximate two-body position at ``when``; visual quality only."""
    E = solve_kepler(mean_anomaly_at(elements, when), elements.eccentricity)
    return position_on_orbit(elements, E, scale)


# --------------------------------------------------------------------------- #
#  Rendering hints
# --------------------------------------------------------------------------- #
def classify_opacity(
    distance: float,
    near: float = OPACITY_NEAR,
    far: float = OPACITY_FAR,
    min_opacity: float = OPACITY_MIN,
    max_opacity: float = OPACITY_MAX,
) -> float:
    """Orbit line opacity for an orbit ``distance`` scene units from the Sun.

    Log-interpolates between ``near`` and ``far`` so inner orbits stay
    bright and outer ones fade out.
    """
    log_near = math.log(near)
    log_far = math.log(far)
    t = (math.log(max(distance, near)) - log_near) / (log_far - log_near)
    t = max(0.0, min(1.0, t))
    return max_opacity - t * (max_opacity - min_opacity)
