"""Orbit geometry: focus placement, rotation order, Kepler solver, opacity."""

from __future__ import annotations

import math
from datetime import datetime, timezone

import numpy as np
import pytest

from ephemeris.bodies import ORBITAL_ELEMENTS, OrbitalElements
from mechanics.orbit import (
    OPACITY_FAR,
    OPACITY_MAX,
    OPACITY_MIN,
    OPACITY_NEAR,
    _rot_x,
    _rot_y,
    classify_opacity,
    generate_orbit_path,
    mean_anomaly_at,
    orbit_rotation_matrix,
    position_at_date,
    solve_kepler,
)
from mechanics.transforms import AU_TO_UNIT

ALL_ELEMENTS = list(ORBITAL_ELEMENTS.items())


# --------------------------------------------------------------------------- #
#  Path shape
# --------------------------------------------------------------------------- #

@pytest.mark.parametrize("body_id,elements", ALL_ELEMENTS)
def test_distance_from_focus_spans_perihelion_to_aphelion(body_id, elements):
    path = generate_orbit_path(elements, segment_count=360, scale=1.0)
    r = np.linalg.norm(path, axis=1)
    a, e = elements.semi_major_axis_au, elements.eccentricity

    assert r.min() == pytest.approx(a * (1 - e), rel=1e-9)
    assert r.max() == pytest.approx(a * (1 + e), rel=1e-9)
    assert np.all(r >= a * (1 - e) - 1e-9)
    assert np.all(r <= a * (1 + e) + 1e-9)


def test_zero_eccentricity_is_a_circle():
    elements = OrbitalElements(2.0, 0.0, 10.0, 30.0, 75.0)
    path = generate_orbit_path(elements, segment_count=64, scale=1.0)
    np.testing.assert_allclose(np.linalg.norm(path, axis=1), 2.0, rtol=1e-12)
    # Not collapsed onto a line: spread in two directions
    assert np.ptp(path[:, 0]) > 1.0 and np.ptp(path[:, 2]) > 1.0


def test_path_has_requested_points_and_no_repeated_endpoint():
    path = generate_orbit_path(ORBITAL_ELEMENTS["399"], segment_count=100)
    assert path.shape == (100, 3)
    assert not np.allclose(path[0], path[-1])


def test_default_scale_is_scene_units():
    earth = ORBITAL_ELEMENTS["399"]
    in_au = generate_orbit_path(earth, 32, scale=1.0)
    in_scene = generate_orbit_path(earth, 32)
    np.testing.assert_allclose(in_scene, in_au * AU_TO_UNIT)


def test_too_few_segments_rejected():
    with pytest.raises(ValueError):
        generate_orbit_path(ORBITAL_ELEMENTS["399"], segment_count=2)


def test_open_orbits_are_rejected():
    with pytest.raises(ValueError):
        OrbitalElements(1.0, 1.0, 0.0, 0.0, 0.0)
    with pytest.raises(ValueError):
        OrbitalElements(1.0, -0.1, 0.0, 0.0, 0.0)


# --------------------------------------------------------------------------- #
#  Orientation
# --------------------------------------------------------------------------- #

def test_rotation_is_node_then_inclination_then_perihelion():
    mercury = ORBITAL_ELEMENTS["199"]
    expected = (
        _rot_y(math.radians(mercury.long_asc_node_deg))
        @ _rot_x(math.radians(mercury.inclination_deg))
        @ _rot_y(math.radians(mercury.long_perihelion_deg - mercury.long_asc_node_deg))
    )
    np.testing.assert_allclose(orbit_rotation_matrix(mercury), expected)

    reversed_order = (
        _rot_y(math.radians(mercury.long_perihelion_deg - mercury.long_asc_node_deg))
        @ _rot_x(math.radians(mercury.inclination_deg))
        @ _rot_y(math.radians(mercury.long_asc_node_deg))
    )
    assert not np.allclose(orbit_rotation_matrix(mercury), reversed_order)


@pytest.mark.parametrize("body_id,elements", ALL_ELEMENTS)
def test_orbit_plane_is_tilted_by_inclination(body_id, elements):
    R = orbit_rotation_matrix(elements)
    normal = R @ np.array([0.0, 1.0, 0.0])
    path = generate_orbit_path(elements, segment_count=90, scale=1.0)

    np.testing.assert_allclose(path @ normal, 0.0, atol=1e-12)
    assert normal[1] == pytest.approx(math.cos(math.radians(elements.inclination_deg)), abs=1e-12)


def test_perihelion_sits_on_line_of_nodes_when_argument_is_zero():
    # ϖ == Ω  ->  ω = 0, perihelion at the ascending node
    elements = OrbitalElements(1.5, 0.3, 20.0, 40.0, 40.0)
    perihelion = generate_orbit_path(elements, segment_count=8, scale=1.0)[0]
    assert perihelion[1] == pytest.approx(0.0, abs=1e-12)
    assert np.linalg.norm(perihelion) == pytest.approx(1.5 * 0.7)


def test_flat_orbit_stays_in_ecliptic():
    earth = ORBITAL_ELEMENTS["399"]
    path = generate_orbit_path(earth, segment_count=64)
    np.testing.assert_allclose(path[:, 1], 0.0, atol=1e-9)


# --------------------------------------------------------------------------- #
#  Kepler / dated positions
# --------------------------------------------------------------------------- #

@pytest.mark.parametrize("M,e", [(0.0, 0.0), (1.0, 0.0167), (3.0, 0.2056), (5.5, 0.9)])
def test_solve_kepler(M, e):
    E = solve_kepler(M, e)
    assert E - e * math.sin(E) == pytest.approx(M % (2 * math.pi), abs=1e-10)


def test_position_at_date_lies_on_orbit():
    mars = ORBITAL_ELEMENTS["499"]
    when = datetime(2025, 1, 16, tzinfo=timezone.utc)
    p = position_at_date(mars, when, scale=1.0)
    r = np.linalg.norm(p)
    assert mars.semi_major_axis_au * (1 - mars.eccentricity) - 1e-9 <= r
    assert r <= mars.semi_major_axis_au * (1 + mars.eccentricity) + 1e-9


def test_mean_anomaly_advances_one_turn_per_period():
    earth = ORBITAL_ELEMENTS["399"]
    t0 = datetime(2024, 3, 1, tzinfo=timezone.utc)
    t1 = datetime.fromtimestamp(t0.timestamp() + earth.orbital_period_days * 86400, tz=timezone.utc)
    assert mean_anomaly_at(earth, t1) == pytest.approx(mean_anomaly_at(earth, t0), abs=1e-9)


def test_mean_anomaly_needs_period():
    with pytest.raises(ValueError):
        mean_anomaly_at(OrbitalElements(1.0, 0.0, 0.0, 0.0, 0.0), datetime(2024, 1, 1))


# --------------------------------------------------------------------------- #
#  Opacity
# --------------------------------------------------------------------------- #

def test_opacity_endpoints_and_clamping():
    assert classify_opacity(OPACITY_NEAR) == pytest.approx(OPACITY_MAX)
    assert classify_opacity(OPACITY_FAR) == pytest.approx(OPACITY_MIN)
    assert classify_opacity(1.0) == pytest.approx(OPACITY_MAX)
    assert classify_opacity(1e6) == pytest.approx(OPACITY_MIN)


def test_opacity_is_log_interpolated():
    midpoint = math.sqrt(OPACITY_NEAR * OPACITY_FAR)  # halfway in log space
    assert classify_opacity(midpoint) == pytest.approx((OPACITY_MIN + OPACITY_MAX) / 2)


def test_inner_orbits_render_brighter():
    distances = [e.semi_major_axis_au * AU_TO_UNIT for _, e in ALL_ELEMENTS]
    opacities = [classify_opacity(d) for d in sorted(distances)]
    assert opacities == sorted(opacities, reverse=True)
