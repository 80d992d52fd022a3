import math

import numpy as np
import pytest

from morphfield.geometry import build_particle_field, grid_indices


def test_record_count_matches_grid_resolution() -> None:
    field = build_particle_field(6, 3, 60.0, 30.0, 10.0, seed=1)

    expected = (6 + 1) * (3 + 1)
    assert field.count == expected
    assert len(field) == expected
    for array in (field.wave_positions, field.sphere_positions, field.sphere_normals):
        assert array.shape == (expected, 3)
    assert field.random_seeds.shape == (expected,)
    assert field.transition_delays.shape == (expected,)


def test_sphere_normals_are_unit_length() -> None:
    field = build_particle_field(24, 12, 240.0, 120.0, 18.0, seed=2)

    norms = np.linalg.norm(field.sphere_normals, axis=1)
    np.testing.assert_allclose(norms, 1.0, atol=1e-5)


def test_four_by_four_grid_maps_poles_and_equator() -> None:
    field = build_particle_field(4, 4, 40.0, 40.0, 10.0, seed=0)

    assert field.count == 25
    np.testing.assert_allclose(field.sphere_positions[0], (0.0, 10.0, 0.0), atol=1e-9)
    # ix=2, iy=2 -> u=v=0.5 -> phi=pi/2, theta=pi
    np.testing.assert_allclose(field.sphere_positions[2 * 5 + 2], (-10.0, 0.0, 0.0), atol=1e-9)


def test_wave_grid_spans_the_plane_centred_on_origin() -> None:
    field = build_particle_field(4, 2, 40.0, 20.0, 5.0)

    wave = field.wave_positions
    assert wave[0].tolist() == [-20.0, 10.0, 0.0]
    assert wave[-1].tolist() == [20.0, -10.0, 0.0]
    assert np.all(wave[:, 2] == 0.0)


def test_delays_grow_with_distance_from_centre() -> None:
    field = build_particle_field(10, 6, 100.0, 60.0, 10.0, delay_window=0.4)
    ix, iy = grid_indices(10, 6)
    dist = np.hypot(ix - 5.0, iy - 3.0)

    delays = field.transition_delays
    assert delays.min() >= 0.0
    assert delays.max() <= 0.4 + 1e-12
    order = np.argsort(dist, kind="stable")
    assert np.all(np.diff(delays[order]) >= -1e-12)
    assert delays[3 * 11 + 5] == 0.0
    assert delays[0] == pytest.approx(0.4)


def test_zero_delay_window_gives_lockstep_delays() -> None:
    field = build_particle_field(4, 4, 10.0, 10.0, 5.0, delay_window=0.0)

    assert np.all(field.transition_delays == 0.0)


def test_seeded_fields_are_reproducible() -> None:
    a = build_particle_field(5, 5, 10.0, 10.0, 5.0, seed=42)
    b = build_particle_field(5, 5, 10.0, 10.0, 5.0, seed=42)

    np.testing.assert_array_equal(a.random_seeds, b.random_seeds)
    assert np.all((a.random_seeds >= 0.0) & (a.random_seeds < 1.0))


def test_attribute_arrays_are_read_only() -> None:
    field = build_particle_field(2, 2, 10.0, 10.0, 5.0)

    with pytest.raises(ValueError):
        field.wave_positions[0, 0] = 1.0
    with pytest.raises(ValueError):
        field.transition_delays[0] = 1.0


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(segments_x=0),
        dict(segments_y=-3),
        dict(segments_x=2.5),
        dict(segments_x=True),
        dict(sphere_radius=0.0),
        dict(sphere_radius=math.nan),
        dict(plane_width=-1.0),
        dict(plane_height="tall"),
        dict(delay_window=-0.1),
    ],
)
def test_invalid_construction_arguments_raise(kwargs) -> None:
    args = dict(segments_x=4, segments_y=4, plane_width=10.0, plane_height=10.0, sphere_radius=5.0)
    args.update(kwargs)

    with pytest.raises(ValueError):
        build_particle_field(**args)
