import numpy as np
import pytest

from morphfield.noise import get_noise, simplex3, value_noise3


@pytest.fixture
def points():
    rng = np.random.default_rng(7)
    return rng.uniform(-50.0, 50.0, size=(2000, 3))


@pytest.mark.parametrize("noise", [simplex3, value_noise3])
def test_noise_stays_in_unit_range(noise, points) -> None:
    values = noise(points)

    assert values.shape == (2000,)
    assert np.all(np.isfinite(values))
    assert np.all(np.abs(values) <= 1.1)


@pytest.mark.parametrize("noise", [simplex3, value_noise3])
def test_noise_is_deterministic(noise, points) -> None:
    np.testing.assert_array_equal(noise(points), noise(points.copy()))


@pytest.mark.parametrize("noise", [simplex3, value_noise3])
def test_noise_is_continuous(noise, points) -> None:
    nudged = points + 1e-5

    assert np.max(np.abs(noise(points) - noise(nudged))) < 1e-2


def test_simplex_varies_across_space() -> None:
    values = simplex3(np.array([[0.3, 1.7, -2.2], [5.1, 0.2, 3.3], [-4.4, 2.8, 0.9]]))

    assert np.ptp(values) > 0.0


def test_single_point_returns_scalar() -> None:
    assert np.ndim(simplex3([0.1, 0.2, 0.3])) == 0
    assert np.ndim(value_noise3([0.1, 0.2, 0.3])) == 0


def test_value_noise_hits_lattice_values() -> None:
    corner = value_noise3(np.array([[2.0, 3.0, 4.0]]))
    near = value_noise3(np.array([[2.0 + 1e-9, 3.0, 4.0]]))

    assert corner == pytest.approx(near, abs=1e-6)


def test_bad_shapes_and_names_raise() -> None:
    with pytest.raises(ValueError):
        simplex3(np.zeros((4, 2)))
    with pytest.raises(ValueError):
        get_noise("perlin")
    assert get_noise("simplex") is simplex3
