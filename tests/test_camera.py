import math

import numpy as np
import pytest

from morphfield.camera import CameraController, euler_xyz, look_at, perspective
from morphfield.config import load_config
from morphfield.morph_state import MorphStateController


@pytest.fixture
def camera():
    return CameraController(load_config().camera)


def test_resize_yields_exact_aspect(camera) -> None:
    assert camera.resize(800, 600) == 800 / 600
    assert camera.aspect == 800 / 600


def test_zero_sized_viewport_uses_denominator_floor(camera) -> None:
    assert camera.resize(0, 0) == 1.0
    assert camera.resize(640, 0) == 640.0


def _settle(target: float, frames: int = 1200) -> float:
    controller = MorphStateController(smoothing=0.05)
    controller.set_target(target)
    for frame in range(frames):
        controller.tick(frame / 60.0)
    return controller.state.smoothed


@pytest.mark.parametrize("target, pose_name", [(0.0, "wave_pose"), (1.0, "sphere_pose")])
def test_sustained_scroll_converges_to_endpoint_pose(camera, target, pose_name) -> None:
    smoothed = _settle(target)
    expected = getattr(camera.settings, pose_name)

    pose = camera.base_pose(smoothed)

    np.testing.assert_allclose(pose.position, expected.position, atol=1e-6)
    np.testing.assert_allclose(pose.target, expected.target, atol=1e-6)
    np.testing.assert_allclose(pose.up, expected.up, atol=1e-6)


def test_sway_dies_out_on_the_sphere(camera) -> None:
    assert camera.sway(1.0, 12.3) == (0.0, 0.0, 0.0)
    dx, dy, _ = camera.sway(0.0, 5.0)
    assert dx == pytest.approx(math.sin(1.0) * camera.settings.sway_x)
    assert dy == pytest.approx(math.cos(0.75) * camera.settings.sway_y)


def test_view_matrix_survives_vanishing_up_vector(camera) -> None:
    # The default endpoint up vectors are opposite, so the midpoint up is zero.
    camera.view_matrix(camera.base_pose(0.4))
    view = camera.view_matrix(camera.base_pose(0.5))

    rotation = view[:3, :3]
    assert np.all(np.isfinite(view))
    np.testing.assert_allclose(rotation @ rotation.T, np.eye(3), atol=1e-9)


def test_look_at_places_eye_at_origin() -> None:
    view = look_at((0.0, 0.0, 55.0), (0.0, 0.0, 0.0), (0.0, 1.0, 0.0))

    eye = view @ np.array([0.0, 0.0, 55.0, 1.0])
    target = view @ np.array([0.0, 0.0, 0.0, 1.0])
    np.testing.assert_allclose(eye[:3], 0.0, atol=1e-12)
    assert target[2] == pytest.approx(-55.0)
    assert look_at((0.0, 0.0, 5.0), (0.0, 0.0, 0.0), (0.0, 0.0, 1.0)) is None


def test_perspective_focal_length() -> None:
    proj = perspective(60.0, 2.0, 1.0, 1000.0)

    f = 1.0 / math.tan(math.radians(30.0))
    assert proj[1, 1] == pytest.approx(f)
    assert proj[0, 0] == pytest.approx(f / 2.0)
    near_point = proj @ np.array([0.0, 0.0, -1.0, 1.0])
    assert near_point[2] / near_point[3] == pytest.approx(-1.0)


def test_model_matrix_endpoints(camera) -> None:
    settled = camera.model_matrix(1.0, 0.0)
    np.testing.assert_allclose(settled, np.eye(4), atol=1e-12)

    wave = camera.model_matrix(0.0, 0.0)
    np.testing.assert_allclose(wave[:3, :3], euler_xyz(camera.settings.wave_tilt, camera.settings.yaw_amp, 0.0))
    np.testing.assert_allclose(wave[:3, 3], 0.0, atol=1e-12)
