from __future__ import annotations

import math
from typing import Optional, Tuple

import numpy as np

from .config import CameraPose, CameraSettings

__all__ = [
    "CameraController",
    "lerp_pose",
    "look_at",
    "perspective",
    "euler_xyz",
]

Vec3 = Tuple[float, float, float]


def _lerp3(a: Vec3, b: Vec3, t: float) -> Vec3:
    return (
        a[0] + (b[0] - a[0]) * t,
        a[1] + (b[1] - a[1]) * t,
        a[2] + (b[2] - a[2]) * t,
    )


def lerp_pose(a: CameraPose, b: CameraPose, t: float) -> CameraPose:
    """Interpolate position, target and up independently."""

    return CameraPose(_lerp3(a.position, b.position, t), _lerp3(a.target, b.target, t), _lerp3(a.up, b.up, t))


def look_at(eye, target, up) -> Optional[np.ndarray]:
    """Right-handed view matrix, or ``None`` when ``up`` cannot orient the view."""

    eye = np.asarray(eye, dtype=np.float64)
    forward = np.asarray(target, dtype=np.float64) - eye
    length = np.linalg.norm(forward)
    if length < 1e-12:
        forward = np.array([0.0, 0.0, -1.0])
    else:
        forward = forward / length
    side = np.cross(forward, np.asarray(up, dtype=np.float64))
    side_len = np.linalg.norm(side)
    if side_len < 1e-9:
        return None
    side /= side_len
    true_up = np.cross(side, forward)
    view = np.eye(4)
    view[0, :3] = side
    view[1, :3] = true_up
    view[2, :3] = -forward
    view[:3, 3] = -view[:3, :3] @ eye
    return view


def perspective(fov_deg: float, aspect: float, near: float, far: float) -> np.ndarray:
    f = 1.0 / math.tan(math.radians(fov_deg) / 2.0)
    proj = np.zeros((4, 4))
    proj[0, 0] = f / aspect
    proj[1, 1] = f
    proj[2, 2] = (far + near) / (near - far)
    proj[2, 3] = 2.0 * far * near / (near - far)
    proj[3, 2] = -1.0
    return proj


def euler_xyz(rx: float, ry: float, rz: float) -> np.ndarray:
    """Rotation matrix for intrinsic X then Y then Z angles (``Rx @ Ry @ Rz``)."""

    cx, sx = math.cos(rx), math.sin(rx)
    cy, sy = math.cos(ry), math.sin(ry)
    cz, sz = math.cos(rz), math.sin(rz)
    rot_x = np.array([[1.0, 0.0, 0.0], [0.0, cx, -sx], [0.0, sx, cx]])
    rot_y = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    rot_z = np.array([[cz, -sz, 0.0], [sz, cz, 0.0], [0.0, 0.0, 1.0]])
    return rot_x @ rot_y @ rot_z


class CameraController:
    """Viewpoint and particle-object transform as functions of the morph value.

    Both endpoint poses are fixed by configuration; in between each component
    is interpolated linearly.  The idle motion (camera sway, object drift,
    roll and yaw wobble) is scaled by ``1 - smoothed`` so it dies out once the
    sphere has formed.
    """

    def __init__(self, settings: CameraSettings) -> None:
        self.settings = settings
        self.aspect = 1.0
        self._last_up = np.asarray(settings.wave_pose.up, dtype=np.float64)

    def resize(self, width: float, height: float) -> float:
        self.aspect = float(max(width, 1)) / float(max(height, 1))
        return self.aspect

    # ------------------------------------------------------------------ poses
    def base_pose(self, smoothed: float) -> CameraPose:
        return lerp_pose(self.settings.wave_pose, self.settings.sphere_pose, smoothed)

    def sway(self, smoothed: float, clock: float) -> Vec3:
        damp = 1.0 - smoothed
        s = self.settings
        return (
            math.sin(clock * 0.2) * s.sway_x * damp,
            math.cos(clock * 0.15) * s.sway_y * damp,
            0.0,
        )

    def pose(self, smoothed: float, clock: float) -> CameraPose:
        base = self.base_pose(smoothed)
        dx, dy, dz = self.sway(smoothed, clock)
        px, py, pz = base.position
        return CameraPose((px + dx, py + dy, pz + dz), base.target, base.up)

    # ------------------------------------------------------------------ matrices
    def view_matrix(self, pose: CameraPose) -> np.ndarray:
        view = look_at(pose.position, pose.target, pose.up)
        if view is not None:
            self._last_up = np.asarray(pose.up, dtype=np.float64)
            return view
        # The interpolated up vector vanishes where the endpoint ups oppose.
        for fallback in (self._last_up, (0.0, 0.0, 1.0), (1.0, 0.0, 0.0)):
            view = look_at(pose.position, pose.target, fallback)
            if view is not None:
                return view
        raise AssertionError("no orthogonal up vector found")  # pragma: no cover

    def projection_matrix(self) -> np.ndarray:
        s = self.settings
        return perspective(s.fov, self.aspect, s.near, s.far)

    def model_matrix(self, smoothed: float, clock: float) -> np.ndarray:
        s = self.settings
        damp = 1.0 - smoothed
        tilt = s.wave_tilt + (s.sphere_tilt - s.wave_tilt) * smoothed
        roll = math.sin(clock * 0.3) * s.roll_amp * damp
        yaw = math.cos(clock * 0.25) * s.yaw_amp * damp + smoothed * clock * s.sphere_spin
        model = np.eye(4)
        model[:3, :3] = euler_xyz(tilt, yaw, roll)
        model[0, 3] = math.sin(clock * 0.4) * s.drift[0] * damp
        model[1, 3] = math.sin(clock * 0.5) * s.drift[1] * damp
        model[2, 3] = math.sin(clock * 0.35) * s.drift[2] * damp
        return model
