"""Per-particle position, size and colour mapping.

Everything below operates on whole numpy columns at once: each particle's
result depends only on its own attributes and the frame's shared scalars.
The module-level functions are the individual mapping stages so they can be
exercised (and swapped) on their own; :class:`ShadingPipeline` chains them for
one frame and returns a :class:`FrameBatch` ready to paint.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from .config import AppearanceSettings, PointerSettings
from .geometry import ParticleField
from .inputs import Viewport
from .morph_state import smoothstep

__all__ = [
    "FrameBatch",
    "ShadingPipeline",
    "blend_positions",
    "repulsion_weights",
    "mix_strength",
    "wave_color",
    "sphere_noise_level",
    "sphere_color",
    "rim_light",
    "point_sizes",
    "fog_alpha",
    "sprite_alpha",
    "sprite_mask",
]

_WAVE_AXIS = np.array([0.0, 0.0, 1.0])


@dataclass
class FrameBatch:
    """One frame worth of drawable particles.

    ``screen`` is in logical pixels (origin top-left), ``sizes`` are sprite
    diameters in logical pixels, ``colors`` are RGB floats.
    """

    positions: np.ndarray
    screen: np.ndarray
    sizes: np.ndarray
    colors: np.ndarray
    alpha: np.ndarray
    depth: np.ndarray
    visible: np.ndarray
    progress: np.ndarray
    smoothed: float = 0.0

    @property
    def count(self) -> int:
        return int(self.positions.shape[0])

    @property
    def visible_count(self) -> int:
        return int(np.count_nonzero(self.visible))


# ---------------------------------------------------------------------------
# Stages


def _lerp(a, b, t):
    return a + (b - a) * t


def blend_positions(
    wave: np.ndarray,
    sphere: np.ndarray,
    progress: np.ndarray,
    converge_strength: Optional[float] = None,
    center: Sequence[float] = (0.0, 0.0, 0.0),
) -> np.ndarray:
    """Interpolate wave -> sphere per particle.

    With ``converge_strength`` the wave side is first pulled toward ``center``
    by ``sin(progress * pi)``, strongest half way through the transition.
    """

    progress = np.asarray(progress, dtype=np.float64)[:, None]
    if converge_strength:
        pull = np.sin(progress * np.pi) * converge_strength
        wave = wave + (np.asarray(center, dtype=np.float64) - wave) * pull
    return _lerp(wave, sphere, progress)


def repulsion_weights(ndc: np.ndarray, pointer: Tuple[float, float], radius: float) -> np.ndarray:
    """``smoothstep(radius, 0, distance)`` from each projected particle to the pointer."""

    dist = np.hypot(ndc[:, 0] - pointer[0], ndc[:, 1] - pointer[1])
    return smoothstep(radius, 0.0, dist)


def mix_strength(elevation, offset: float, value_range: float) -> np.ndarray:
    return np.clip((np.asarray(elevation, dtype=np.float64) + offset) / value_range, 0.0, 1.0)


def wave_color(elevation, appearance: AppearanceSettings, rim=None) -> np.ndarray:
    """Two-stop gradient over elevation with the third colour on the crests.

    ``rim`` (see :func:`rim_light`) tints the gradient toward the third colour
    by ``rim * rim_strength`` before the crest highlight is applied.
    """

    mix = mix_strength(elevation, appearance.mix_offset, appearance.mix_range)[..., None]
    c1 = np.asarray(appearance.color1)
    c2 = np.asarray(appearance.color2)
    c3 = np.asarray(appearance.color3)
    color = _lerp(c1, c2, mix)
    if rim is not None and appearance.rim_strength:
        color = _lerp(color, c3, np.asarray(rim)[..., None] * appearance.rim_strength)
    highlight = smoothstep(appearance.highlight_start, 1.0, mix) * appearance.highlight_strength
    return _lerp(color, c3, highlight)


def sphere_noise_level(noise) -> np.ndarray:
    return smoothstep(-0.4, 0.4, noise)


def sphere_color(noise, appearance: AppearanceSettings) -> np.ndarray:
    """Deep -> mid below 60% of the normalized noise, mid -> highlight above."""

    n = sphere_noise_level(noise)[..., None]
    deep = np.asarray(appearance.color_deep)
    mid = np.asarray(appearance.color_mid)
    high = np.asarray(appearance.color_highlight)
    low_band = _lerp(deep, mid, n / 0.6)
    high_band = _lerp(mid, high, (n - 0.6) / 0.4)
    return np.where(n < 0.6, low_band, high_band)


def rim_light(positions, power: float = 2.0) -> np.ndarray:
    """``(1 - |n.z|) ** power`` with ``n`` the direction of each object-space position.

    Points seen edge-on from +Z get 1, points on the Z axis get 0. A point at
    the origin has no direction and gets no rim.
    """

    positions = np.asarray(positions, dtype=np.float64)
    length = np.linalg.norm(positions, axis=-1)
    nz = np.abs(positions[..., 2]) / np.maximum(length, 1e-12)
    return np.where(length > 1e-12, (1.0 - np.clip(nz, 0.0, 1.0)) ** power, 0.0)


def point_sizes(elevation, depth, progress, appearance: AppearanceSettings) -> np.ndarray:
    """Sprite diameters in device pixels.

    ``signed`` sizing swells crests and shrinks troughs on the wave side and
    blends toward a flat sphere size. ``absolute`` sizing grows with
    ``|elevation|`` for the whole morph.
    """

    perspective = appearance.perspective_scale / np.asarray(depth, dtype=np.float64)
    if appearance.size_elevation == "absolute":
        swell = 1.0 + np.abs(np.asarray(elevation, dtype=np.float64)) / appearance.elevation_norm
        scale = _lerp(1.0, appearance.sphere_size_multiplier, progress)
        return np.maximum(appearance.base_size * swell * scale * perspective, 0.0)
    wave_size = appearance.base_size * (1.0 + np.asarray(elevation) / appearance.elevation_norm) * perspective
    sphere_size = appearance.base_size * appearance.sphere_size_multiplier * perspective
    return np.maximum(_lerp(wave_size, sphere_size, progress), 0.0)


def fog_alpha(depth, appearance: AppearanceSettings) -> np.ndarray:
    fog = smoothstep(appearance.fog_near, appearance.fog_far, depth)
    return np.clip((1.0 - fog * appearance.fog_strength) * appearance.opacity, 0.0, 1.0)


def sprite_mask(distance) -> np.ndarray:
    """True where a sprite sample lies inside the unit dot (distance from centre <= 0.5)."""

    return np.asarray(distance, dtype=np.float64) <= 0.5


def sprite_alpha(distance, inner: float = 0.3) -> np.ndarray:
    """Soft circular falloff of a sprite; samples outside the dot are discarded (0).

    Opaque up to ``inner``, fading to nothing at the rim (0.5).
    """

    distance = np.asarray(distance, dtype=np.float64)
    return np.where(sprite_mask(distance), smoothstep(0.5, inner, distance), 0.0)


def _apply(matrix: np.ndarray, points: np.ndarray) -> np.ndarray:
    homogeneous = np.concatenate([points, np.ones((points.shape[0], 1))], axis=1)
    return homogeneous @ matrix.T


# ---------------------------------------------------------------------------
# Pipeline


class ShadingPipeline:
    def __init__(
        self,
        appearance: AppearanceSettings,
        pointer: PointerSettings,
        *,
        converge_strength: Optional[float] = None,
        near: float = 1.0,
        far: float = 1000.0,
    ) -> None:
        self.appearance = appearance
        self.pointer = pointer
        self.converge_strength = converge_strength
        self.near = near
        self.far = far

    def shade(
        self,
        field: ParticleField,
        progress: np.ndarray,
        elevation: np.ndarray,
        noise: np.ndarray,
        sphere_positions: np.ndarray,
        *,
        model: np.ndarray,
        view: np.ndarray,
        projection: np.ndarray,
        viewport: Viewport,
        pointer_ndc: Tuple[float, float] = (0.0, 0.0),
        smoothed: float = 0.0,
        wave_offset: Optional[np.ndarray] = None,
    ) -> FrameBatch:
        """Shade one frame.

        ``elevation`` is the undamped wave height used for colour; the plane is
        lifted by ``wave_offset`` when given (the damped height) and by
        ``elevation`` otherwise.
        """

        app = self.appearance
        offset = elevation if wave_offset is None else wave_offset
        wave = np.array(field.wave_positions, dtype=np.float64)
        wave[:, 2] += offset
        positions = blend_positions(wave, sphere_positions, progress, self.converge_strength)
        rim = rim_light(positions, app.rim_power) if app.rim_strength else None

        model_view = view @ model
        eye = _apply(model_view, positions)
        clip = eye @ projection.T

        if self.pointer.repulsion and self.pointer.magnitude:
            w = np.where(np.abs(clip[:, 3]) < 1e-9, 1e-9, clip[:, 3])
            ndc = clip[:, :2] / w[:, None]
            weights = np.where(clip[:, 3] > 0.0, repulsion_weights(ndc, pointer_ndc, self.pointer.radius), 0.0)
            direction = _lerp(_WAVE_AXIS, field.sphere_normals, progress[:, None])
            length = np.linalg.norm(direction, axis=1, keepdims=True)
            direction = np.where(length > 1e-9, direction / np.maximum(length, 1e-9), field.sphere_normals)
            positions = positions + direction * (weights * self.pointer.magnitude)[:, None]
            eye = _apply(model_view, positions)
            clip = eye @ projection.T

        depth = -eye[:, 2]
        w = clip[:, 3]
        visible = (w > 0.0) & (depth >= self.near) & (depth <= self.far)
        safe_w = np.where(visible, w, 1.0)
        ndc = clip[:, :2] / safe_w[:, None]
        visible &= (np.abs(ndc[:, 0]) <= 1.5) & (np.abs(ndc[:, 1]) <= 1.5)

        screen = np.empty((positions.shape[0], 2))
        screen[:, 0] = (ndc[:, 0] * 0.5 + 0.5) * viewport.width
        screen[:, 1] = (0.5 - ndc[:, 1] * 0.5) * viewport.height

        safe_depth = np.maximum(depth, self.near)
        color_elevation = _lerp(elevation, noise * app.noise_color_gain, progress)
        size_elevation = color_elevation if app.size_elevation == "absolute" else offset
        sizes = point_sizes(size_elevation, safe_depth, progress, app) / viewport.pixel_ratio

        if app.sphere_color == "gradient":
            colors = wave_color(color_elevation, app, rim)
        else:
            colors = _lerp(
                wave_color(color_elevation, app, rim),
                sphere_color(noise, app),
                progress[:, None],
            )
        alpha = fog_alpha(safe_depth, app)

        return FrameBatch(
            positions=positions,
            screen=screen,
            sizes=sizes,
            colors=np.clip(colors, 0.0, 1.0),
            alpha=alpha,
            depth=depth,
            visible=visible,
            progress=progress,
            smoothed=smoothed,
        )
