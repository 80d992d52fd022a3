from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

__all__ = ["ParticleField", "build_particle_field", "grid_indices"]


@dataclass(frozen=True)
class ParticleField:
    """Per-particle attributes shared by both topologies.

    Every array holds one row per grid vertex and is flagged read-only: only
    the per-frame state derived from these attributes ever changes.
    """

    wave_positions: np.ndarray
    sphere_positions: np.ndarray
    sphere_normals: np.ndarray
    random_seeds: np.ndarray
    transition_delays: np.ndarray
    segments: Tuple[int, int]
    sphere_radius: float
    delay_window: float

    @property
    def count(self) -> int:
        return int(self.wave_positions.shape[0])

    def __len__(self) -> int:
        return self.count


def _require_count(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got {value!r}")
    return int(value)


def _require_positive(name: str, value: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(number) or number <= 0.0:
        raise ValueError(f"{name} must be a finite number > 0, got {value!r}")
    return number


def grid_indices(segments_x: int, segments_y: int) -> Tuple[np.ndarray, np.ndarray]:
    """Return the ``(ix, iy)`` column/row of every vertex, row-major."""

    index = np.arange((segments_x + 1) * (segments_y + 1))
    return index % (segments_x + 1), index // (segments_x + 1)


def _freeze(array: np.ndarray) -> np.ndarray:
    array.flags.writeable = False
    return array


def build_particle_field(
    segments_x: int,
    segments_y: int,
    plane_width: float,
    plane_height: float,
    sphere_radius: float,
    delay_window: float = 0.4,
    seed: Optional[int] = None,
) -> ParticleField:
    """Compute the wave grid, its spherical mapping and the per-particle extras.

    Vertex ``i`` sits at column ``i mod (segments_x + 1)`` and row
    ``i div (segments_x + 1)``.  The same ``(u, v)`` pair places it on the flat
    grid and, through ``phi = v*pi`` / ``theta = u*2pi``, on the sphere, so the
    two shapes are in one-to-one correspondence.

    ``seed`` only drives the random per-particle values; ``None`` draws fresh
    entropy every time.
    """

    segments_x = _require_count("segments_x", segments_x)
    segments_y = _require_count("segments_y", segments_y)
    plane_width = _require_positive("plane_width", plane_width)
    plane_height = _require_positive("plane_height", plane_height)
    sphere_radius = _require_positive("sphere_radius", sphere_radius)
    delay_window = float(delay_window)
    if not math.isfinite(delay_window) or delay_window < 0.0:
        raise ValueError(f"delay_window must be a finite number >= 0, got {delay_window!r}")

    ix, iy = grid_indices(segments_x, segments_y)
    u = ix / segments_x
    v = iy / segments_y

    wave = np.zeros((ix.size, 3), dtype=np.float64)
    wave[:, 0] = u * plane_width - plane_width / 2.0
    wave[:, 1] = plane_height / 2.0 - v * plane_height

    phi = v * math.pi
    theta = u * 2.0 * math.pi
    sin_phi = np.sin(phi)
    sphere = np.empty_like(wave)
    sphere[:, 0] = sphere_radius * sin_phi * np.cos(theta)
    sphere[:, 1] = sphere_radius * np.cos(phi)
    sphere[:, 2] = sphere_radius * sin_phi * np.sin(theta)

    normals = sphere / np.linalg.norm(sphere, axis=1, keepdims=True)

    rng = np.random.default_rng(seed)
    randoms = rng.random(ix.size)

    # Centre particles morph first, the far corners lag by ``delay_window``.
    center_x = segments_x / 2.0
    center_y = segments_y / 2.0
    max_dist = math.hypot(center_x, center_y)
    dist = np.hypot(ix - center_x, iy - center_y)
    delays = np.clip(dist / max_dist, 0.0, 1.0) * delay_window

    return ParticleField(
        wave_positions=_freeze(wave),
        sphere_positions=_freeze(sphere),
        sphere_normals=_freeze(normals),
        random_seeds=_freeze(randoms),
        transition_delays=_freeze(delays),
        segments=(segments_x, segments_y),
        sphere_radius=sphere_radius,
        delay_window=delay_window,
    )
