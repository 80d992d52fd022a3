"""Per-particle displacement of both topologies.

The functions here are pure: they take the immutable particle attributes and
the shared per-frame scalars and return fresh arrays.  :class:`DisplacementField`
only binds them to a configuration so the engine can swap strategies (noise
or ripple sphere, simplex or value noise) without touching the frame code.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from .config import HarmonicTerm, SphereSettings
from .geometry import ParticleField
from .noise import NoiseFunction, get_noise

__all__ = [
    "wave_elevation",
    "sphere_noise",
    "sphere_ripple",
    "displace_along_normals",
    "DisplacementField",
]

_TRIG = {"sin": np.sin, "cos": np.cos}


def wave_elevation(positions: np.ndarray, elapsed: float, terms: Sequence[HarmonicTerm]) -> np.ndarray:
    """Sum of harmonic layers evaluated on the grid's ``x``/``y`` coordinates."""

    positions = np.asarray(positions, dtype=np.float64)
    x = positions[..., 0]
    y = positions[..., 1]
    elevation = np.zeros(x.shape, dtype=np.float64)
    for term in terms:
        arg = term.freq_x * x + term.freq_y * y + term.time_speed * elapsed + term.phase
        elevation += term.amplitude * _TRIG[term.trig](arg)
    return elevation


def sphere_noise(
    positions: np.ndarray,
    elapsed: float,
    scale: float,
    time_speed: float,
    noise: NoiseFunction,
) -> np.ndarray:
    """Sample ``noise`` at ``position * scale + elapsed * time_speed``."""

    samples = np.asarray(positions, dtype=np.float64) * scale + elapsed * time_speed
    return noise(samples)


def sphere_ripple(normals: np.ndarray, elapsed: float) -> np.ndarray:
    """Travelling sinusoidal bands over the sphere's outward directions."""

    normals = np.asarray(normals, dtype=np.float64)
    return (
        np.sin(normals[:, 0] * 5.0 + elapsed * 1.5) * 0.8
        + np.sin(normals[:, 1] * 5.0 - elapsed * 1.2) * 0.6
        + np.cos(normals[:, 2] * 5.0 + elapsed * 1.0) * 0.5
    )


def displace_along_normals(
    positions: np.ndarray, normals: np.ndarray, amount: np.ndarray, magnitude: float
) -> np.ndarray:
    return positions + normals * (np.asarray(amount)[..., None] * magnitude)


SphereStrategy = Callable[[ParticleField, float, np.ndarray], np.ndarray]


def _rows(count: int, mask: Optional[np.ndarray]) -> np.ndarray:
    if mask is None:
        return np.arange(count)
    return np.flatnonzero(np.asarray(mask, dtype=bool))


class DisplacementField:
    """Wave elevation plus one of the sphere displacement strategies.

    ``wave`` and ``sphere`` accept an optional boolean ``mask``; rows outside it
    are left at zero, which is how the engine skips the topology a particle has
    fully left.
    """

    def __init__(self, harmonics: Sequence[HarmonicTerm], sphere: SphereSettings, *, damping: bool = False) -> None:
        if not harmonics:
            raise ValueError("at least one harmonic term is required")
        self.harmonics: Tuple[HarmonicTerm, ...] = tuple(harmonics)
        self.settings = sphere
        self.damping = damping
        self.noise = get_noise(sphere.noise)
        self._strategies: Dict[str, SphereStrategy] = {
            "noise": self._noise_offsets,
            "ripple": self._ripple_offsets,
        }
        if sphere.mode not in self._strategies:
            raise ValueError(f"Unknown sphere mode {sphere.mode!r}")

    def _noise_offsets(self, field: ParticleField, elapsed: float, rows: np.ndarray) -> np.ndarray:
        s = self.settings
        return sphere_noise(field.sphere_positions[rows], elapsed, s.noise_scale, s.noise_time_speed, self.noise)

    def _ripple_offsets(self, field: ParticleField, elapsed: float, rows: np.ndarray) -> np.ndarray:
        return sphere_ripple(field.sphere_normals[rows], elapsed)

    def wave(self, field: ParticleField, elapsed: float, mask: Optional[np.ndarray] = None) -> np.ndarray:
        """Elevation of every particle on the wave topology."""

        if mask is None:
            return wave_elevation(field.wave_positions, elapsed, self.harmonics)
        elevation = np.zeros(field.count, dtype=np.float64)
        rows = _rows(field.count, mask)
        if rows.size:
            elevation[rows] = wave_elevation(field.wave_positions[rows], elapsed, self.harmonics)
        return elevation

    def wave_offset(self, elevation: np.ndarray, progress: np.ndarray) -> np.ndarray:
        """Height actually added to the plane; fades out with progress when damped."""

        if not self.damping:
            return elevation
        return elevation * (1.0 - np.asarray(progress, dtype=np.float64))

    def sphere(
        self, field: ParticleField, elapsed: float, mask: Optional[np.ndarray] = None
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Return ``(noise_value, displaced_positions)`` for the sphere topology."""

        values = np.zeros(field.count, dtype=np.float64)
        rows = _rows(field.count, mask)
        if rows.size:
            values[rows] = self._strategies[self.settings.mode](field, elapsed, rows)
        displaced = displace_along_normals(
            field.sphere_positions, field.sphere_normals, values, self.settings.magnitude
        )
        return values, displaced
