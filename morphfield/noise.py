"""Vectorised 3D noise fields.

Both functions take an ``(N, 3)`` array (or a single ``(3,)`` point) and
return one value per point, roughly in ``[-1, 1]``.  They are pure: the same
coordinates always give the same values.
"""

from __future__ import annotations

from typing import Callable, Dict

import numpy as np

__all__ = ["simplex3", "value_noise3", "NOISE_FUNCTIONS", "get_noise"]

NoiseFunction = Callable[[np.ndarray], np.ndarray]

_F3 = 1.0 / 3.0
_G3 = 1.0 / 6.0


def _mod289(x: np.ndarray) -> np.ndarray:
    return x - np.floor(x * (1.0 / 289.0)) * 289.0


def _permute(x: np.ndarray) -> np.ndarray:
    return _mod289(((x * 34.0) + 1.0) * x)


def _taylor_inv_sqrt(r: np.ndarray) -> np.ndarray:
    return 1.79284291400159 - 0.85373472095314 * r


def _as_points(points) -> tuple[np.ndarray, bool]:
    v = np.asarray(points, dtype=np.float64)
    single = v.ndim == 1
    v = np.atleast_2d(v)
    if v.shape[-1] != 3:
        raise ValueError(f"noise expects points of shape (N, 3), got {v.shape}")
    return v, single


def simplex3(points) -> np.ndarray:
    """3D simplex noise using the permutation-polynomial formulation.

    This hashes lattice corners arithmetically (``mod 289`` permutation
    polynomial) rather than through a lookup table, so it needs no state.
    """

    v, single = _as_points(points)
    count = v.shape[0]

    # Skew into simplex space and find the containing cell.
    i = np.floor(v + v.sum(axis=1, keepdims=True) * _F3)
    x0 = v - i + i.sum(axis=1, keepdims=True) * _G3

    # Rank the components to pick the simplex corners.
    g = (x0 >= x0[:, [1, 2, 0]]).astype(np.float64)
    l = 1.0 - g
    l_zxy = l[:, [2, 0, 1]]
    i1 = np.minimum(g, l_zxy)
    i2 = np.maximum(g, l_zxy)

    x1 = x0 - i1 + _G3
    x2 = x0 - i2 + 2.0 * _G3
    x3 = x0 - 0.5

    i = _mod289(i)
    zeros = np.zeros(count)
    ones = np.ones(count)

    def _corners(axis: int) -> np.ndarray:
        return np.stack([zeros, i1[:, axis], i2[:, axis], ones], axis=1)

    p = _permute(i[:, 2:3] + _corners(2))
    p = _permute(p + i[:, 1:2] + _corners(1))
    p = _permute(p + i[:, 0:1] + _corners(0))

    # Gradients from a 7x7 grid mapped onto an octahedron.
    ns_x, ns_y, ns_z = 2.0 / 7.0, 0.5 / 7.0 - 1.0, 1.0 / 7.0
    j = p - 49.0 * np.floor(p * ns_z * ns_z)
    x_ = np.floor(j * ns_z)
    y_ = np.floor(j - 7.0 * x_)
    gx = x_ * ns_x + ns_y
    gy = y_ * ns_x + ns_y
    h = 1.0 - np.abs(gx) - np.abs(gy)

    b0 = np.stack([gx[:, 0], gx[:, 1], gy[:, 0], gy[:, 1]], axis=1)
    b1 = np.stack([gx[:, 2], gx[:, 3], gy[:, 2], gy[:, 3]], axis=1)
    s0 = np.floor(b0) * 2.0 + 1.0
    s1 = np.floor(b1) * 2.0 + 1.0
    sh = -(h <= 0.0).astype(np.float64)

    order = [0, 2, 1, 3]
    a0 = b0[:, order] + s0[:, order] * sh[:, [0, 0, 1, 1]]
    a1 = b1[:, order] + s1[:, order] * sh[:, [2, 2, 3, 3]]

    g0 = np.stack([a0[:, 0], a0[:, 1], h[:, 0]], axis=1)
    g1 = np.stack([a0[:, 2], a0[:, 3], h[:, 1]], axis=1)
    g2 = np.stack([a1[:, 0], a1[:, 1], h[:, 2]], axis=1)
    g3 = np.stack([a1[:, 2], a1[:, 3], h[:, 3]], axis=1)
    grads = np.stack([g0, g1, g2, g3], axis=1)
    grads *= _taylor_inv_sqrt(np.einsum("nkc,nkc->nk", grads, grads))[:, :, None]

    offsets = np.stack([x0, x1, x2, x3], axis=1)
    m = np.maximum(0.6 - np.einsum("nkc,nkc->nk", offsets, offsets), 0.0)
    m = m * m
    result = 42.0 * np.einsum("nk,nk->n", m * m, np.einsum("nkc,nkc->nk", grads, offsets))
    return result[0] if single else result


def _lattice_hash(ix: np.ndarray, iy: np.ndarray, iz: np.ndarray) -> np.ndarray:
    # Integer arithmetic wraps in int64; only the low 31 bits are kept.
    n = ix * 15731 + iy * 789221 + iz * 1376312589
    n = (n << 13) ^ n
    bits = (n * (n * n * 15731 + 789221) + 1376312589) & 0x7FFFFFFF
    return 1.0 - bits / 1073741824.0


def value_noise3(points) -> np.ndarray:
    """Trilinear value noise over a hashed integer lattice, in ``[-1, 1]``."""

    v, single = _as_points(points)
    cell = np.floor(v)
    frac = v - cell
    cell = cell.astype(np.int64)
    smooth = frac * frac * (3.0 - 2.0 * frac)
    u, w, t = smooth[:, 0], smooth[:, 1], smooth[:, 2]
    xi, yi, zi = cell[:, 0], cell[:, 1], cell[:, 2]

    with np.errstate(over="ignore"):
        c000 = _lattice_hash(xi, yi, zi)
        c100 = _lattice_hash(xi + 1, yi, zi)
        c010 = _lattice_hash(xi, yi + 1, zi)
        c110 = _lattice_hash(xi + 1, yi + 1, zi)
        c001 = _lattice_hash(xi, yi, zi + 1)
        c101 = _lattice_hash(xi + 1, yi, zi + 1)
        c011 = _lattice_hash(xi, yi + 1, zi + 1)
        c111 = _lattice_hash(xi + 1, yi + 1, zi + 1)

    x00 = c000 + (c100 - c000) * u
    x10 = c010 + (c110 - c010) * u
    x01 = c001 + (c101 - c001) * u
    x11 = c011 + (c111 - c011) * u
    y0 = x00 + (x10 - x00) * w
    y1 = x01 + (x11 - x01) * w
    result = y0 + (y1 - y0) * t
    return result[0] if single else result


NOISE_FUNCTIONS: Dict[str, NoiseFunction] = {
    "simplex": simplex3,
    "value": value_noise3,
}


def get_noise(name: str) -> NoiseFunction:
    try:
        return NOISE_FUNCTIONS[name]
    except KeyError:
        raise ValueError(f"Unknown noise function {name!r}; expected one of {sorted(NOISE_FUNCTIONS)}") from None
