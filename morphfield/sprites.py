"""Soft round sprites splatted into a numpy frame buffer.

Painting tens of thousands of sprites one ``drawPixmap`` call at a time is far
too slow for a per-frame redraw, so the visible particles are rasterised here
in bulk: every sprite's pixel footprint is expanded into flat index/weight
columns (one block per integer footprint radius) and summed into the buffer
with :func:`numpy.bincount`.  The host then shows the buffer with one image
draw.
"""

from __future__ import annotations

import numpy as np

from .shading import sprite_alpha

__all__ = ["splat_sprites", "to_premultiplied_rgba"]


def splat_sprites(
    screen: np.ndarray,
    sizes: np.ndarray,
    colors: np.ndarray,
    alpha: np.ndarray,
    width: int,
    height: int,
    *,
    inner: float = 0.3,
    max_size: float = 64.0,
) -> np.ndarray:
    """Additively accumulate sprites into a ``(height, width, 3)`` float buffer.

    ``screen`` holds sprite centres in pixels (origin top-left) and ``sizes``
    their diameters.  Each covered pixel receives ``color * alpha *
    sprite_alpha(distance / size)``.  Sprites under one pixel are drawn one
    pixel wide with their weight scaled by the area they lost; sprites wider
    than ``max_size`` are clamped.
    """

    width = max(int(width), 0)
    height = max(int(height), 0)
    accum = np.zeros((height * width, 3), dtype=np.float64)
    if width == 0 or height == 0:
        return accum.reshape(height, width, 3)

    screen = np.asarray(screen, dtype=np.float64).reshape(-1, 2)
    sizes = np.asarray(sizes, dtype=np.float64).reshape(-1)
    colors = np.asarray(colors, dtype=np.float64).reshape(-1, 3)
    alpha = np.asarray(alpha, dtype=np.float64).reshape(-1)

    drawn = np.clip(sizes, 1.0, max_size)
    energy = alpha * np.minimum(sizes, 1.0) ** 2
    sx = screen[:, 0]
    sy = screen[:, 1]
    radius = drawn * 0.5
    keep = (
        (sizes > 0.0)
        & (energy > 0.0)
        & (sx + radius >= 0.0)
        & (sx - radius <= width)
        & (sy + radius >= 0.0)
        & (sy - radius <= height)
    )
    if not keep.any():
        return accum.reshape(height, width, 3)

    cx = np.floor(sx).astype(np.int64)
    cy = np.floor(sy).astype(np.int64)
    reach = np.ceil(radius + 0.5).astype(np.int64)

    pixels = []
    weights = []
    sources = []
    for k in np.unique(reach[keep]):
        sel = np.flatnonzero(keep & (reach == k))
        offsets = np.arange(-k, k + 1)
        oy, ox = np.meshgrid(offsets, offsets, indexing="ij")
        px = cx[sel, None] + ox.ravel()[None, :]
        py = cy[sel, None] + oy.ravel()[None, :]
        distance = np.hypot(px + 0.5 - sx[sel, None], py + 0.5 - sy[sel, None]) / drawn[sel, None]
        weight = sprite_alpha(distance, inner) * energy[sel, None]
        inside = (weight > 0.0) & (px >= 0) & (px < width) & (py >= 0) & (py < height)
        rows, _ = np.nonzero(inside)
        pixels.append(py[inside] * width + px[inside])
        weights.append(weight[inside])
        sources.append(sel[rows])

    pixel = np.concatenate(pixels)
    weight = np.concatenate(weights)
    source = np.concatenate(sources)
    for channel in range(3):
        accum[:, channel] = np.bincount(
            pixel, weights=weight * colors[source, channel], minlength=width * height
        )
    return accum.reshape(height, width, 3)


def to_premultiplied_rgba(accum: np.ndarray) -> np.ndarray:
    """Clamp a float RGB buffer into premultiplied RGBA8888 bytes.

    Alpha is the brightest channel, so additive compositing of the result
    reproduces ``destination + rgb``.
    """

    rgb = np.clip(np.asarray(accum, dtype=np.float64), 0.0, 1.0)
    rgba = np.empty(rgb.shape[:2] + (4,), dtype=np.uint8)
    rgba[..., :3] = np.rint(rgb * 255.0)
    rgba[..., 3] = rgba[..., :3].max(axis=-1)
    return rgba
