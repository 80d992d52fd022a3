from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

__all__ = ["MorphState", "MorphStateController", "smoothstep", "ease"]


def smoothstep(edge0, edge1, x):
    """GLSL ``smoothstep``; ``edge0 > edge1`` gives the falling ramp."""

    x = np.asarray(x, dtype=np.float64)
    if edge0 == edge1:
        return np.where(x < edge0, 0.0, 1.0)
    t = np.clip((x - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def ease(t):
    """Cubic ``t^2 (3 - 2t)`` on an already clamped value."""

    t = np.asarray(t, dtype=np.float64)
    return t * t * (3.0 - 2.0 * t)


def _clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


@dataclass
class MorphState:
    """Per-instance input state.

    Input handlers only ever write the ``raw_*`` fields and the viewport; the
    frame tick is the sole writer of ``smoothed``, ``pointer_ndc`` and the
    clocks.
    """

    raw_target: float = 0.0
    smoothed: float = 0.0
    clock: float = 0.0
    elapsed_time: float = 0.0
    pointer_raw: Tuple[float, float] = (0.0, 0.0)
    pointer_ndc: Tuple[float, float] = (0.0, 0.0)
    frame: int = 0


class MorphStateController:
    """Low-pass filters the scroll and pointer inputs and staggers the morph.

    ``smoothing`` is the fraction of the remaining distance covered per frame
    at :attr:`reference_rate`; ticks arriving faster or slower cover the same
    distance per second, so a slow host does not slow the morph down.
    """

    reference_rate = 60.0
    # Longest gap (seconds) one tick may integrate, e.g. after the window was hidden.
    max_step = 0.25

    def __init__(
        self,
        smoothing: float = 0.05,
        pointer_smoothing: float = 0.1,
        scale_factor: float = 1.4,
        time_scale: float = 1.0,
        stagger: bool = True,
    ) -> None:
        for name, value in (("smoothing", smoothing), ("pointer_smoothing", pointer_smoothing)):
            if not 0.0 < value <= 1.0:
                raise ValueError(f"{name} must lie in (0, 1], got {value!r}")
        if scale_factor <= 0.0:
            raise ValueError(f"scale_factor must be > 0, got {scale_factor!r}")
        self.smoothing = float(smoothing)
        self.pointer_smoothing = float(pointer_smoothing)
        self.scale_factor = float(scale_factor)
        self.time_scale = float(time_scale)
        self.stagger = bool(stagger)
        self.state = MorphState()

    # ------------------------------------------------------------------ raw writers
    def set_target(self, progress: float) -> None:
        self.state.raw_target = _clamp(float(progress), 0.0, 1.0)

    def set_pointer(self, x: float, y: float) -> None:
        self.state.pointer_raw = (_clamp(float(x), -1.0, 1.0), _clamp(float(y), -1.0, 1.0))

    # ------------------------------------------------------------------ frame tick
    def tick(self, clock: float) -> MorphState:
        """Advance the smoothed values to wall-clock ``clock`` seconds."""

        state = self.state
        clock = float(clock)
        if state.frame == 0:
            dt = 1.0 / self.reference_rate
        else:
            dt = _clamp(clock - state.clock, 0.0, self.max_step)
        frames = dt * self.reference_rate
        target = state.raw_target
        step = state.smoothed + (target - state.smoothed) * self._factor(self.smoothing, frames)
        # Rounding must never carry the filter past its target.
        state.smoothed = min(step, target) if target >= state.smoothed else max(step, target)
        px, py = state.pointer_ndc
        rx, ry = state.pointer_raw
        k = self._factor(self.pointer_smoothing, frames)
        state.pointer_ndc = (px + (rx - px) * k, py + (ry - py) * k)
        state.clock = max(state.clock, clock)
        state.elapsed_time = state.clock * self.time_scale
        state.frame += 1
        return state

    @staticmethod
    def _factor(smoothing: float, frames: float) -> float:
        if frames <= 0.0:
            return 0.0
        return 1.0 - (1.0 - smoothing) ** frames

    def reset(self) -> None:
        self.state = MorphState()

    # ------------------------------------------------------------------ progress
    def local_progress(self, delays: np.ndarray, smoothed: float | None = None) -> np.ndarray:
        """Per-particle eased morph progress for the current (or given) global value."""

        value = self.state.smoothed if smoothed is None else float(smoothed)
        delays = np.asarray(delays, dtype=np.float64)
        if self.stagger:
            adjusted = value * self.scale_factor - delays
        else:
            adjusted = np.full(delays.shape, value)
        return ease(np.clip(adjusted, 0.0, 1.0))

    def full_transition_threshold(self, delay_window: float) -> float:
        """Smallest global progress at which every particle has fully morphed."""

        if not self.stagger:
            return 1.0
        return (1.0 + delay_window) / self.scale_factor
