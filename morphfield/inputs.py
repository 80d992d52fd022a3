from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

from .config import InputSettings

__all__ = ["Viewport", "InputSink", "InputSampler", "scroll_progress", "pointer_to_ndc"]


@dataclass(frozen=True)
class Viewport:
    width: int = 1
    height: int = 1
    pixel_ratio: float = 1.0

    @property
    def aspect(self) -> float:
        return float(max(self.width, 1)) / float(max(self.height, 1))


class InputSink(Protocol):
    """The raw-field writers exposed by the morph state controller."""

    def set_target(self, progress: float) -> None: ...

    def set_pointer(self, x: float, y: float) -> None: ...


def scroll_progress(offset: float, denominator: float) -> float:
    """``offset / denominator`` clamped to ``[0, 1]``; a non-positive range counts as 1."""

    if denominator <= 0:
        denominator = 1.0
    return max(0.0, min(1.0, float(offset) / float(denominator)))


def pointer_to_ndc(x: float, y: float, width: float, height: float) -> Tuple[float, float]:
    """Pixel position (origin top-left) to clamped normalized device coordinates."""

    width = width if width > 0 else 1.0
    height = height if height > 0 else 1.0
    nx = (float(x) / width) * 2.0 - 1.0
    ny = 1.0 - (float(y) / height) * 2.0
    return max(-1.0, min(1.0, nx)), max(-1.0, min(1.0, ny))


class InputSampler:
    """Turns host signals into the normalized scalars the engine consumes.

    The sampler is the only path from the host into the engine: scroll and
    pointer values are normalized here and forwarded to the sink's raw
    setters, the viewport is kept here for the renderer to read.
    """

    def __init__(self, settings: InputSettings, sink: InputSink) -> None:
        self.settings = settings
        self._sink = sink
        self.viewport = Viewport()

    def resize(self, width: int, height: int, device_pixel_ratio: float = 1.0) -> Viewport:
        ratio = float(device_pixel_ratio) if device_pixel_ratio and device_pixel_ratio > 0 else 1.0
        self.viewport = Viewport(
            width=max(int(width), 0),
            height=max(int(height), 0),
            pixel_ratio=min(ratio, self.settings.dpr_clamp),
        )
        return self.viewport

    def scroll_denominator(
        self, scrollable_height: Optional[float] = None, viewport_height: Optional[float] = None
    ) -> float:
        if self.settings.scroll_mode == "document":
            return float(scrollable_height or 0.0)
        if viewport_height is None:
            viewport_height = self.viewport.height
        return float(viewport_height) * self.settings.window_multiplier

    def scroll(
        self,
        offset: float,
        *,
        scrollable_height: Optional[float] = None,
        viewport_height: Optional[float] = None,
    ) -> float:
        progress = scroll_progress(offset, self.scroll_denominator(scrollable_height, viewport_height))
        self._sink.set_target(progress)
        return progress

    def set_progress(self, progress: float) -> float:
        """Feed an already-normalized scroll progress."""

        progress = max(0.0, min(1.0, float(progress)))
        self._sink.set_target(progress)
        return progress

    def pointer(self, x: float, y: float) -> Tuple[float, float]:
        ndc = pointer_to_ndc(x, y, self.viewport.width, self.viewport.height)
        self._sink.set_pointer(*ndc)
        return ndc
