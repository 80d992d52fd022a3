"""The morphing particle engine.

:class:`MorphEngine` is the single owner of an effect instance's state: the
immutable particle field, the morph/pointer smoothing state, the camera and
the shading configuration.  The host creates one engine, feeds it through
``engine.inputs`` and calls :meth:`MorphEngine.step` once per display tick.
"""

from __future__ import annotations

import sys
import time
from typing import Optional

from .camera import CameraController
from .config import EffectConfig, load_config
from .displacement import DisplacementField
from .geometry import ParticleField, build_particle_field
from .inputs import InputSampler
from .morph_state import MorphStateController
from .shading import FrameBatch, ShadingPipeline

__all__ = ["MorphEngine", "EngineReleasedError"]


class EngineReleasedError(RuntimeError):
    """Raised when a released engine is asked to render."""


class MorphEngine:
    """Wave <-> sphere particle field driven by scroll, time and pointer."""

    def __init__(self, config: Optional[EffectConfig] = None, *, seed: Optional[int] = None) -> None:
        self.config = config if config is not None else load_config()
        cfg = self.config
        geo = cfg.geometry
        self.field: Optional[ParticleField] = build_particle_field(
            geo.segments_x,
            geo.segments_y,
            geo.width,
            geo.height,
            geo.sphere_radius,
            delay_window=cfg.transition.delay_window,
            seed=seed,
        )
        self.controller = MorphStateController(
            smoothing=cfg.transition.smoothing,
            pointer_smoothing=cfg.pointer.smoothing,
            scale_factor=cfg.transition.scale_factor,
            time_scale=cfg.wave.time_scale,
            stagger=cfg.transition.stagger,
        )
        self.displacement = DisplacementField(cfg.wave.harmonics, cfg.sphere, damping=cfg.wave.damping)
        self.shading = ShadingPipeline(
            cfg.appearance,
            cfg.pointer,
            converge_strength=cfg.transition.converge_strength if cfg.transition.converge else None,
            near=cfg.camera.near,
            far=cfg.camera.far,
        )
        self.camera = CameraController(cfg.camera)
        self.inputs = InputSampler(cfg.inputs, self.controller)
        self._start_time = time.perf_counter()
        self._released = False
        self._last_visible_count = -1
        self.last_batch: Optional[FrameBatch] = None
        self._debug(
            "engine ready: %d particles (%dx%d segments), sphere R=%.2f"
            % (self.field.count, geo.segments_x, geo.segments_y, geo.sphere_radius)
        )

    # ------------------------------------------------------------------ helpers
    @property
    def now(self) -> float:
        return time.perf_counter() - self._start_time

    @property
    def released(self) -> bool:
        return self._released

    @property
    def state(self):
        return self.controller.state

    def _debug(self, message: str) -> None:
        print(f"[Morphfield][DEBUG] {message}", flush=True)

    def resize(self, width: int, height: int, device_pixel_ratio: float = 1.0) -> float:
        """Record the new viewport and return the projection aspect ratio."""

        viewport = self.inputs.resize(width, height, device_pixel_ratio)
        return self.camera.resize(viewport.width, viewport.height)

    def reset(self) -> None:
        """Restart the clock and the smoothing state, keeping the particle field."""

        self.controller.reset()
        self._start_time = time.perf_counter()
        self._last_visible_count = -1

    # ------------------------------------------------------------------ frame
    def step(self, clock: Optional[float] = None) -> FrameBatch:
        """Advance one tick and compute every particle's drawable attributes."""

        if self._released or self.field is None:
            raise EngineReleasedError("engine resources have been released")
        field = self.field
        state = self.controller.tick(self.now if clock is None else clock)
        smoothed = state.smoothed
        elapsed = state.elapsed_time

        progress = self.controller.local_progress(field.transition_delays)
        # Each topology is only evaluated for the particles that still show it.
        elevation = self.displacement.wave(field, elapsed, progress < 1.0)
        noise, sphere_positions = self.displacement.sphere(field, elapsed, progress > 0.0)

        camera_pose = self.camera.pose(smoothed, state.clock)
        batch = self.shading.shade(
            field,
            progress,
            elevation,
            noise,
            sphere_positions,
            model=self.camera.model_matrix(smoothed, state.clock),
            view=self.camera.view_matrix(camera_pose),
            projection=self.camera.projection_matrix(),
            viewport=self.inputs.viewport,
            pointer_ndc=state.pointer_ndc,
            smoothed=smoothed,
            wave_offset=self.displacement.wave_offset(elevation, progress),
        )
        visible = batch.visible_count
        if visible != self._last_visible_count:
            if visible == 0:
                print(
                    f"[Morphfield][WARN] frame {state.frame}: no particle in view "
                    f"(viewport {self.inputs.viewport.width}x{self.inputs.viewport.height})",
                    file=sys.stderr,
                )
            else:
                self._debug("frame %d: %d/%d particles visible, morph=%.3f" % (state.frame, visible, batch.count, smoothed))
            self._last_visible_count = visible
        self.last_batch = batch
        return batch

    # ------------------------------------------------------------------ teardown
    def release(self) -> bool:
        """Drop the particle buffers; returns ``False`` if already released."""

        if self._released:
            return False
        self._released = True
        self.field = None
        self.last_batch = None
        self._debug("engine released")
        return True
