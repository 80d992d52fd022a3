"""Qt host for the morphing particle engine.

The widget is deliberately thin: Qt events are normalised through the
engine's :class:`~morphfield.inputs.InputSampler`, a ``QTimer`` drives the
:class:`~morphfield.frame_loop.FrameLoop`, and ``paintEvent`` splats the last
:class:`~morphfield.shading.FrameBatch` into one image (see
:mod:`morphfield.sprites`) drawn over the background in a single call.

:func:`MorphfieldViewWidget` returns either an OpenGL-backed widget or the
plain raster one, with the same public API.
"""

from __future__ import annotations

import math
import os
import sys
from typing import Optional, Tuple

import numpy as np
from PyQt5 import QtCore, QtGui, QtWidgets

from ..config import EffectConfig, fit_particle_budget, load_config
from ..engine import MorphEngine
from ..frame_loop import FrameLoop
from ..shading import FrameBatch
from ..sprites import splat_sprites, to_premultiplied_rgba

__all__ = ["MorphfieldViewWidget", "SurfaceUnavailableError"]

class SurfaceUnavailableError(RuntimeError):
    """No rendering surface could be created for the effect."""


def _map_blend_mode(name: str | None) -> QtGui.QPainter.CompositionMode:
    mode = (name or "").lower()
    mapping = {
        "normal": QtGui.QPainter.CompositionMode_SourceOver,
        "source-over": QtGui.QPainter.CompositionMode_SourceOver,
        "screen": QtGui.QPainter.CompositionMode_Screen,
        "lighten": QtGui.QPainter.CompositionMode_Lighten,
        "add": QtGui.QPainter.CompositionMode_Plus,
        "additive": QtGui.QPainter.CompositionMode_Plus,
        "plus": QtGui.QPainter.CompositionMode_Plus,
    }
    return mapping.get(mode, QtGui.QPainter.CompositionMode_SourceOver)


def _create_opengl_functions() -> Tuple[Optional[object], Optional[BaseException]]:
    """Return ``(functions, error)`` for the current GL context."""

    factory = getattr(QtGui, "QOpenGLFunctions", None)
    if factory is None:
        return None, AttributeError("PyQt5.QtGui has no attribute 'QOpenGLFunctions'")
    try:
        functions = factory()
    except Exception as exc:  # pragma: no cover - depends on bindings
        return None, exc
    try:
        functions.initializeOpenGLFunctions()
    except Exception as exc:  # pragma: no cover - depends on runtime GL state
        return None, exc
    return functions, None


class _ViewWidgetBase:
    """Common behaviour shared by both the OpenGL and raster backends."""

    def _init_view_widget(self, engine: MorphEngine) -> None:
        self.setAttribute(QtCore.Qt.WA_OpaquePaintEvent, False)
        self.setAutoFillBackground(False)
        self.setMouseTracking(True)
        self.setFocusPolicy(QtCore.Qt.WheelFocus)
        self._gl: Optional[object] = None
        self.engine = engine
        self._transparent = False
        self._batch: Optional[FrameBatch] = None
        self._frame_buffer: Optional[bytes] = None
        self._scroll_offset = 0.0
        self._blend_mode = _map_blend_mode(engine.config.appearance.blend_mode)
        self._background = (
            QtGui.QColor(engine.config.appearance.background),
            QtGui.QColor(engine.config.appearance.background_edge),
        )
        self.loop = FrameLoop(engine, self._store_batch)
        self._timer = QtCore.QTimer(self)
        self._frame_interval_ms = 0
        self._timer.timeout.connect(self._on_tick)
        self.loop.add_finalizer(self._timer.stop)
        self.loop.add_finalizer(self._drop_frame_buffer)
        self.set_transparent(engine.config.system.transparent)
        self._apply_frame_interval(engine.config.system.frame_interval_ms)

    def _apply_frame_interval(self, interval_ms: int) -> None:
        """Update the refresh interval used by the render timer."""

        interval_ms = max(int(interval_ms), 0)
        if not self.loop.running:
            return
        if interval_ms == self._frame_interval_ms and self._timer.isActive() == (interval_ms > 0):
            return
        self._frame_interval_ms = interval_ms
        if interval_ms <= 0:
            if self._timer.isActive():
                self._timer.stop()
            return
        if self._timer.isActive():
            self._timer.setInterval(interval_ms)
        else:
            self._timer.start(interval_ms)

    # ------------------------------------------------------------------ frame loop
    def _store_batch(self, batch: FrameBatch) -> None:
        self._batch = batch
        self.update()

    def _on_tick(self) -> None:
        self.loop.tick()

    def _drop_frame_buffer(self) -> None:
        self._frame_buffer = None

    @property
    def frame_timer(self) -> QtCore.QTimer:
        """The timer driving the frame loop; its ``timeout`` fires after each tick."""

        return self._timer

    def shutdown(self) -> None:
        """Stop the frame loop and release every engine and sprite resource."""

        self.loop.stop()
        self._batch = None

    # ------------------------------------------------------------------ input
    def _scrollable_height(self) -> float:
        pages = self.engine.config.system.page_count
        return float(max(pages - 1, 0) * max(self.height(), 0))

    def set_scroll_offset(self, offset: float) -> float:
        """Move the virtual page to ``offset`` pixels and return the progress fed."""

        self._scroll_offset = max(0.0, min(float(offset), self._scrollable_height()))
        return self.engine.inputs.scroll(
            self._scroll_offset,
            scrollable_height=self._scrollable_height(),
            viewport_height=self.height(),
        )

    def _sync_viewport(self) -> None:
        ratio = 1.0
        try:
            ratio = float(self.devicePixelRatioF())
        except AttributeError:  # pragma: no cover - very old bindings
            pass
        self.engine.resize(self.width(), self.height(), ratio)
        self.set_scroll_offset(self._scroll_offset)

    def _handle_wheel(self, event: QtGui.QWheelEvent) -> None:
        steps = event.angleDelta().y() / 120.0
        if steps == 0.0:
            event.ignore()
            return
        self.set_scroll_offset(self._scroll_offset - steps * self.engine.config.system.scroll_step_px)
        event.accept()

    def _handle_mouse_move(self, event: QtGui.QMouseEvent) -> None:
        pos = event.pos()
        self.engine.inputs.pointer(float(pos.x()), float(pos.y()))

    # ------------------------------------------------------------------ API
    def set_transparent(self, enabled: bool) -> None:  # pragma: no cover - simple setter
        self._transparent = bool(enabled)
        self.setAttribute(QtCore.Qt.WA_NoSystemBackground, enabled)
        self.setAttribute(QtCore.Qt.WA_TranslucentBackground, enabled)
        self._apply_clear_color()
        self.update()

    def reset_visual_state(self) -> None:
        """Restart the clock and the smoothing without rebuilding the particles."""

        if self.loop.running:
            self.engine.reset()
        self.update()

    def _apply_clear_color(self) -> None:
        if self._gl is None:
            return
        alpha = 0.0 if self._transparent else 1.0
        self._gl.glClearColor(0.0, 0.0, 0.0, alpha)

    # ------------------------------------------------------------------ Rendering helpers
    def _paint_background(self, painter: QtGui.QPainter) -> None:
        if self._transparent:
            painter.setCompositionMode(QtGui.QPainter.CompositionMode_Source)
            painter.fillRect(self.rect(), QtCore.Qt.transparent)
            return
        width = max(1, self.width())
        height = max(1, self.height())
        center = QtCore.QPointF(width / 2.0, height / 2.0)
        gradient = QtGui.QRadialGradient(center, math.hypot(width / 2.0, height / 2.0))
        gradient.setColorAt(0.0, self._background[0])
        gradient.setColorAt(1.0, self._background[1])
        painter.setCompositionMode(QtGui.QPainter.CompositionMode_Source)
        painter.fillRect(self.rect(), QtGui.QBrush(gradient))

    def _compose_sprites(self, batch: FrameBatch) -> Optional[QtGui.QImage]:
        width = max(0, self.width())
        height = max(0, self.height())
        index = np.flatnonzero(batch.visible & (batch.sizes > 0.0) & (batch.alpha > 0.0))
        if index.size == 0 or width == 0 or height == 0:
            return None
        accum = splat_sprites(
            batch.screen[index],
            batch.sizes[index],
            batch.colors[index],
            batch.alpha[index],
            width,
            height,
            inner=self.engine.config.appearance.sprite_inner,
        )
        # The image borrows these bytes; they must outlive the draw call.
        self._frame_buffer = to_premultiplied_rgba(accum).tobytes()
        return QtGui.QImage(self._frame_buffer, width, height, 4 * width, QtGui.QImage.Format_RGBA8888_Premultiplied)

    def _render_with_painter(self, painter: QtGui.QPainter) -> None:
        self._paint_background(painter)
        batch = self._batch
        if batch is None or not self.loop.running:
            return
        image = self._compose_sprites(batch)
        if image is None:
            return
        painter.setCompositionMode(self._blend_mode)
        painter.drawImage(0, 0, image)


class _OpenGLViewWidget(QtWidgets.QOpenGLWidget, _ViewWidgetBase):
    """OpenGL-backed renderer when the system can create a GL context."""

    def __init__(self, engine: MorphEngine, parent: Optional[QtWidgets.QWidget] = None) -> None:
        QtWidgets.QOpenGLWidget.__init__(self, parent)
        self._gl: Optional[object] = None
        self._init_view_widget(engine)

    def initializeGL(self) -> None:  # pragma: no cover - requires GUI context
        self._gl, error = _create_opengl_functions()
        if error is not None:  # pragma: no cover - depends on bindings/runtime
            print(
                f"[Morphfield][WARN] OpenGL initialisation failed: {error}. Falling back to raster clear handling.",
                file=sys.stderr,
            )
        self._apply_clear_color()
        self.loop.add_finalizer(self._release_gl)

    def _release_gl(self) -> None:  # pragma: no cover - requires GUI context
        self._gl = None

    def resizeGL(self, width: int, height: int) -> None:  # pragma: no cover - requires GUI context
        del width, height
        self._sync_viewport()

    def paintGL(self) -> None:  # pragma: no cover - requires GUI context
        if self._gl is not None:
            # GL_COLOR_BUFFER_BIT
            self._gl.glClear(0x00004000)
        painter = QtGui.QPainter(self)
        try:
            self._render_with_painter(painter)
        finally:
            painter.end()

    def wheelEvent(self, event: QtGui.QWheelEvent) -> None:  # type: ignore[override]
        self._handle_wheel(event)

    def mouseMoveEvent(self, event: QtGui.QMouseEvent) -> None:  # type: ignore[override]
        self._handle_mouse_move(event)
        super().mouseMoveEvent(event)

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # type: ignore[override]
        self.shutdown()
        super().closeEvent(event)


class _RasterViewWidget(QtWidgets.QWidget, _ViewWidgetBase):
    """Fallback renderer using the traditional raster ``QWidget`` backend."""

    def __init__(self, engine: MorphEngine, parent: Optional[QtWidgets.QWidget] = None) -> None:
        QtWidgets.QWidget.__init__(self, parent)
        self._init_view_widget(engine)

    def paintEvent(self, event: QtGui.QPaintEvent) -> None:  # type: ignore[override]
        del event
        painter = QtGui.QPainter(self)
        try:
            self._render_with_painter(painter)
        finally:
            painter.end()

    def resizeEvent(self, event: QtGui.QResizeEvent) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self._sync_viewport()
        self.update()

    def wheelEvent(self, event: QtGui.QWheelEvent) -> None:  # type: ignore[override]
        self._handle_wheel(event)

    def mouseMoveEvent(self, event: QtGui.QMouseEvent) -> None:  # type: ignore[override]
        self._handle_mouse_move(event)
        super().mouseMoveEvent(event)

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # type: ignore[override]
        self.shutdown()
        super().closeEvent(event)


def _should_use_opengl(force_backend: Optional[str]) -> bool:
    if force_backend == "raster":
        return False
    if force_backend == "opengl":
        return True

    env_backend = os.environ.get("MORPHFIELD_FORCE_BACKEND", "").strip().lower()
    if env_backend == "raster":
        return False
    if env_backend == "opengl":
        return True
    return hasattr(QtWidgets, "QOpenGLWidget")


def MorphfieldViewWidget(
    config: Optional[EffectConfig] = None,
    parent: Optional[QtWidgets.QWidget] = None,
    *,
    force_backend: Optional[str] = None,
    seed: Optional[int] = None,
) -> QtWidgets.QWidget:
    """Factory returning the best available renderer widget.

    Parameters
    ----------
    config:
        Effect configuration; the ``converge`` preset when omitted. Grids
        larger than ``system.Nmax`` points are shrunk to fit before the
        engine is built.
    parent:
        Parent widget used by Qt for ownership.
    force_backend:
        ``"opengl"`` forces the OpenGL widget while ``"raster"`` selects the
        pure QWidget implementation.
    seed:
        Seed for the per-particle random values.

    Raises
    ------
    SurfaceUnavailableError
        When no ``QApplication`` exists or no backend widget can be created.
        The engine built for the widget is released before raising.
    """

    if QtWidgets.QApplication.instance() is None:
        raise SurfaceUnavailableError("a QApplication must exist before the view can be created")
    requested = config if config is not None else load_config()
    config = fit_particle_budget(requested)
    if config is not requested:
        print(
            "[Morphfield][DEBUG] grid reduced from %dx%d to %dx%d segments (system.Nmax=%d)"
            % (
                requested.geometry.segments_x,
                requested.geometry.segments_y,
                config.geometry.segments_x,
                config.geometry.segments_y,
                config.system.max_particles,
            ),
            flush=True,
        )
    engine = MorphEngine(config, seed=seed)
    try:
        if _should_use_opengl(force_backend):
            try:
                widget = _OpenGLViewWidget(engine, parent)
                setattr(widget, "backend_name", "opengl")
                setattr(widget, "uses_opengl", True)
                return widget
            except Exception as exc:
                print(
                    f"[Morphfield][WARN] Unable to initialise OpenGL backend ({exc!r}). Using raster widget instead.",
                    file=sys.stderr,
                )
        try:
            widget = _RasterViewWidget(engine, parent)
        except Exception as exc:
            raise SurfaceUnavailableError(f"unable to create a rendering surface: {exc}") from exc
    except BaseException:
        engine.release()
        raise
    setattr(widget, "backend_name", "raster")
    setattr(widget, "uses_opengl", False)
    return widget
