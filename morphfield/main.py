# -*- coding: utf-8 -*-
"""Command line entry point: ``python -m morphfield.main``."""

from __future__ import annotations

import argparse
import io
import os
import sys
import traceback
from pathlib import Path
from typing import NoReturn, Optional, Sequence


def _handle_qt_import_error(exc: ImportError) -> NoReturn:
    """Exit with a helpful message when the Qt bindings cannot be imported."""

    details = str(exc)
    message_lines = [
        "Unable to start Morphfield: importing PyQt5 failed.",
        "Check that PyQt5 is installed and that the required OpenGL libraries are available.",
    ]
    if "libGL.so.1" in details:
        message_lines.append(
            "Hint: the system library libGL.so.1 is missing. Install the Mesa/OpenGL packages for your platform."
        )
    message_lines.append(f"Original error: {details}")
    raise SystemExit("\n".join(message_lines)) from exc


try:
    from PyQt5 import QtCore, QtGui, QtWidgets
    from PyQt5.QtCore import Qt
    from PyQt5.QtGui import QSurfaceFormat
except ImportError as exc:  # pragma: no cover - environment dependent
    _handle_qt_import_error(exc)

from .config import PRESETS, load_config, load_payload_file
from .view import MorphfieldViewWidget, SurfaceUnavailableError

DEBUG_MARKER = "[Morphfield][DEBUG]"


class _DebugSilencer(io.TextIOBase):
    """Stream wrapper filtering the verbose engine diagnostics."""

    def __init__(self, stream: io.TextIOBase, marker: str) -> None:
        super().__init__()
        self._stream = stream
        self._marker = marker
        self._buffer: str = ""

    def write(self, text: str) -> int:  # type: ignore[override]
        self._buffer += text
        while "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            self._emit(line + "\n")
        return len(text)

    def flush(self) -> None:  # type: ignore[override]
        if self._buffer:
            self._emit(self._buffer)
            self._buffer = ""
        self._stream.flush()

    def _emit(self, chunk: str) -> None:
        if self._marker not in chunk:
            self._stream.write(chunk)

    def writelines(self, lines) -> None:  # type: ignore[override]
        for line in lines:
            self.write(line)

    def __getattr__(self, name):
        return getattr(self._stream, name)


def _install_debug_silencer(marker: str = DEBUG_MARKER) -> None:
    if marker and not isinstance(sys.stdout, _DebugSilencer):
        sys.stdout = _DebugSilencer(sys.stdout, marker)
    if marker and not isinstance(sys.stderr, _DebugSilencer):
        sys.stderr = _DebugSilencer(sys.stderr, marker)


def _debug_requested(flag: bool) -> bool:
    if flag:
        return True
    return os.environ.get("MORPHFIELD_DEBUG", "").strip().lower() in {"1", "true", "yes", "on"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="morphfield",
        description="Scroll-driven particle field morphing between a wave plane and a sphere.",
    )
    parser.add_argument("--preset", choices=sorted(PRESETS), default="converge", help="named effect variant")
    parser.add_argument("--config", type=Path, help="JSON payload merged on top of the preset")
    parser.add_argument("--backend", choices=("opengl", "raster"), help="force a rendering backend")
    parser.add_argument("--frames", type=int, default=0, help="quit after N rendered frames (0 runs until closed)")
    parser.add_argument("--seed", type=int, help="seed for the per-particle random values")
    parser.add_argument("--debug", action="store_true", help="print [Morphfield][DEBUG] diagnostics")
    return parser


class ViewWindow(QtWidgets.QMainWindow):
    """Top-level window owning one view widget."""

    def __init__(self, view: QtWidgets.QWidget, screen: Optional[QtGui.QScreen] = None):
        super().__init__(None)
        self.view = view
        self.setWindowTitle("Morphfield")

        w = QtWidgets.QWidget()
        w.setAttribute(Qt.WA_NoSystemBackground, True)
        w.setAutoFillBackground(False)
        lay = QtWidgets.QVBoxLayout(w)
        lay.setContentsMargins(0, 0, 0, 0)
        lay.addWidget(self.view)
        self.setCentralWidget(w)

        if screen is not None:
            self._apply_screen_geometry(screen)
        QtWidgets.QShortcut(Qt.Key_Escape, self, activated=self.close)
        QtWidgets.QShortcut(Qt.Key_R, self, activated=self.view.reset_visual_state)

    def _apply_screen_geometry(self, screen: QtGui.QScreen):
        geometry = screen.geometry()
        width = int(geometry.width() * 0.8)
        height = int(geometry.height() * 0.8)
        left = geometry.left() + (geometry.width() - width) // 2
        top = geometry.top() + (geometry.height() - height) // 2
        self.setGeometry(left, top, width, height)

    def quit_after(self, frames: int) -> None:
        """Close the window once the view has rendered ``frames`` frames."""

        if frames <= 0:
            return

        def _check() -> None:
            if self.view.loop.frames >= frames:
                print(f"[Morphfield] rendered {self.view.loop.frames} frames, closing")
                self.close()

        self.view.frame_timer.timeout.connect(_check)

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # type: ignore[override]
        self.view.shutdown()
        super().closeEvent(event)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Start the application and return the exit code."""

    parser = build_parser()
    args = parser.parse_args(argv)
    if not _debug_requested(args.debug):
        _install_debug_silencer()

    overrides = None
    if args.config is not None:
        try:
            overrides = load_payload_file(args.config)
        except (OSError, ValueError) as exc:
            parser.error(f"cannot read {args.config}: {exc}")
    try:
        config = load_config(args.preset, overrides)
    except ValueError as exc:
        parser.error(str(exc))

    fmt = QSurfaceFormat()
    fmt.setAlphaBufferSize(8)
    QSurfaceFormat.setDefaultFormat(fmt)
    app = QtWidgets.QApplication.instance()
    if app is None:
        QtWidgets.QApplication.setAttribute(QtCore.Qt.AA_EnableHighDpiScaling, True)
        QtWidgets.QApplication.setAttribute(QtCore.Qt.AA_UseHighDpiPixmaps, True)
        app = QtWidgets.QApplication(sys.argv[:1])

    try:
        view = MorphfieldViewWidget(config, force_backend=args.backend, seed=args.seed)
    except SurfaceUnavailableError as exc:
        print(f"[Morphfield][ERROR] {exc}", file=sys.stderr)
        return 1

    # Exceptions escaping a Qt slot (a failed frame) end the run with status 1.
    def _report_unhandled(exc_type, exc_value, exc_tb):
        print("[Morphfield][ERROR] unhandled exception, stopping", file=sys.stderr)
        traceback.print_exception(exc_type, exc_value, exc_tb, file=sys.stderr)
        view.shutdown()
        app.exit(1)

    previous_hook = sys.excepthook
    sys.excepthook = _report_unhandled
    try:
        window = ViewWindow(view, QtGui.QGuiApplication.primaryScreen())
        window.quit_after(args.frames)
        app.aboutToQuit.connect(view.shutdown)
        window.show()
        print(f"[Morphfield] preset {args.preset!r} on the {view.backend_name} backend")
        return app.exec_()
    finally:
        sys.excepthook = previous_hook
        view.shutdown()


if __name__ == "__main__":
    sys.exit(main())
