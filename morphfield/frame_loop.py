from __future__ import annotations

import sys
from typing import Callable, List, Optional

from .engine import MorphEngine
from .shading import FrameBatch

__all__ = ["FrameLoop"]


class FrameLoop:
    """Runs one engine update plus one draw per display tick.

    The loop has two states, ``running`` and ``stopped``.  Whatever drives the
    ticks (a ``QTimer`` in the Qt host) calls :meth:`tick`; :meth:`stop` is the
    only transition out of ``running`` and releases the engine buffers and
    every registered finalizer exactly once, however often it is called.
    Using the loop as a context manager guarantees the release on every exit
    path.
    """

    RUNNING = "running"
    STOPPED = "stopped"

    def __init__(
        self,
        engine: MorphEngine,
        draw: Callable[[FrameBatch], None],
        *,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.engine = engine
        self._draw = draw
        self._clock = clock
        self._finalizers: List[Callable[[], None]] = []
        self.state = self.RUNNING
        self.frames = 0

    @property
    def running(self) -> bool:
        return self.state == self.RUNNING

    def add_finalizer(self, callback: Callable[[], None]) -> None:
        """Register a resource release to run once when the loop stops."""

        if not self.running:
            callback()
            return
        self._finalizers.append(callback)

    def tick(self) -> bool:
        """Render one frame; returns ``False`` once the loop has stopped."""

        if not self.running:
            return False
        try:
            batch = self.engine.step(self._clock() if self._clock is not None else None)
            self._draw(batch)
        except Exception:
            self.stop()
            raise
        self.frames += 1
        return True

    def stop(self) -> bool:
        """Transition to ``stopped``; returns ``False`` when already stopped."""

        if not self.running:
            return False
        self.state = self.STOPPED
        finalizers, self._finalizers = self._finalizers, []
        try:
            for callback in reversed(finalizers):
                try:
                    callback()
                except Exception as exc:  # pragma: no cover - depends on host resources
                    print(f"[Morphfield][WARN] teardown callback failed: {exc!r}", file=sys.stderr)
        finally:
            self.engine.release()
        return True

    def __enter__(self) -> "FrameLoop":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
