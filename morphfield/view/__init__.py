"""Qt widgets hosting the morphing particle field."""

from .view_widget import MorphfieldViewWidget, SurfaceUnavailableError

__all__ = ["MorphfieldViewWidget", "SurfaceUnavailableError"]
