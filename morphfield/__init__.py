"""Scroll-driven particle field morphing between a wave plane and a sphere.

The numerical core (geometry, displacement, shading, camera, engine) only
needs numpy; the Qt host lives in :mod:`morphfield.view` and
:mod:`morphfield.main`.
"""

from .config import DEFAULTS, PRESETS, EffectConfig, load_config
from .engine import EngineReleasedError, MorphEngine
from .frame_loop import FrameLoop
from .geometry import ParticleField, build_particle_field
from .shading import FrameBatch

__version__ = "0.1.0"

__all__ = [
    "DEFAULTS",
    "PRESETS",
    "EffectConfig",
    "load_config",
    "MorphEngine",
    "EngineReleasedError",
    "FrameLoop",
    "ParticleField",
    "build_particle_field",
    "FrameBatch",
]
