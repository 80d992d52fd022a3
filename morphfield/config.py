"""Configuration state for the morphing particle field.

The whole effect is driven by one nested dictionary, mirroring the layout the
control windows used to push to the renderer: every section (``geometry``,
``transition``, ``wave`` ...) is a plain ``dict`` so payloads loaded from JSON
files or built on the command line can be merged into it key by key.

:func:`load_config` turns such a state into an :class:`EffectConfig`, a tree of
frozen dataclasses validated once so the engine never has to second-guess its
inputs while rendering.
"""

from __future__ import annotations

import copy
import json
import math
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

__all__ = [
    "DEFAULTS",
    "PRESETS",
    "HarmonicTerm",
    "EffectConfig",
    "merge_state",
    "preset_state",
    "load_config",
    "load_payload_file",
    "fit_particle_budget",
    "hex_to_rgb",
]

Vec3 = Tuple[float, float, float]
RGB = Tuple[float, float, float]


# Eight layered terms: six rolling waves then two fine ripples.
# (amplitude, freq_x, freq_y, time_speed, phase, trig)
_DEFAULT_HARMONICS = [
    (8.0, 0.0, 0.02, 1.5, 0.0, "sin"),
    (6.0, 0.0, 0.04, -1.2, 0.0, "sin"),
    (4.0, 0.0, 0.08, 2.0, 0.0, "sin"),
    (7.0, 0.03, 0.0, -1.0, 0.0, "sin"),
    (5.0, 0.025, 0.025, 0.8, 0.0, "sin"),
    (4.5, 0.035, -0.02, 1.3, 0.0, "cos"),
    (2.0, 0.1, 0.08, 2.5, 0.0, "sin"),
    (1.5, 0.12, -0.1, -3.0, 0.0, "cos"),
]

DEFAULTS = dict(
    geometry=dict(segmentsX=240, segmentsY=120, width=240.0, height=120.0, sphereRadius=18.0),
    transition=dict(
        smoothing=0.05, scaleFactor=1.4, delayWindow=0.4,
        stagger=True, converge=True, convergeStrength=0.3,
    ),
    wave=dict(harmonics=[list(term) for term in _DEFAULT_HARMONICS], timeScale=0.5, damping=False),
    sphere=dict(
        mode="noise", noise="simplex",
        noiseScale=0.05, noiseTimeSpeed=0.2, magnitude=2.5,
    ),
    appearance=dict(
        color1="#8B0000", color2="#FF4500", color3="#FFD700",
        colorDeep="#660505", colorMid="#CC1A0D", colorHighlight="#FF6600",
        mixOffset=25.0, mixRange=50.0, highlightStart=0.75, highlightStrength=0.6,
        noiseColorGain=30.0, sphereColor="palette", rimStrength=0.0, rimPower=2.0,
        baseSize=4.0, elevationNorm=30.0, perspectiveScale=30.0, sphereSizeMultiplier=55.0 / 30.0,
        sizeElevation="signed", spriteInner=0.3,
        fogNear=20.0, fogFar=100.0, fogStrength=0.5, opacity=0.85,
        blendMode="additive",
        background="#2A0800", backgroundEdge="#000000",
    ),
    camera=dict(
        fov=60.0, near=1.0, far=1000.0,
        wavePosition=[0.0, 30.0, 60.0], waveTarget=[0.0, 15.0, 0.0], waveUp=[0.0, -1.0, 0.0],
        spherePosition=[0.0, 0.0, 55.0], sphereTarget=[0.0, 0.0, 0.0], sphereUp=[0.0, 1.0, 0.0],
        swayX=3.0, swayY=2.0,
        waveTiltDeg=-180.0 / 2.2, sphereTiltDeg=0.0,
        driftX=12.0, driftY=6.0, driftZ=5.0,
        rollAmp=0.08, yawAmp=0.05, sphereSpin=0.1,
    ),
    pointer=dict(smoothing=0.1, repulsion=False, radius=0.25, magnitude=6.0),
    input=dict(scrollMode="viewport", windowMultiplier=1.5),
    system=dict(
        Nmax=10000, frameIntervalMs=16, dprClamp=2.0, transparent=False, pageCount=3, scrollStepPx=120.0,
    ),
)


PRESETS: Dict[str, dict] = {
    # Staggered wave -> sphere morph with the convergence pull.
    "converge": {},
    # Every particle morphs in lockstep, the sphere ripples instead of boiling.
    "ripple": dict(
        geometry=dict(segmentsX=120, segmentsY=120, width=200.0, height=200.0, sphereRadius=35.0),
        transition=dict(stagger=False, converge=False),
        wave=dict(timeScale=0.8, damping=True),
        sphere=dict(mode="ripple", magnitude=1.0),
        appearance=dict(
            mixOffset=15.0, mixRange=30.0, highlightStart=0.7, highlightStrength=0.5,
            noiseColorGain=1.0, baseSize=3.5, elevationNorm=30.0,
            perspectiveScale=50.0, sphereSizeMultiplier=1.0,
            fogNear=30.0, fogFar=100.0, fogStrength=0.3, opacity=1.0,
            sphereColor="gradient", rimStrength=0.8, sizeElevation="absolute", spriteInner=0.2,
        ),
        camera=dict(
            wavePosition=[0.0, 30.0, 80.0], waveTarget=[0.0, 0.0, 0.0], waveUp=[0.0, 1.0, 0.0],
            spherePosition=[0.0, 0.0, 80.0], sphereTarget=[0.0, 0.0, 0.0], sphereUp=[0.0, 1.0, 0.0],
            swayX=0.0, swayY=0.0, driftZ=0.0, sphereSpin=0.3,
        ),
        input=dict(scrollMode="document"),
    ),
    # Same morph as ``converge`` with particles pushed away from the pointer.
    "pointer": dict(pointer=dict(repulsion=True)),
}


# ---------------------------------------------------------------------------
# State helpers


def merge_state(state: dict, payload: Mapping[str, object]) -> dict:
    """Merge ``payload`` into ``state`` section by section (in place)."""

    for key, value in payload.items():
        if key not in state or not isinstance(state[key], dict) or not isinstance(value, Mapping):
            state[key] = copy.deepcopy(value)
            continue
        for sub_key, sub_value in value.items():
            if isinstance(state[key].get(sub_key), dict) and isinstance(sub_value, Mapping):
                state[key][sub_key].update(sub_value)
            else:
                state[key][sub_key] = copy.deepcopy(sub_value)
    return state


def preset_state(name: str = "converge") -> dict:
    """Return a fresh copy of :data:`DEFAULTS` with the preset ``name`` applied."""

    if name not in PRESETS:
        raise KeyError(f"Unknown preset {name!r}; expected one of {sorted(PRESETS)}")
    return merge_state(copy.deepcopy(DEFAULTS), PRESETS[name])


def load_payload_file(path: Path | str) -> dict:
    """Read a JSON payload to merge on top of a preset."""

    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration file {path} must contain a JSON object")
    return raw


def _coerce_float(value: object, default: float = 0.0) -> float:
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value))
    except (TypeError, ValueError):
        return default


def _finite(section: str, key: str, value: object, default: float) -> float:
    number = _coerce_float(value, default)
    if not math.isfinite(number):
        raise ValueError(f"{section}.{key} must be a finite number, got {value!r}")
    return number


def _positive(section: str, key: str, value: object, default: float) -> float:
    number = _finite(section, key, value, default)
    if number <= 0.0:
        raise ValueError(f"{section}.{key} must be > 0, got {value!r}")
    return number


def _unit_interval(section: str, key: str, value: object, default: float) -> float:
    number = _finite(section, key, value, default)
    if not 0.0 < number <= 1.0:
        raise ValueError(f"{section}.{key} must lie in (0, 1], got {value!r}")
    return number


def _count(section: str, key: str, value: object) -> int:
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or not math.isfinite(value)
        or int(value) != value
    ):
        raise ValueError(f"{section}.{key} must be an integer, got {value!r}")
    if value <= 0:
        raise ValueError(f"{section}.{key} must be > 0, got {value!r}")
    return int(value)


def _vec3(section: str, key: str, value: object) -> Vec3:
    if not isinstance(value, (list, tuple)) or len(value) != 3:
        raise ValueError(f"{section}.{key} must be a list of three numbers, got {value!r}")
    x, y, z = (_finite(section, key, item, 0.0) for item in value)
    return (x, y, z)


def hex_to_rgb(value: str) -> RGB:
    """Convert ``#RRGGBB`` (or ``RGB``) to floats in ``[0, 1]``."""

    text = str(value).strip().lstrip("#")
    if len(text) == 3:
        text = "".join(ch * 2 for ch in text)
    if len(text) != 6:
        raise ValueError(f"Invalid colour {value!r}")
    try:
        r, g, b = (int(text[i : i + 2], 16) for i in (0, 2, 4))
    except ValueError as exc:
        raise ValueError(f"Invalid colour {value!r}") from exc
    return (r / 255.0, g / 255.0, b / 255.0)


# ---------------------------------------------------------------------------
# Typed settings


@dataclass(frozen=True)
class HarmonicTerm:
    """One ``amplitude * trig(fx*x + fy*y + speed*t + phase)`` wave layer."""

    amplitude: float
    freq_x: float
    freq_y: float
    time_speed: float
    phase: float = 0.0
    trig: str = "sin"


@dataclass(frozen=True)
class GeometrySettings:
    segments_x: int
    segments_y: int
    width: float
    height: float
    sphere_radius: float


@dataclass(frozen=True)
class TransitionSettings:
    smoothing: float
    scale_factor: float
    delay_window: float
    stagger: bool
    converge: bool
    converge_strength: float


@dataclass(frozen=True)
class WaveSettings:
    harmonics: Tuple[HarmonicTerm, ...]
    time_scale: float
    damping: bool


@dataclass(frozen=True)
class SphereSettings:
    mode: str
    noise: str
    noise_scale: float
    noise_time_speed: float
    magnitude: float


@dataclass(frozen=True)
class AppearanceSettings:
    color1: RGB
    color2: RGB
    color3: RGB
    color_deep: RGB
    color_mid: RGB
    color_highlight: RGB
    mix_offset: float
    mix_range: float
    highlight_start: float
    highlight_strength: float
    noise_color_gain: float
    sphere_color: str
    rim_strength: float
    rim_power: float
    base_size: float
    elevation_norm: float
    perspective_scale: float
    sphere_size_multiplier: float
    size_elevation: str
    sprite_inner: float
    fog_near: float
    fog_far: float
    fog_strength: float
    opacity: float
    blend_mode: str
    background: str
    background_edge: str


@dataclass(frozen=True)
class CameraPose:
    position: Vec3
    target: Vec3
    up: Vec3


@dataclass(frozen=True)
class CameraSettings:
    fov: float
    near: float
    far: float
    wave_pose: CameraPose
    sphere_pose: CameraPose
    sway_x: float
    sway_y: float
    wave_tilt: float
    sphere_tilt: float
    drift: Vec3
    roll_amp: float
    yaw_amp: float
    sphere_spin: float


@dataclass(frozen=True)
class PointerSettings:
    smoothing: float
    repulsion: bool
    radius: float
    magnitude: float


@dataclass(frozen=True)
class InputSettings:
    scroll_mode: str
    window_multiplier: float
    dpr_clamp: float


@dataclass(frozen=True)
class SystemSettings:
    max_particles: int
    frame_interval_ms: int
    transparent: bool
    page_count: int
    scroll_step_px: float


@dataclass(frozen=True)
class EffectConfig:
    """Validated, immutable configuration of one effect instance."""

    geometry: GeometrySettings
    transition: TransitionSettings
    wave: WaveSettings
    sphere: SphereSettings
    appearance: AppearanceSettings
    camera: CameraSettings
    pointer: PointerSettings
    inputs: InputSettings
    system: SystemSettings


def _harmonics(raw: object) -> Tuple[HarmonicTerm, ...]:
    if not isinstance(raw, (list, tuple)) or not raw:
        raise ValueError("wave.harmonics must be a non-empty list")
    terms = []
    for entry in raw:
        if isinstance(entry, Mapping):
            values = [
                entry.get("amplitude"), entry.get("freqX", 0.0), entry.get("freqY", 0.0),
                entry.get("timeSpeed", 0.0), entry.get("phase", 0.0), entry.get("trig", "sin"),
            ]
        elif isinstance(entry, (list, tuple)) and 4 <= len(entry) <= 6:
            values = list(entry) + [0.0, "sin"][len(entry) - 4 :]
        else:
            raise ValueError(f"Invalid harmonic term {entry!r}")
        trig = str(values[5]).lower()
        if trig not in ("sin", "cos"):
            raise ValueError(f"Harmonic trig must be 'sin' or 'cos', got {values[5]!r}")
        amplitude, fx, fy, speed, phase = (_finite("wave", "harmonics", v, 0.0) for v in values[:5])
        terms.append(HarmonicTerm(amplitude, fx, fy, speed, phase, trig))
    return tuple(terms)


def _choice(section: str, key: str, value: object, choices: Tuple[str, ...]) -> str:
    text = str(value).lower()
    if text not in choices:
        raise ValueError(f"{section}.{key} must be one of {choices}, got {value!r}")
    return text


def _flag(section: str, key: str, value: object, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"{section}.{key} must be true or false, got {value!r}")
    return value


def _section(state: Mapping[str, object], name: str) -> Mapping[str, object]:
    value = state.get(name)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Section {name!r} must be an object, got {value!r}")
    return value


def config_from_state(state: Mapping[str, Mapping[str, object]]) -> EffectConfig:
    """Validate a nested state dictionary and freeze it."""

    if not isinstance(state, Mapping):
        raise ValueError(f"Configuration must be an object, got {state!r}")
    geo = _section(state, "geometry")
    trn = _section(state, "transition")
    wav = _section(state, "wave")
    sph = _section(state, "sphere")
    app = _section(state, "appearance")
    cam = _section(state, "camera")
    ptr = _section(state, "pointer")
    inp = _section(state, "input")
    sysc = _section(state, "system")

    geometry = GeometrySettings(
        segments_x=_count("geometry", "segmentsX", geo.get("segmentsX")),
        segments_y=_count("geometry", "segmentsY", geo.get("segmentsY")),
        width=_positive("geometry", "width", geo.get("width"), 0.0),
        height=_positive("geometry", "height", geo.get("height"), 0.0),
        sphere_radius=_positive("geometry", "sphereRadius", geo.get("sphereRadius"), 0.0),
    )

    delay_window = _finite("transition", "delayWindow", trn.get("delayWindow"), 0.4)
    if delay_window < 0.0:
        raise ValueError(f"transition.delayWindow must be >= 0, got {delay_window!r}")
    scale_factor = _positive("transition", "scaleFactor", trn.get("scaleFactor"), 1.4)
    transition = TransitionSettings(
        smoothing=_unit_interval("transition", "smoothing", trn.get("smoothing"), 0.05),
        scale_factor=scale_factor,
        delay_window=delay_window,
        stagger=_flag("transition", "stagger", trn.get("stagger"), True),
        converge=_flag("transition", "converge", trn.get("converge"), False),
        converge_strength=_finite("transition", "convergeStrength", trn.get("convergeStrength"), 0.3),
    )

    wave = WaveSettings(
        harmonics=_harmonics(wav.get("harmonics")),
        time_scale=_finite("wave", "timeScale", wav.get("timeScale"), 1.0),
        damping=_flag("wave", "damping", wav.get("damping"), False),
    )

    sphere = SphereSettings(
        mode=_choice("sphere", "mode", sph.get("mode", "noise"), ("noise", "ripple")),
        noise=_choice("sphere", "noise", sph.get("noise", "simplex"), ("simplex", "value")),
        noise_scale=_finite("sphere", "noiseScale", sph.get("noiseScale"), 0.05),
        noise_time_speed=_finite("sphere", "noiseTimeSpeed", sph.get("noiseTimeSpeed"), 0.2),
        magnitude=_finite("sphere", "magnitude", sph.get("magnitude"), 2.5),
    )

    fog_near = _finite("appearance", "fogNear", app.get("fogNear"), 20.0)
    fog_far = _finite("appearance", "fogFar", app.get("fogFar"), 100.0)
    sprite_inner = _finite("appearance", "spriteInner", app.get("spriteInner"), 0.3)
    if not 0.0 <= sprite_inner < 0.5:
        raise ValueError(f"appearance.spriteInner must lie in [0, 0.5), got {sprite_inner!r}")
    appearance = AppearanceSettings(
        color1=hex_to_rgb(app.get("color1", "#8B0000")),
        color2=hex_to_rgb(app.get("color2", "#FF4500")),
        color3=hex_to_rgb(app.get("color3", "#FFD700")),
        color_deep=hex_to_rgb(app.get("colorDeep", "#660505")),
        color_mid=hex_to_rgb(app.get("colorMid", "#CC1A0D")),
        color_highlight=hex_to_rgb(app.get("colorHighlight", "#FF6600")),
        mix_offset=_finite("appearance", "mixOffset", app.get("mixOffset"), 25.0),
        mix_range=_positive("appearance", "mixRange", app.get("mixRange"), 50.0),
        highlight_start=_finite("appearance", "highlightStart", app.get("highlightStart"), 0.75),
        highlight_strength=_finite("appearance", "highlightStrength", app.get("highlightStrength"), 0.6),
        noise_color_gain=_finite("appearance", "noiseColorGain", app.get("noiseColorGain"), 30.0),
        sphere_color=_choice(
            "appearance", "sphereColor", app.get("sphereColor", "palette"), ("palette", "gradient")
        ),
        rim_strength=_finite("appearance", "rimStrength", app.get("rimStrength"), 0.0),
        rim_power=_positive("appearance", "rimPower", app.get("rimPower"), 2.0),
        base_size=_positive("appearance", "baseSize", app.get("baseSize"), 4.0),
        elevation_norm=_positive("appearance", "elevationNorm", app.get("elevationNorm"), 30.0),
        perspective_scale=_positive("appearance", "perspectiveScale", app.get("perspectiveScale"), 30.0),
        sphere_size_multiplier=_positive(
            "appearance", "sphereSizeMultiplier", app.get("sphereSizeMultiplier"), 1.0
        ),
        size_elevation=_choice(
            "appearance", "sizeElevation", app.get("sizeElevation", "signed"), ("signed", "absolute")
        ),
        sprite_inner=sprite_inner,
        fog_near=fog_near,
        fog_far=fog_far,
        fog_strength=_finite("appearance", "fogStrength", app.get("fogStrength"), 0.5),
        opacity=_finite("appearance", "opacity", app.get("opacity"), 1.0),
        blend_mode=str(app.get("blendMode", "additive")),
        background=str(app.get("background", "#000000")),
        background_edge=str(app.get("backgroundEdge", "#000000")),
    )

    near = _positive("camera", "near", cam.get("near"), 1.0)
    far = _positive("camera", "far", cam.get("far"), 1000.0)
    if far <= near:
        raise ValueError(f"camera.far ({far}) must be greater than camera.near ({near})")
    fov = _positive("camera", "fov", cam.get("fov"), 60.0)
    if fov >= 180.0:
        raise ValueError(f"camera.fov must be < 180 degrees, got {fov}")
    camera = CameraSettings(
        fov=fov,
        near=near,
        far=far,
        wave_pose=CameraPose(
            _vec3("camera", "wavePosition", cam.get("wavePosition")),
            _vec3("camera", "waveTarget", cam.get("waveTarget")),
            _vec3("camera", "waveUp", cam.get("waveUp")),
        ),
        sphere_pose=CameraPose(
            _vec3("camera", "spherePosition", cam.get("spherePosition")),
            _vec3("camera", "sphereTarget", cam.get("sphereTarget")),
            _vec3("camera", "sphereUp", cam.get("sphereUp")),
        ),
        sway_x=_finite("camera", "swayX", cam.get("swayX"), 0.0),
        sway_y=_finite("camera", "swayY", cam.get("swayY"), 0.0),
        wave_tilt=math.radians(_finite("camera", "waveTiltDeg", cam.get("waveTiltDeg"), 0.0)),
        sphere_tilt=math.radians(_finite("camera", "sphereTiltDeg", cam.get("sphereTiltDeg"), 0.0)),
        drift=(
            _finite("camera", "driftX", cam.get("driftX"), 0.0),
            _finite("camera", "driftY", cam.get("driftY"), 0.0),
            _finite("camera", "driftZ", cam.get("driftZ"), 0.0),
        ),
        roll_amp=_finite("camera", "rollAmp", cam.get("rollAmp"), 0.0),
        yaw_amp=_finite("camera", "yawAmp", cam.get("yawAmp"), 0.0),
        sphere_spin=_finite("camera", "sphereSpin", cam.get("sphereSpin"), 0.0),
    )

    pointer = PointerSettings(
        smoothing=_unit_interval("pointer", "smoothing", ptr.get("smoothing"), 0.1),
        repulsion=_flag("pointer", "repulsion", ptr.get("repulsion"), False),
        radius=_positive("pointer", "radius", ptr.get("radius"), 0.25),
        magnitude=_finite("pointer", "magnitude", ptr.get("magnitude"), 0.0),
    )

    inputs = InputSettings(
        scroll_mode=_choice("input", "scrollMode", inp.get("scrollMode", "viewport"), ("viewport", "document")),
        window_multiplier=_positive("input", "windowMultiplier", inp.get("windowMultiplier"), 1.5),
        dpr_clamp=_positive("system", "dprClamp", sysc.get("dprClamp"), 2.0),
    )

    max_particles = _finite("system", "Nmax", sysc.get("Nmax"), 0)
    if max_particles < 0 or int(max_particles) != max_particles:
        raise ValueError(f"system.Nmax must be a non-negative integer, got {sysc.get('Nmax')!r}")
    system = SystemSettings(
        max_particles=int(max_particles),
        frame_interval_ms=max(0, int(_finite("system", "frameIntervalMs", sysc.get("frameIntervalMs"), 16))),
        transparent=_flag("system", "transparent", sysc.get("transparent"), False),
        page_count=max(1, int(_finite("system", "pageCount", sysc.get("pageCount"), 3))),
        scroll_step_px=_positive("system", "scrollStepPx", sysc.get("scrollStepPx"), 120.0),
    )

    return EffectConfig(geometry, transition, wave, sphere, appearance, camera, pointer, inputs, system)


def load_config(
    preset: str = "converge",
    overrides: Optional[Mapping[str, object]] = None,
) -> EffectConfig:
    """Build the validated configuration for ``preset`` plus ``overrides``."""

    state = preset_state(preset)
    if overrides:
        merge_state(state, overrides)
    return config_from_state(state)


def fit_particle_budget(config: EffectConfig) -> EffectConfig:
    """Shrink the grid so it holds at most ``system.max_particles`` points.

    Both segment counts are scaled by the same factor so the wave keeps its
    aspect; the extent and the sphere radius are untouched. A budget of ``0``
    leaves the grid as configured.
    """

    budget = config.system.max_particles
    geo = config.geometry
    count = (geo.segments_x + 1) * (geo.segments_y + 1)
    if budget <= 0 or count <= budget:
        return config
    scale = math.sqrt(budget / count)
    sx = max(1, int((geo.segments_x + 1) * scale) - 1)
    sy = max(1, int((geo.segments_y + 1) * scale) - 1)
    while (sx + 1) * (sy + 1) > budget and (sx > 1 or sy > 1):
        if sx >= sy:
            sx -= 1
        else:
            sy -= 1
    return replace(config, geometry=replace(geo, segments_x=sx, segments_y=sy))
