import copy
import json

import pytest

from morphfield.config import (
    DEFAULTS,
    PRESETS,
    fit_particle_budget,
    hex_to_rgb,
    load_config,
    load_payload_file,
    merge_state,
    preset_state,
)


def test_default_config_values() -> None:
    config = load_config()

    assert (config.geometry.segments_x, config.geometry.segments_y) == (240, 120)
    assert config.geometry.sphere_radius == 18.0
    assert config.transition.delay_window == 0.4
    assert config.transition.scale_factor == 1.4
    assert config.transition.stagger and config.transition.converge
    assert len(config.wave.harmonics) == 8
    assert config.wave.time_scale == 0.5
    assert config.sphere.mode == "noise"
    assert config.appearance.color1 == hex_to_rgb("#8B0000")
    assert config.camera.wave_pose.position == (0.0, 30.0, 60.0)
    assert not config.pointer.repulsion


def test_presets_switch_behaviours_independently() -> None:
    ripple = load_config("ripple")
    pointer = load_config("pointer")

    assert not ripple.transition.stagger
    assert ripple.sphere.mode == "ripple"
    assert ripple.inputs.scroll_mode == "document"
    assert pointer.pointer.repulsion
    assert pointer.transition.stagger
    assert set(PRESETS) == {"converge", "ripple", "pointer"}


def test_unknown_preset_raises() -> None:
    with pytest.raises(KeyError):
        load_config("spiral")


def test_preset_state_leaves_defaults_untouched() -> None:
    snapshot = copy.deepcopy(DEFAULTS)

    state = preset_state("ripple")
    state["geometry"]["segmentsX"] = 3

    assert DEFAULTS == snapshot


def test_merge_state_merges_sections() -> None:
    state = {"camera": {"fov": 60.0, "near": 1.0}, "system": {"transparent": False}}

    merge_state(state, {"camera": {"fov": 45.0}, "extra": {"k": 1}})

    assert state["camera"] == {"fov": 45.0, "near": 1.0}
    assert state["extra"] == {"k": 1}


def test_harmonics_accept_mappings_and_short_lists() -> None:
    config = load_config(
        overrides={"wave": {"harmonics": [{"amplitude": 2.0, "freqX": 0.1, "trig": "cos"}, [1.0, 0.0, 0.2, 1.5]]}}
    )

    first, second = config.wave.harmonics
    assert (first.amplitude, first.freq_x, first.freq_y, first.trig) == (2.0, 0.1, 0.0, "cos")
    assert (second.time_speed, second.phase, second.trig) == (1.5, 0.0, "sin")


@pytest.mark.parametrize(
    "overrides",
    [
        {"geometry": {"segmentsX": 0}},
        {"geometry": {"sphereRadius": -1.0}},
        {"geometry": {"segmentsY": float("inf")}},
        {"camera": {"near": 10.0, "far": 5.0}},
        {"camera": {"fov": 180.0}},
        {"camera": {"wavePosition": [0.0, 1.0]}},
        {"sphere": {"mode": "spiral"}},
        {"wave": {"harmonics": []}},
        {"wave": {"harmonics": [[1.0, 0.0, 0.0, 0.0, 0.0, "tan"]]}},
        {"transition": {"smoothing": 0.0}},
        {"transition": {"delayWindow": -0.5}},
        {"appearance": {"color1": "#12"}},
        {"appearance": {"sphereColor": "rainbow"}},
        {"appearance": {"sizeElevation": "cubic"}},
        {"appearance": {"spriteInner": 0.5}},
        {"system": {"Nmax": -1}},
    ],
)
def test_invalid_overrides_raise_value_error(overrides) -> None:
    with pytest.raises(ValueError):
        load_config(overrides=overrides)


def test_hex_to_rgb_short_form() -> None:
    assert hex_to_rgb("#fff") == (1.0, 1.0, 1.0)
    assert hex_to_rgb("000000") == (0.0, 0.0, 0.0)


def test_payload_file_round_trip(tmp_path) -> None:
    path = tmp_path / "effect.json"
    path.write_text(json.dumps({"pointer": {"repulsion": True, "radius": 0.4}}), encoding="utf-8")

    config = load_config("converge", load_payload_file(path))

    assert config.pointer.repulsion
    assert config.pointer.radius == 0.4


def test_payload_file_must_hold_an_object(tmp_path) -> None:
    path = tmp_path / "list.json"
    path.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(ValueError):
        load_payload_file(path)


@pytest.mark.parametrize("section", ["geometry", "transition", "wave", "appearance", "camera", "system"])
def test_non_object_section_raises_value_error(section) -> None:
    with pytest.raises(ValueError, match=section):
        load_config(overrides={section: 5})


@pytest.mark.parametrize(
    "overrides",
    [
        {"transition": {"stagger": "false"}},
        {"transition": {"converge": 0}},
        {"pointer": {"repulsion": "yes"}},
        {"system": {"transparent": 1}},
        {"wave": {"damping": "true"}},
    ],
)
def test_flags_must_be_booleans(overrides) -> None:
    with pytest.raises(ValueError, match="true or false"):
        load_config(overrides=overrides)


def test_flags_accept_json_booleans() -> None:
    config = load_config(overrides=json.loads('{"transition": {"stagger": false}, "system": {"transparent": true}}'))

    assert config.transition.stagger is False
    assert config.system.transparent is True


def test_ripple_preset_enables_its_shading_stages() -> None:
    ripple = load_config("ripple").appearance
    converge = load_config("converge").appearance

    assert load_config("ripple").wave.damping
    assert not load_config("converge").wave.damping
    assert (ripple.sphere_color, ripple.size_elevation) == ("gradient", "absolute")
    assert (converge.sphere_color, converge.size_elevation) == ("palette", "signed")
    assert ripple.rim_strength == 0.8 and converge.rim_strength == 0.0
    assert ripple.sprite_inner == 0.2 and converge.sprite_inner == 0.3


def test_particle_budget_shrinks_the_grid_keeping_its_aspect() -> None:
    config = load_config(overrides={"system": {"Nmax": 8000}})

    fitted = fit_particle_budget(config)

    geo = fitted.geometry
    assert (geo.segments_x + 1) * (geo.segments_y + 1) <= 8000
    assert (geo.segments_x + 1) * (geo.segments_y + 1) > 7000
    assert geo.segments_x / geo.segments_y == pytest.approx(2.0, rel=0.05)
    assert (geo.width, geo.height, geo.sphere_radius) == (240.0, 120.0, 18.0)
    assert fitted.appearance == config.appearance


def test_particle_budget_zero_or_roomy_keeps_the_config() -> None:
    unlimited = load_config(overrides={"system": {"Nmax": 0}})
    roomy = load_config(overrides={"geometry": {"segmentsX": 4, "segmentsY": 4}})

    assert fit_particle_budget(unlimited) is unlimited
    assert fit_particle_budget(roomy) is roomy
    assert load_config().system.max_particles == 10000
