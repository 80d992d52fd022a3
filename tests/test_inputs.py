import pytest

from morphfield.config import InputSettings
from morphfield.inputs import InputSampler, pointer_to_ndc, scroll_progress
from morphfield.morph_state import MorphStateController


def _sampler(mode: str = "viewport") -> InputSampler:
    return InputSampler(InputSettings(scroll_mode=mode, window_multiplier=1.5, dpr_clamp=2.0), MorphStateController())


def test_scroll_progress_is_clamped() -> None:
    assert scroll_progress(50.0, 100.0) == 0.5
    assert scroll_progress(-5.0, 100.0) == 0.0
    assert scroll_progress(500.0, 100.0) == 1.0


def test_non_positive_denominators_count_as_one() -> None:
    assert scroll_progress(0.0, 0.0) == 0.0
    assert scroll_progress(0.25, 0.0) == 0.25
    assert scroll_progress(30.0, -10.0) == 1.0


def test_pointer_ndc_corners_and_clamp() -> None:
    assert pointer_to_ndc(0.0, 0.0, 800.0, 600.0) == (-1.0, 1.0)
    assert pointer_to_ndc(400.0, 300.0, 800.0, 600.0) == (0.0, 0.0)
    assert pointer_to_ndc(1600.0, 1200.0, 800.0, 600.0) == (1.0, -1.0)
    assert pointer_to_ndc(0.0, 0.0, 0.0, 0.0) == (-1.0, 1.0)


def test_viewport_mode_uses_window_multiple() -> None:
    sampler = _sampler()
    sampler.resize(800, 600)

    progress = sampler.scroll(450.0)

    assert progress == pytest.approx(0.5)
    assert sampler._sink.state.raw_target == pytest.approx(0.5)


def test_document_mode_uses_scrollable_height() -> None:
    sampler = _sampler("document")

    assert sampler.scroll(300.0, scrollable_height=1200.0) == 0.25
    assert sampler.scroll(0.0, scrollable_height=0.0) == 0.0


def test_resize_clamps_pixel_ratio() -> None:
    sampler = _sampler()

    viewport = sampler.resize(1024, 768, 3.0)

    assert viewport.pixel_ratio == 2.0
    assert viewport.aspect == 1024 / 768
    assert sampler.resize(10, 10, 0.0).pixel_ratio == 1.0


def test_pointer_forwards_ndc_to_sink() -> None:
    sampler = _sampler()
    sampler.resize(200, 100)

    assert sampler.pointer(150.0, 25.0) == (0.5, 0.5)
    assert sampler._sink.state.pointer_raw == (0.5, 0.5)
    assert sampler.set_progress(7.0) == 1.0
