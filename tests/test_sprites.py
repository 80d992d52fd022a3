import numpy as np
import pytest

from morphfield.sprites import splat_sprites, to_premultiplied_rgba


def _one(center, size, color=(1.0, 0.5, 0.0), alpha=1.0, width=21, height=21, **kwargs):
    return splat_sprites(
        np.array([center]), np.array([size]), np.array([color]), np.array([alpha]), width, height, **kwargs
    )


def test_sprite_is_opaque_inside_and_empty_past_its_rim() -> None:
    buffer = _one((10.5, 10.5), 8.0)

    assert buffer.shape == (21, 21, 3)
    np.testing.assert_allclose(buffer[10, 10], (1.0, 0.5, 0.0))
    np.testing.assert_allclose(buffer[10, 12], (1.0, 0.5, 0.0))
    np.testing.assert_allclose(buffer[10, 14], 0.0)
    np.testing.assert_allclose(buffer[0, 0], 0.0)
    assert 0.0 < buffer[10, 13, 0] < 1.0


def test_alpha_scales_the_contribution() -> None:
    full = _one((10.5, 10.5), 8.0)
    faded = _one((10.5, 10.5), 8.0, alpha=0.25)

    np.testing.assert_allclose(faded, full * 0.25)


def test_overlapping_sprites_add_up() -> None:
    screen = np.array([[10.5, 10.5], [10.5, 10.5]])
    colors = np.array([[0.4, 0.2, 0.1], [0.4, 0.2, 0.1]])

    buffer = splat_sprites(screen, np.full(2, 6.0), colors, np.ones(2), 21, 21)

    np.testing.assert_allclose(buffer[10, 10], (0.8, 0.4, 0.2))


def test_inner_edge_widens_the_soft_falloff() -> None:
    sharp = _one((10.5, 10.5), 10.0)
    soft = _one((10.5, 10.5), 10.0, inner=0.2)

    assert soft[10, 13, 0] < sharp[10, 13, 0]
    assert soft[10, 10, 0] == sharp[10, 10, 0] == 1.0


def test_sub_pixel_sprites_keep_their_area_weight() -> None:
    buffer = _one((10.5, 10.5), 0.5)

    assert buffer[10, 10, 0] == pytest.approx(0.25)
    assert buffer.sum() == pytest.approx(0.25 * 1.5)


def test_sprites_off_the_buffer_are_clipped() -> None:
    outside = _one((-40.0, 10.0), 8.0)
    straddling = _one((0.0, 0.0), 8.0)

    assert not outside.any()
    assert straddling[0, 0, 0] == 1.0
    assert not straddling[10:, 10:].any()


def test_empty_batches_and_buffers() -> None:
    empty = splat_sprites(np.empty((0, 2)), np.empty(0), np.empty((0, 3)), np.empty(0), 8, 4)
    zero = _one((1.0, 1.0), 4.0, width=0, height=0)

    assert empty.shape == (4, 8, 3)
    assert not empty.any()
    assert zero.shape == (0, 0, 3)


def test_premultiplied_bytes_use_the_brightest_channel_as_alpha() -> None:
    accum = np.array([[[2.0, 0.5, 0.0], [0.0, 0.0, 0.0]]])

    rgba = to_premultiplied_rgba(accum)

    assert rgba.dtype == np.uint8
    assert rgba.shape == (1, 2, 4)
    assert rgba[0, 0].tolist() == [255, 128, 0, 255]
    assert rgba[0, 1].tolist() == [0, 0, 0, 0]
