import numpy as np
import pytest

from minimago.background import parse_hex_color, remove_background
from minimago.errors import ErrorKind, ProcessError
from minimago.types import PixelBuffer


def _buffer(pixels: list[list[tuple[int, int, int, int]]]) -> PixelBuffer:
    data = np.array(pixels, dtype=np.uint8)
    h, w, c = data.shape
    return PixelBuffer(width=w, height=h, channels=c, data=data)


def test_parse_hex_color():
    assert parse_hex_color("#ffffff") == (255, 255, 255)
    assert parse_hex_color("00FF7f") == (0, 255, 127)
    assert parse_hex_color(" #102030 ") == (16, 32, 48)


@pytest.mark.parametrize("value", ["", "#fff", "#gggggg", "#1234567", "red"])
def test_parse_hex_color_rejects_garbage(value):
    with pytest.raises(ProcessError) as exc:
        parse_hex_color(value)
    assert exc.value.kind is ErrorKind.INVALID_REQUEST


def test_matching_pixels_become_transparent():
    buf = _buffer([[(255, 255, 255, 255), (240, 250, 236, 255)], [(0, 0, 0, 255), (255, 255, 200, 255)]])
    out = remove_background(buf, (255, 255, 255), 20)

    alpha = out.data[..., 3]
    assert alpha.tolist() == [[0, 0], [255, 255]]
    # colour channels are untouched
    assert np.array_equal(out.data[..., :3], buf.data[..., :3])
    assert (out.width, out.height, out.channels) == (2, 2, 4)


def test_input_buffer_is_not_modified():
    buf = _buffer([[(255, 255, 255, 255)]])
    remove_background(buf, (255, 255, 255), 0)
    assert buf.data[0, 0, 3] == 255


def test_tolerance_zero_is_exact_match():
    buf = _buffer([[(10, 20, 30, 255), (11, 20, 30, 255)]])
    out = remove_background(buf, (10, 20, 30), 0)
    assert out.data[..., 3].tolist() == [[0, 255]]


def test_every_channel_must_be_within_tolerance():
    # red and green match, blue is 21 away
    buf = _buffer([[(100, 100, 121, 255)]])
    assert remove_background(buf, (100, 100, 100), 20).data[0, 0, 3] == 255
    assert remove_background(buf, (100, 100, 100), 21).data[0, 0, 3] == 0


def test_non_matching_pixels_keep_their_alpha():
    buf = _buffer([[(0, 0, 0, 128), (0, 0, 0, 7), (255, 255, 255, 90)]])
    out = remove_background(buf, (255, 255, 255), 30)
    assert out.data[..., 3].tolist() == [[128, 7, 0]]


def test_tolerance_is_not_capped():
    rng = np.random.default_rng(1)
    data = np.concatenate(
        [rng.integers(0, 256, size=(8, 8, 3), dtype=np.uint8), np.full((8, 8, 1), 255, dtype=np.uint8)], axis=2
    )
    buf = PixelBuffer(width=8, height=8, channels=4, data=data)
    assert not remove_background(buf, (0, 0, 0), 255).data[..., 3].any()


def test_rgba_is_required():
    data = np.zeros((2, 2, 3), dtype=np.uint8)
    with pytest.raises(ValueError, match="RGBA"):
        remove_background(PixelBuffer(2, 2, 3, data), (0, 0, 0), 10)


def test_pixel_buffer_checks_shape():
    with pytest.raises(ValueError, match="does not match"):
        PixelBuffer(width=3, height=2, channels=4, data=np.zeros((3, 2, 4), dtype=np.uint8))


@pytest.mark.imaging
def test_vips_round_trip_adds_alpha_and_keys_out(make_image):
    pytest.importorskip("pyvips")
    from minimago.background import apply_background_removal, image_to_rgba_buffer
    from minimago.vips import get_pyvips

    path = make_image("white.png", size=(6, 4), color=(255, 255, 255))
    image = get_pyvips().Image.new_from_file(str(path))

    pixels = image_to_rgba_buffer(image)
    assert (pixels.width, pixels.height, pixels.channels) == (6, 4, 4)
    assert (pixels.data[..., 3] == 255).all()

    keyed = apply_background_removal(image, (255, 255, 255), 20)
    assert (keyed.width, keyed.height, keyed.bands) == (6, 4, 4)
    assert keyed.extract_band(3).max() == 0
