"""
Tests for preview building and WebP re-encoding.
"""
import asyncio
import io

import pytest
from PIL import Image

from conftest import make_image_bytes
from hostel_admin.utils.image_converter import build_preview_data_url, convert_to_webp, webp_filename


def open_image(data):
    return Image.open(io.BytesIO(data))


@pytest.mark.parametrize("mode, color", [("LA", (90, 128)), ("RGBA", (10, 20, 30, 128))])
def test_webp_keeps_transparency(mode, color):
    source = make_image_bytes(mode=mode, color=color)

    converted, success = asyncio.run(convert_to_webp(source))

    assert success is True
    image = open_image(converted)
    assert image.format == "WEBP"
    assert image.mode == "RGBA"


def test_webp_converts_grayscale_to_rgb():
    converted, success = asyncio.run(convert_to_webp(make_image_bytes(mode="L", color=128)))

    assert success is True
    assert open_image(converted).mode == "RGB"


def test_webp_conversion_failure_returns_original():
    converted, success = asyncio.run(convert_to_webp(b"not an image"))

    assert success is False
    assert converted == b"not an image"


def test_preview_for_transparent_image_is_png():
    preview = build_preview_data_url(make_image_bytes(mode="LA", color=(90, 128)))

    assert preview.startswith("data:image/png;base64,")


def test_preview_is_downscaled():
    preview = build_preview_data_url(make_image_bytes(fmt="JPEG", size=(2000, 1000)), max_dimension=100)

    assert preview.startswith("data:image/jpeg;base64,")


@pytest.mark.parametrize("filename, expected", [("room.png", "room.webp"), ("a.b.jpg", "a.b.webp"), ("noext", "noext.webp")])
def test_webp_filename(filename, expected):
    assert webp_filename(filename) == expected
