"""Shared test fixtures for memecaption tests."""

from pathlib import Path

import numpy as np
import pytest
from PIL import Image, ImageFont

from memecaption.rasterizer import Glyph


FONT_PATHS = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
]


def make_template(path, size=(400, 300), frames=None):
    """Write a horizontal-gradient template image (or animated GIF frames)."""
    w, h = size
    if frames:
        images = [Image.new("RGB", size, color) for color in frames]
        images[0].save(path, save_all=True, append_images=images[1:], duration=100, loop=0)
        return path
    ramp = np.linspace(40, 200, w, dtype=np.uint8)
    pixels = np.zeros((h, w, 3), dtype=np.uint8)
    pixels[:, :, 0] = ramp
    pixels[:, :, 1] = ramp[::-1]
    pixels[:, :, 2] = 90
    Image.fromarray(pixels).save(path)
    return path


@pytest.fixture(scope="session")
def font_bytes():
    """Bytes of a real TrueType font: Pillow's bundled face, else a system font."""
    face = ImageFont.load_default(size=12)
    data = getattr(face, "font_bytes", None)
    if data:
        return data
    for candidate in FONT_PATHS:
        if Path(candidate).suffix == ".ttf" and Path(candidate).exists():
            return Path(candidate).read_bytes()
    pytest.skip("no TrueType font available")


@pytest.fixture
def template_dir(tmp_path):
    """Directory holding a 400x300 'zoidberg' PNG template."""
    directory = tmp_path / "templates"
    directory.mkdir()
    make_template(directory / "zoidberg.png")
    return directory


@pytest.fixture
def font_dir(tmp_path, font_bytes):
    """Directory holding the default 'Impact' font."""
    directory = tmp_path / "fonts"
    directory.mkdir()
    (directory / "Impact.ttf").write_bytes(font_bytes)
    return directory


class FakeRasterizer:
    """Fixed-metric rasterizer for exact layout arithmetic.

    Every character advances 0.6 * size (floored), ascent is 0.8 * size
    (floored) and line height equals size. Non-space glyphs are solid
    blocks covering the advance and ascent, grown by the stroke width.
    """

    def advance(self, char, font, size):
        return (size * 6) // 10

    def measure(self, text, font, size):
        return len(text) * self.advance("x", font, size)

    def metrics(self, font, size):
        ascent = (size * 8) // 10
        return ascent, size - ascent

    def rasterize(self, char, font, size, stroke_width=0):
        if char.isspace():
            return Glyph(np.zeros((0, 0), dtype=np.uint8), 0, 0)
        ascent, _ = self.metrics(font, size)
        width = self.advance(char, font, size) + 2 * stroke_width
        height = ascent + 2 * stroke_width
        mask = np.full((height, width), 255, dtype=np.uint8)
        return Glyph(mask, -stroke_width, -ascent - stroke_width)


@pytest.fixture
def fake_rasterizer():
    return FakeRasterizer()
