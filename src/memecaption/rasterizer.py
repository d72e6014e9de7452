"""Glyph rasterization capability.

Layout and rendering only talk to fonts through this narrow interface,
so the fit algorithm doesn't depend on the concrete rasterizer:

    measure(text, font, size)           -> width in pixels
    metrics(font, size)                 -> (ascent, descent)
    advance(char, font, size)           -> horizontal pen advance
    rasterize(char, font, size, stroke) -> Glyph coverage mask

A line's measured width is the sum of its glyph advances, which is
exactly how far the renderer moves the pen, so layout widths and drawn
widths agree.
"""

import math
from dataclasses import dataclass
from typing import Protocol

import numpy as np
from PIL import Image, ImageDraw


@dataclass(frozen=True)
class Glyph:
    """Coverage mask for one character.

    `left` and `top` offset the mask's top-left corner from the pen
    position on the baseline (top is usually negative).
    """

    mask: np.ndarray     # (h, w) uint8 coverage, 0-255
    left: int
    top: int


class Rasterizer(Protocol):
    def measure(self, text: str, font, size: int) -> float: ...

    def metrics(self, font, size: int) -> tuple[int, int]: ...

    def advance(self, char: str, font, size: int) -> float: ...

    def rasterize(self, char: str, font, size: int, stroke_width: int = 0) -> Glyph: ...


_EMPTY_MASK = np.zeros((0, 0), dtype=np.uint8)


class PillowRasterizer:
    """FreeType rasterization through Pillow.

    Works with memecaption.fonts.Font objects (anything with a
    `face(size)` method returning an ImageFont.FreeTypeFont).
    """

    def measure(self, text: str, font, size: int) -> float:
        return sum(self.advance(c, font, size) for c in text)

    def metrics(self, font, size: int) -> tuple[int, int]:
        ascent, descent = font.face(size).getmetrics()
        return ascent, descent

    def advance(self, char: str, font, size: int) -> float:
        return font.face(size).getlength(char)

    def rasterize(self, char: str, font, size: int, stroke_width: int = 0) -> Glyph:
        face = font.face(size)
        box = face.getbbox(char, stroke_width=stroke_width, anchor="ls")
        left, top = math.floor(box[0]), math.floor(box[1])
        right, bottom = math.ceil(box[2]), math.ceil(box[3])
        width, height = right - left, bottom - top
        if width <= 0 or height <= 0:
            return Glyph(_EMPTY_MASK, 0, 0)

        # Draw onto a canvas exactly the size of the glyph's ink box.
        canvas = Image.new("L", (width, height), 0)
        ImageDraw.Draw(canvas).text(
            (-left, -top), char, font=face, fill=255, anchor="ls",
            stroke_width=stroke_width, stroke_fill=255,
        )
        return Glyph(np.array(canvas, dtype=np.uint8), left, top)
