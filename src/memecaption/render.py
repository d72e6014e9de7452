"""Caption renderer: draw a layout plan onto a working pixel buffer.

A plan is drawn in two passes: the outline strokes of every line first
(outline color, stroke = plan.outline_width), then the fill glyphs of
every line on top (fill color). No outline, not even one from the line
below, covers a fill. The pen advances by the rasterizer's glyph advance.

Glyph coverage masks are alpha-blended into the buffer and clipped to
its bounds. Only the caller-owned buffer is modified.
"""

import numpy as np

from .common import Color, with_alpha
from .errors import RenderError
from .layout import LayoutPlan
from .model import ResolvedStyle


def blend_mask(
    buffer: np.ndarray,
    mask: np.ndarray,
    x: int,
    y: int,
    color: Color,
) -> None:
    """Alpha-blend a solid color through a coverage mask at (x, y).

    Args:
        buffer: RGBA frame, shape (h, w, 4), dtype uint8. Modified in place.
        mask: Coverage, shape (mh, mw), dtype uint8.
        x: Left edge of the mask in buffer coordinates (may be negative).
        y: Top edge of the mask in buffer coordinates (may be negative).
        color: RGB or RGBA fill color.
    """
    frame_h, frame_w = buffer.shape[:2]
    mask_h, mask_w = mask.shape[:2]

    # Clip the mask rectangle to the buffer.
    x0, y0 = max(x, 0), max(y, 0)
    x1, y1 = min(x + mask_w, frame_w), min(y + mask_h, frame_h)
    if x0 >= x1 or y0 >= y1:
        return
    coverage = mask[y0 - y:y1 - y, x0 - x:x1 - x]

    r, g, b, a = with_alpha(color)
    alpha = coverage[:, :, None].astype(np.float32) * (a / 255.0) / 255.0
    rgb = np.array((r, g, b), dtype=np.float32)

    dest = buffer[y0:y1, x0:x1].astype(np.float32)
    blended_rgb = dest[:, :, :3] * (1 - alpha) + rgb * alpha
    blended_a = dest[:, :, 3:4] * (1 - alpha) + 255.0 * alpha
    buffer[y0:y1, x0:x1, :3] = np.rint(blended_rgb).astype(np.uint8)
    buffer[y0:y1, x0:x1, 3:4] = np.rint(blended_a).astype(np.uint8)


def _draw_line(buffer, line, plan, font, rasterizer, color, stroke_width):
    pen_x = float(line.x)
    for char in line.text:
        glyph = rasterizer.rasterize(char, font, plan.size, stroke_width)
        if glyph.mask.size:
            blend_mask(
                buffer, glyph.mask,
                int(round(pen_x)) + glyph.left, line.baseline + glyph.top,
                color,
            )
        pen_x += rasterizer.advance(char, font, plan.size)


def render(
    buffer: np.ndarray,
    plan: LayoutPlan,
    style: ResolvedStyle,
    font,
    rasterizer,
) -> None:
    """Draw every line of plan onto buffer (RGBA, modified in place).

    Raises:
        RenderError: The buffer is not an RGBA uint8 array, or the
            rasterizer failed on a character.
    """
    if buffer.ndim != 3 or buffer.shape[2] != 4 or buffer.dtype != np.uint8:
        raise RenderError(
            f"working buffer must be (h, w, 4) uint8, got {buffer.shape} {buffer.dtype}"
        )
    if not buffer.flags.writeable:
        raise RenderError("working buffer is read-only")

    try:
        if plan.outline_width > 0:
            for line in plan.lines:
                _draw_line(
                    buffer, line, plan, font, rasterizer,
                    style.outline_color, plan.outline_width,
                )
        for line in plan.lines:
            _draw_line(buffer, line, plan, font, rasterizer, style.fill_color, 0)
    except (OSError, ValueError, TypeError) as e:
        raise RenderError(f"failed to draw caption text: {e}") from e
