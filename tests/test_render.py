"""Tests for caption rendering onto the working buffer."""

import numpy as np
import pytest

from memecaption.common import BLACK, WHITE
from memecaption.errors import RenderError
from memecaption.layout import Box, compute_layout
from memecaption.model import HAlign, ResolvedStyle, VAlign
from memecaption.render import blend_mask, render


def _buffer(w=100, h=60, color=(0, 0, 0)):
    buf = np.zeros((h, w, 4), dtype=np.uint8)
    buf[:, :, :3] = color
    buf[:, :, 3] = 255
    return buf


def _style(outline_width=0, fill=WHITE, outline=BLACK):
    return ResolvedStyle(
        halign=HAlign.CENTER, font="Impact", min_size=10, max_size=10,
        fill_color=fill, outline_color=outline, outline_width=outline_width,
    )


class TestBlendMask:
    def test_full_coverage_replaces_color(self):
        buf = _buffer()
        blend_mask(buf, np.full((4, 4), 255, dtype=np.uint8), 10, 10, WHITE)
        assert tuple(buf[12, 12]) == (255, 255, 255, 255)
        assert tuple(buf[9, 9]) == (0, 0, 0, 255)

    def test_half_coverage_blends(self):
        buf = _buffer()
        blend_mask(buf, np.full((2, 2), 128, dtype=np.uint8), 0, 0, WHITE)
        assert tuple(buf[0, 0, :3]) == (128, 128, 128)

    def test_color_alpha_scales_coverage(self):
        buf = _buffer()
        blend_mask(buf, np.full((2, 2), 255, dtype=np.uint8), 0, 0, (255, 255, 255, 0))
        assert tuple(buf[0, 0]) == (0, 0, 0, 255)

    def test_clipped_to_buffer(self):
        buf = _buffer(w=10, h=10)
        blend_mask(buf, np.full((5, 5), 255, dtype=np.uint8), -3, 8, WHITE)
        assert (buf[8:10, 0:2, 0] == 255).all()
        assert (buf[0:8, :, 0] == 0).all()
        assert (buf[:, 2:, 0] == 0).all()

    def test_fully_outside_is_noop(self):
        buf = _buffer(w=10, h=10)
        blend_mask(buf, np.full((5, 5), 255, dtype=np.uint8), 20, 20, WHITE)
        assert (buf[:, :, 0] == 0).all()


class TestRender:
    def _plan(self, fake_rasterizer, outline_width=0):
        return compute_layout(
            "HI", Box(10, 10, 80, 40), None, (10, 10), VAlign.TOP,
            fake_rasterizer, outline_width=outline_width,
        )

    def test_draws_fill_inside_bounds_only(self, fake_rasterizer):
        buf = _buffer()
        plan = self._plan(fake_rasterizer)
        render(buf, plan, _style(), None, fake_rasterizer)

        b = plan.bounds
        inside = buf[b.y:b.bottom, b.x:b.right]
        assert (inside[:, :, 0] == 255).any()
        outside = buf.copy()
        outside[b.y:b.bottom, b.x:b.right] = _buffer()[b.y:b.bottom, b.x:b.right]
        assert np.array_equal(outside, _buffer())

    def test_outline_drawn_under_fill(self, fake_rasterizer):
        buf = _buffer(color=(0, 0, 255))
        plan = self._plan(fake_rasterizer, outline_width=2)
        render(buf, plan, _style(outline_width=2, outline=(255, 0, 0)), None, fake_rasterizer)

        line = plan.lines[0]
        # Stroke ring just left of the first glyph, fill inside it.
        assert tuple(buf[line.baseline - 3, line.x - 1, :3]) == (255, 0, 0)
        assert tuple(buf[line.baseline - 3, line.x + 1, :3]) == (255, 255, 255)

    def test_next_line_outline_does_not_cover_fill(self, fake_rasterizer):
        buf = _buffer(color=(0, 0, 255))
        plan = compute_layout(
            "A\nB", Box(10, 10, 80, 40), None, (10, 10), VAlign.TOP,
            fake_rasterizer, halign=HAlign.LEFT, outline_width=3,
        )
        render(buf, plan, _style(outline_width=3, outline=(255, 0, 0)), None, fake_rasterizer)

        first, second = plan.lines
        # The second line's stroke reaches up into the first line's last fill row.
        assert second.baseline - plan.ascent - 3 <= first.baseline - 1
        assert tuple(buf[first.baseline - 1, first.x + 1, :3]) == (255, 255, 255)

    def test_no_outline_when_width_zero(self, fake_rasterizer):
        buf = _buffer(color=(0, 0, 255))
        plan = self._plan(fake_rasterizer)
        render(buf, plan, _style(outline=(255, 0, 0)), None, fake_rasterizer)
        assert not ((buf[:, :, 0] == 255) & (buf[:, :, 1] == 0)).any()

    def test_rejects_non_rgba_buffer(self, fake_rasterizer):
        with pytest.raises(RenderError, match="working buffer"):
            render(np.zeros((10, 10, 3), dtype=np.uint8), self._plan(fake_rasterizer),
                   _style(), None, fake_rasterizer)

    def test_rejects_read_only_buffer(self, fake_rasterizer):
        buf = _buffer()
        buf.flags.writeable = False
        with pytest.raises(RenderError, match="read-only"):
            render(buf, self._plan(fake_rasterizer), _style(), None, fake_rasterizer)

    def test_rasterizer_failure_becomes_render_error(self, fake_rasterizer, monkeypatch):
        def broken(*args, **kwargs):
            raise OSError("glyph exploded")

        monkeypatch.setattr(fake_rasterizer, "rasterize", broken)
        with pytest.raises(RenderError, match="glyph exploded"):
            render(_buffer(), self._plan(fake_rasterizer), _style(), None, fake_rasterizer)
