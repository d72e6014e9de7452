"""Text layout engine: fit caption text into a box.

Pure computation, no pixels are touched. Given text, a box and a font,
compute_layout() picks the largest font size in the allowed range at
which the wrapped text fits, and positions every line:

  ┌──────────────── box ────────────────┐
  │   ┌──────────── bounds ──────────┐  │  ← bounds = block + outline
  │   │  NEED A MEME? SOME OF THE    │  │  ← line 0, baseline = top + ascent
  │   │       LONGER CAPTIONS        │  │  ← line 1, baseline += line_height
  │   └──────────────────────────────┘  │
  │                                      │  ← slack (valign decides where)
  └──────────────────────────────────────┘

Fitting:
  1. Split on hard line breaks; each segment wraps independently.
  2. For a candidate size, wrap greedily on whitespace so that every
     line's measured width + 2 * outline fits the box width.
  3. Height is line_count * line_height + 2 * outline.
  4. Try max size, then min size, then binary search in between.
     Only sizes that were actually verified to fit are returned.
"""

import math
from dataclasses import dataclass, replace

from loguru import logger

from .errors import LayoutFailed, LayoutReason
from .model import HAlign, VAlign


# ── Types ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Box:
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height


@dataclass(frozen=True)
class LayoutLine:
    text: str
    x: int            # pen start
    baseline: int     # baseline y
    width: float      # measured advance width (without outline)


@dataclass(frozen=True)
class LayoutPlan:
    lines: tuple[LayoutLine, ...]
    size: int
    line_height: int
    ascent: int
    outline_width: int
    box: Box          # box the text was fitted into
    bounds: Box       # area actually used, outline included

    @property
    def height(self) -> int:
        return self.bounds.height

    @property
    def widest(self) -> int:
        """Widest line including the outline on both sides."""
        if not self.lines:
            return 0
        return max(math.ceil(line.width) for line in self.lines) + 2 * self.outline_width

    def shifted(self, dy: int) -> "LayoutPlan":
        """Return the same plan moved vertically by dy pixels."""
        return replace(
            self,
            lines=tuple(replace(line, baseline=line.baseline + dy) for line in self.lines),
            box=replace(self.box, y=self.box.y + dy),
            bounds=replace(self.bounds, y=self.bounds.y + dy),
        )


@dataclass
class _Attempt:
    size: int
    lines: list[str]
    widths: list[float]
    ascent: int = 0
    line_height: int = 0
    reason: LayoutReason | None = None
    detail: str = ""

    @property
    def fits(self) -> bool:
        return self.reason is None


# ── Wrapping ─────────────────────────────────────────────────────


def split_hard_lines(text: str) -> list[str]:
    """Split text on explicit line breaks (\\n, \\r\\n, \\r)."""
    return text.strip().replace("\r\n", "\n").replace("\r", "\n").split("\n")


def _wrap_segment(words, max_width, measure):
    """Greedy word wrap of one hard-line segment.

    Returns (lines, widths, None) or (None, None, word) if a single word
    is wider than max_width.
    """
    lines, widths = [], []
    current, current_w = None, 0.0
    for word in words:
        word_w = measure(word)
        if word_w > max_width:
            return None, None, word
        if current is None:
            current, current_w = word, word_w
            continue
        candidate = f"{current} {word}"
        candidate_w = measure(candidate)
        if candidate_w <= max_width:
            current, current_w = candidate, candidate_w
        else:
            lines.append(current)
            widths.append(current_w)
            current, current_w = word, word_w
    if current is not None:
        lines.append(current)
        widths.append(current_w)
    return lines, widths, None


def _try_size(segments, box, font, size, rasterizer, outline_width) -> _Attempt:
    """Wrap all segments at one size and check both box dimensions."""
    max_width = box.width - 2 * outline_width

    def measure(s):
        return rasterizer.measure(s, font, size)

    attempt = _Attempt(size=size, lines=[], widths=[])
    for segment in segments:
        words = segment.split()
        if not words:
            # Blank line between hard breaks keeps its vertical space.
            attempt.lines.append("")
            attempt.widths.append(0.0)
            continue
        lines, widths, too_wide = _wrap_segment(words, max_width, measure)
        if too_wide is not None:
            attempt.reason = LayoutReason.UNBREAKABLE_WORD_TOO_WIDE
            attempt.detail = f"'{too_wide}' is wider than {max_width}px at size {size}"
            return attempt
        attempt.lines.extend(lines)
        attempt.widths.extend(widths)

    ascent, descent = rasterizer.metrics(font, size)
    attempt.ascent = ascent
    attempt.line_height = ascent + descent
    total_h = len(attempt.lines) * attempt.line_height + 2 * outline_width
    if total_h > box.height:
        attempt.reason = LayoutReason.TEXT_TOO_LARGE
        attempt.detail = (
            f"{len(attempt.lines)} line(s) need {total_h}px, "
            f"box is {box.height}px at size {size}"
        )
    return attempt


# ── Placement ────────────────────────────────────────────────────


def _place(
    attempt: _Attempt,
    box: Box,
    valign: VAlign,
    halign: HAlign,
    outline_width: int,
) -> LayoutPlan:
    lh = attempt.line_height
    block_h = len(attempt.lines) * lh

    if valign == VAlign.TOP:
        top = box.y + outline_width
    elif valign == VAlign.BOTTOM:
        top = box.bottom - outline_width - block_h
    else:  # middle
        top = box.y + (box.height - block_h) // 2

    placed = []
    for i, (text, width) in enumerate(zip(attempt.lines, attempt.widths)):
        w = math.ceil(width)
        if halign == HAlign.LEFT:
            x = box.x + outline_width
        elif halign == HAlign.RIGHT:
            x = box.right - outline_width - w
        else:  # center
            x = box.x + (box.width - w) // 2
        placed.append(LayoutLine(text=text, x=x, baseline=top + i * lh + attempt.ascent, width=width))

    left = min(line.x for line in placed) - outline_width
    right = max(line.x + math.ceil(line.width) for line in placed) + outline_width
    bounds = Box(left, top - outline_width, right - left, block_h + 2 * outline_width)

    return LayoutPlan(
        lines=tuple(placed),
        size=attempt.size,
        line_height=lh,
        ascent=attempt.ascent,
        outline_width=outline_width,
        box=box,
        bounds=bounds,
    )


def _empty_plan(box: Box, size: int, valign: VAlign, outline_width: int) -> LayoutPlan:
    if valign == VAlign.TOP:
        y = box.y
    elif valign == VAlign.BOTTOM:
        y = box.bottom
    else:
        y = box.y + box.height // 2
    return LayoutPlan(
        lines=(), size=size, line_height=0, ascent=0,
        outline_width=outline_width, box=box,
        bounds=Box(box.x, y, 0, 0),
    )


# ── Public API ───────────────────────────────────────────────────


def compute_layout(
    text: str,
    box: Box,
    font,
    size_range: tuple[int, int],
    valign: VAlign,
    rasterizer,
    halign: HAlign = HAlign.CENTER,
    outline_width: int = 0,
) -> LayoutPlan:
    """Fit text into box at the largest size in size_range.

    Args:
        text: Caption text; newlines force line breaks.
        box: Target rectangle in image coordinates.
        font: Font object understood by the rasterizer.
        size_range: (min_size, max_size), inclusive.
        valign: Where the text block sits vertically in the box.
        rasterizer: Measuring capability (see memecaption.rasterizer).
        halign: Per-line horizontal placement.
        outline_width: Outline stroke width; reserved on every side.

    Returns:
        LayoutPlan whose widest line and total height fit the box.
        Whitespace-only text yields a plan with no lines.

    Raises:
        LayoutFailed: TEXT_TOO_LARGE if the text overflows even at
            min_size, UNBREAKABLE_WORD_TOO_WIDE if a single word is
            wider than the box at min_size.
    """
    min_size, max_size = size_range
    if not 1 <= min_size <= max_size:
        raise ValueError(f"invalid size range ({min_size}, {max_size})")

    segments = split_hard_lines(text)
    if not any(s.strip() for s in segments):
        return _empty_plan(box, max_size, valign, outline_width)

    if box.width <= 2 * outline_width or box.height <= 2 * outline_width:
        raise LayoutFailed(
            LayoutReason.TEXT_TOO_LARGE,
            f"box {box.width}x{box.height} leaves no room for text",
        )

    def attempt_at(size):
        return _try_size(segments, box, font, size, rasterizer, outline_width)

    best = attempt_at(max_size)
    if not best.fits:
        smallest = attempt_at(min_size)
        if not smallest.fits:
            raise LayoutFailed(smallest.reason, smallest.detail)
        # Invariant: lo fits, hi does not.
        lo, hi, best = min_size, max_size, smallest
        while hi - lo > 1:
            mid = (lo + hi) // 2
            candidate = attempt_at(mid)
            if candidate.fits:
                lo, best = mid, candidate
            else:
                hi = mid

    logger.debug(
        "Laid out {} line(s) at size {} in {}x{} box",
        len(best.lines), best.size, box.width, box.height,
    )
    return _place(best, box, VAlign(valign), HAlign(halign), outline_width)
