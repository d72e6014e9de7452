"""Request data model: alignments, captions and image macros.

An ImageMacro names a template and carries an ordered list of Captions.
Style fields left as None on a Caption fall back to the macro's
`defaults` Style, then to the engine config (see resolve_style).
"""

from dataclasses import dataclass, field
from enum import Enum

from .common import Color


class VAlign(str, Enum):
    TOP = "top"
    MIDDLE = "middle"
    BOTTOM = "bottom"


class HAlign(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


def _check_size_bounds(size_bounds) -> None:
    if size_bounds is None:
        return
    lo, hi = size_bounds
    if lo < 1 or hi < lo:
        raise ValueError(
            f"size bounds must satisfy 1 <= min <= max, got ({lo}, {hi})"
        )


@dataclass(frozen=True)
class Style:
    """Optional style fields shared by Caption and ImageMacro.defaults."""

    halign: HAlign | None = None
    font: str | None = None
    size_bounds: tuple[int, int] | None = None
    fill_color: Color | None = None
    outline_color: Color | None = None
    outline_width: int | None = None

    def __post_init__(self):
        _check_size_bounds(self.size_bounds)
        if self.outline_width is not None and self.outline_width < 0:
            raise ValueError(f"outline_width must be >= 0, got {self.outline_width}")


@dataclass(frozen=True)
class Caption:
    """A single piece of text rendered on the image macro.

    Newline characters in `text` force line breaks. An outline_width of
    0 draws the text without an outline.
    """

    text: str
    valign: VAlign
    halign: HAlign | None = None
    font: str | None = None
    size_bounds: tuple[int, int] | None = None
    fill_color: Color | None = None
    outline_color: Color | None = None
    outline_width: int | None = None

    def __post_init__(self):
        object.__setattr__(self, "valign", VAlign(self.valign))
        if self.halign is not None:
            object.__setattr__(self, "halign", HAlign(self.halign))
        _check_size_bounds(self.size_bounds)
        if self.outline_width is not None and self.outline_width < 0:
            raise ValueError(f"outline_width must be >= 0, got {self.outline_width}")

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


@dataclass(frozen=True)
class ImageMacro:
    template: str
    captions: tuple[Caption, ...] = ()
    defaults: Style = field(default_factory=Style)

    def __post_init__(self):
        object.__setattr__(self, "captions", tuple(self.captions))

    @property
    def has_text(self) -> bool:
        return any(not c.is_empty for c in self.captions)


@dataclass(frozen=True)
class ResolvedStyle:
    """Concrete style for one caption after applying all defaults."""

    halign: HAlign
    font: str
    min_size: int
    max_size: int
    fill_color: Color
    outline_color: Color
    outline_width: int


def resolve_style(caption: Caption, defaults: Style, config) -> ResolvedStyle:
    """Resolve caption style: caption value, then macro defaults, then config."""

    def pick(name, fallback):
        value = getattr(caption, name)
        if value is None:
            value = getattr(defaults, name)
        return fallback if value is None else value

    min_size, max_size = pick("size_bounds", (config.min_size, config.max_size))
    return ResolvedStyle(
        halign=HAlign(pick("halign", HAlign.CENTER)),
        font=pick("font", config.default_font),
        min_size=int(min_size),
        max_size=int(max_size),
        fill_color=pick("fill_color", config.fill_color),
        outline_color=pick("outline_color", config.outline_color),
        outline_width=int(pick("outline_width", config.outline_width)),
    )
