"""Macro composition engine: the captioning orchestrator.

Engine.caption() turns an ImageMacro into encoded image bytes:

  1. Resolve the template (store hit or cold load).
  2. Lay out every non-empty caption: resolve its style and font,
     reserve its band, fit the text (see _layout_captions).
  3. Copy the template pixels into request-owned buffers (every frame
     of an animated template when the output is GIF) and render the
     plans in declared caption order.
  4. Encode the buffer, or the frames as an animated GIF.

Any failure raises a CaptionError and no image is produced. The stores
are the only state shared between calls, so one Engine can serve many
threads at once.

Band reservation (drawable area = image minus margins):

  ┌──────────────────────────────┐
  │ top region     (fraction f)  │  top captions stack downward
  │                              │
  │ middle region  (fraction f)  │  middle stack is centered as a group
  │                              │
  │ bottom region  (fraction f)  │  bottom captions stack upward
  └──────────────────────────────┘

Stacked captions each get at least an equal share of their region,
or the height they need at their minimum size if that is more.

With band_policy "split" each region is instead divided into equal
sub-bands, one per caption, in declared order.
"""

import io
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from loguru import logger
from PIL import Image

from .config import EngineConfig
from .errors import EncodeError, LayoutFailed, LayoutReason
from .fonts import FontStore
from .layout import Box, LayoutPlan, compute_layout
from .model import Caption, ImageMacro, ResolvedStyle, VAlign, resolve_style
from .rasterizer import PillowRasterizer
from .render import render
from .templates import TemplateStore


MIME_TYPES = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "GIF": "image/gif",
}


@dataclass(frozen=True)
class CaptionOutput:
    format: str
    data: bytes

    @property
    def mime_type(self) -> str:
        return MIME_TYPES[self.format]


@dataclass(frozen=True)
class _Planned:
    index: int
    plan: LayoutPlan
    style: ResolvedStyle
    font: object


# ── Geometry ─────────────────────────────────────────────────────


def drawable_area(width: int, height: int, config: EngineConfig) -> Box:
    """Image rectangle minus a margin of min(max_margin, fraction) per side."""
    margin_x = min(config.max_margin, int(width * config.margin_fraction))
    margin_y = min(config.max_margin, int(height * config.margin_fraction))
    return Box(margin_x, margin_y, width - 2 * margin_x, height - 2 * margin_y)


def alignment_regions(area: Box, band_fraction: float) -> dict[VAlign, Box]:
    """Region of the drawable area owned by each vertical alignment."""
    band_h = int(area.height * band_fraction)
    return {
        VAlign.TOP: Box(area.x, area.y, area.width, band_h),
        VAlign.MIDDLE: Box(area.x, area.y + (area.height - band_h) // 2, area.width, band_h),
        VAlign.BOTTOM: Box(area.x, area.bottom - band_h, area.width, band_h),
    }


# ── Encoding ─────────────────────────────────────────────────────


def encode_image(buffer: np.ndarray, fmt: str, jpeg_quality: int = 85) -> bytes:
    """Encode an RGBA buffer as PNG, JPEG or GIF bytes.

    Raises:
        EncodeError: Unsupported format or encoder failure.
    """
    if fmt not in MIME_TYPES:
        raise EncodeError(f"unsupported output format '{fmt}'")
    out = io.BytesIO()
    try:
        img = Image.fromarray(buffer)
        if fmt == "PNG":
            img.save(out, format="PNG")
        elif fmt == "JPEG":
            img.convert("RGB").save(out, format="JPEG", quality=jpeg_quality)
        else:
            img.convert("RGB").quantize(colors=256).save(out, format="GIF")
    except (OSError, ValueError, TypeError) as e:
        raise EncodeError(f"failed to encode the final image as {fmt}: {e}") from e
    return out.getvalue()


def encode_animation(
    frames: list[np.ndarray],
    durations: tuple[int, ...],
    loop: int | None = None,
) -> bytes:
    """Encode RGBA frames as an animated GIF.

    Args:
        frames: One RGBA buffer per frame, all the same size.
        durations: Display time of each frame in milliseconds.
        loop: GIF loop count (0 = forever); None writes no loop
            extension, so the animation plays once.

    Raises:
        EncodeError: Encoder failure.
    """
    out = io.BytesIO()
    options = {"loop": loop} if loop is not None else {}
    try:
        images = [Image.fromarray(f).convert("RGB").quantize(colors=256) for f in frames]
        images[0].save(
            out, format="GIF", save_all=True, append_images=images[1:],
            duration=list(durations), **options,
        )
    except (OSError, ValueError, TypeError) as e:
        raise EncodeError(f"failed to encode the final animation as GIF: {e}") from e
    return out.getvalue()


# ── Engine ───────────────────────────────────────────────────────


class Engine:
    """Image macro captioning engine.

    Args:
        template_dir: Directory of template images (id = file stem).
        font_dir: Directory of .ttf/.otf fonts (id = file stem).
        config: Engine configuration; defaults to EngineConfig().
        rasterizer: Glyph capability; defaults to PillowRasterizer().

    Raises:
        ConfigError: Either directory is missing or unreadable.
    """

    def __init__(
        self,
        template_dir: str | Path,
        font_dir: str | Path,
        config: EngineConfig | None = None,
        rasterizer=None,
    ):
        self.config = config or EngineConfig()
        self.templates = TemplateStore(template_dir)
        self.fonts = FontStore(font_dir)
        self.rasterizer = rasterizer or PillowRasterizer()

    def __repr__(self):
        return f"Engine(templates={self.templates!r}, fonts={self.fonts!r})"

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self) -> None:
        """Release all cached templates and fonts."""
        self.templates.clear()
        self.fonts.clear()

    # ── Captioning ────────────────────────────────────────────────

    def caption(self, image_macro: ImageMacro) -> bytes:
        """Render image_macro and return the encoded image bytes."""
        return self.render(image_macro).data

    def render(self, image_macro: ImageMacro) -> CaptionOutput:
        """Render image_macro; like caption() but also reports the format."""
        logger.debug("Rendering {!r}", image_macro)
        template = self.templates.get_or_load(image_macro.template)

        planned = self._layout_captions(image_macro, template.width, template.height)

        fmt = self.config.output_format
        if fmt == "TEMPLATE":
            fmt = template.format

        # Only GIF output keeps an animation; other formats get frame 0.
        if fmt == "GIF" and template.is_animated:
            frames = template.copy_frames()
        else:
            frames = [template.copy_pixels()]
        for buffer in frames:
            for item in planned:
                render(buffer, item.plan, item.style, item.font, self.rasterizer)

        logger.debug(
            "Encoding {}x{} image ({} frame(s)) as {}",
            template.width, template.height, len(frames), fmt,
        )
        if len(frames) > 1:
            data = encode_animation(frames, template.durations, template.loop)
        else:
            data = encode_image(frames[0], fmt, self.config.jpeg_quality)
        return CaptionOutput(format=fmt, data=data)

    def _layout_captions(self, image_macro: ImageMacro, width: int, height: int) -> list[_Planned]:
        """Lay out every non-empty caption; returns plans in declared order."""
        # Styles and fonts resolve in declared order, then each alignment
        # group is laid out within its own region.
        groups: dict[VAlign, list[tuple[int, Caption, tuple]]] = {}
        for index, cap in enumerate(image_macro.captions):
            if cap.is_empty:
                logger.debug("Caption {} has empty text, skipping", index)
                continue
            resolved = self._resolve(cap, image_macro)
            groups.setdefault(cap.valign, []).append((index, cap, resolved))

        area = drawable_area(width, height, self.config)
        regions = alignment_regions(area, self.config.band_fraction)

        planned = []
        for valign, prepared in groups.items():
            if self.config.band_policy == "split":
                planned.extend(self._layout_split(regions[valign], valign, prepared))
            else:
                planned.extend(self._layout_stack(regions[valign], valign, prepared))
        planned.sort(key=lambda p: p.index)
        return planned

    def _resolve(self, cap: Caption, image_macro: ImageMacro):
        style = resolve_style(cap, image_macro.defaults, self.config)
        font = self.fonts.get_or_load(style.font)
        return style, font

    def _fit(self, index, cap, box, valign, style, font, sizes=None) -> _Planned:
        try:
            plan = compute_layout(
                cap.text, box, font, sizes or (style.min_size, style.max_size), valign,
                self.rasterizer, halign=style.halign,
                outline_width=style.outline_width,
            )
        except LayoutFailed as e:
            raise e.for_caption(index) from e
        return _Planned(index=index, plan=plan, style=style, font=font)

    def _layout_stack(self, region: Box, valign: VAlign, prepared) -> list[_Planned]:
        """Stack same-alignment captions in declared order.

        Each caption is first measured at its minimum size; if those
        heights together overflow the region, the first caption that no
        longer fits is reported. Otherwise every caption gets a box of at
        least an equal share of the height still free, never less than
        its own minimum, and always leaving the minimum heights of the
        captions after it. Space a caption does not use passes on.
        """
        min_heights = []
        for index, cap, (style, font) in prepared:
            smallest = self._fit(
                index, cap, region, VAlign.TOP, style, font,
                sizes=(style.min_size, style.min_size),
            )
            min_heights.append(smallest.plan.height)
            if sum(min_heights) > region.height:
                raise LayoutFailed(
                    LayoutReason.TEXT_TOO_LARGE,
                    f"stacked captions need {sum(min_heights)}px at their minimum "
                    f"sizes, region is {region.height}px",
                    caption_index=index,
                )

        planned = []
        remaining = region.height
        cursor = region.bottom if valign == VAlign.BOTTOM else region.y
        for j, (index, cap, (style, font)) in enumerate(prepared):
            share = remaining // (len(prepared) - j)
            band_h = min(remaining - sum(min_heights[j + 1:]), max(share, min_heights[j]))
            if valign == VAlign.BOTTOM:
                box = Box(region.x, cursor - band_h, region.width, band_h)
                item = self._fit(index, cap, box, VAlign.BOTTOM, style, font)
                cursor = item.plan.bounds.y
            else:
                box = Box(region.x, cursor, region.width, band_h)
                item = self._fit(index, cap, box, VAlign.TOP, style, font)
                cursor = item.plan.bounds.bottom
            remaining -= item.plan.height
            planned.append(item)

        if valign == VAlign.MIDDLE:
            dy = (region.bottom - cursor) // 2
            planned = [
                _Planned(p.index, p.plan.shifted(dy), p.style, p.font) for p in planned
            ]
        return planned

    def _layout_split(self, region: Box, valign: VAlign, prepared) -> list[_Planned]:
        """Divide the region into equal sub-bands, one per caption."""
        band_h = region.height // len(prepared)
        planned = []
        for j, (index, cap, (style, font)) in enumerate(prepared):
            if valign == VAlign.BOTTOM:
                y = region.bottom - (j + 1) * band_h
            else:
                y = region.y + j * band_h
            box = Box(region.x, y, region.width, band_h)
            planned.append(self._fit(index, cap, box, valign, style, font))
        return planned

    # ── Resources ────────────────────────────────────────────────

    def list_templates(self) -> list[str]:
        return self.templates.list_ids()

    def list_fonts(self) -> list[str]:
        return self.fonts.list_ids()

    def preload_template(self, template_id: str) -> None:
        """Load a template into the cache ahead of the first request."""
        self.templates.preload(template_id)

    def preload_font(self, font_id: str) -> None:
        """Load a font into the cache ahead of the first request."""
        self.fonts.preload(font_id)

    def cache_stats(self) -> dict[str, dict[str, int]]:
        return {"templates": self.templates.stats(), "fonts": self.fonts.stats()}
