"""Manifest loader for image macro requests.

Parses a YAML request file into an ImageMacro. Keys are trimmed and
lowercased at every level, colors are resolved against the optional
`colors` palette, and every field is validated with a message naming
the offending caption and key.

Schema:

    template: zoidberg                  # required
    colors: {shout: "#ff0000"}          # optional palette
    defaults:                           # optional, applies to every caption
      font: Impact
      color: white
      outline: black                    # null disables the outline
      outline_width: 2
      size: [8, 64]                     # [min, max] or a single size
      align: center
    captions:
      - {text: "Need a meme?", valign: top}
      - {text: "Why not Zoidberg?", valign: bottom, color: shout}

Shorthand keys add one caption per alignment after the `captions` list:
top_text / middle_text / bottom_text, each with optional _align, _font,
_color, _outline and _size companions. Top-level font, color, outline,
outline_width, size and align apply to every caption, like `defaults`.
"""

from pathlib import Path

import yaml

from .common import resolve_color
from .model import Caption, HAlign, ImageMacro, Style, VAlign


# ── Limits and valid values ───────────────────────────────────────

MAX_CAPTION_COUNT = 16

MAX_CAPTION_LENGTH = 256

VALID_VALIGNS = {v.value for v in VAlign}

VALID_HALIGNS = {h.value for h in HAlign}

# Style keys accepted on a caption, in `defaults`, and wholesale.
STYLE_KEYS = {"align", "font", "color", "outline", "outline_width", "size"}

CAPTION_KEYS = STYLE_KEYS | {"text", "valign"}

# Shorthand prefix -> vertical alignment, in the order captions are added.
SHORTHAND_PREFIXES = {"top": VAlign.TOP, "middle": VAlign.MIDDLE, "bottom": VAlign.BOTTOM}

SHORTHAND_SUFFIXES = {"text", "align", "font", "color", "outline", "size"}

TOP_LEVEL_KEYS = (
    {"template", "colors", "defaults", "captions"}
    | STYLE_KEYS
    | {f"{p}_{s}" for p in SHORTHAND_PREFIXES for s in SHORTHAND_SUFFIXES}
)


# ── Manifest loading ──────────────────────────────────────────────


def load_manifest(manifest_path: str | Path) -> ImageMacro:
    """Load and validate an image macro request from a YAML file.

    Raises:
        ValueError: Invalid structure, unknown key, bad color or limit
            exceeded.
        FileNotFoundError: Missing manifest file.
    """
    with open(manifest_path) as f:
        raw = yaml.safe_load(f)
    return parse_image_macro(raw)


def parse_image_macro(raw: dict) -> ImageMacro:
    """Build an ImageMacro from a parsed manifest mapping."""
    if not isinstance(raw, dict):
        raise ValueError("Manifest must be a mapping")
    raw = _normalize_keys(raw, "Manifest")
    _check_keys(raw, TOP_LEVEL_KEYS, "Manifest")

    template = raw.get("template")
    if not isinstance(template, str) or not template.strip():
        raise ValueError("Manifest: 'template' must be a non-empty string")

    # Palette: name -> color, usable anywhere a color is expected.
    palette = {}
    colors = raw.get("colors") or {}
    if not isinstance(colors, dict):
        raise ValueError("Manifest: 'colors' must be a mapping")
    for name, value in colors.items():
        try:
            palette[name] = resolve_color(value, {})
        except ValueError as e:
            raise ValueError(f"Manifest: colors.{name}: {e}") from e

    # Defaults block, plus wholesale style keys at the top level.
    defaults_raw = raw.get("defaults") or {}
    if not isinstance(defaults_raw, dict):
        raise ValueError("Manifest: 'defaults' must be a mapping")
    defaults_raw = _normalize_keys(defaults_raw, "Defaults")
    _check_keys(defaults_raw, STYLE_KEYS, "Defaults")
    for key in STYLE_KEYS & raw.keys():
        if key in defaults_raw:
            raise ValueError(
                f"Manifest: '{key}' is set both at the top level and in 'defaults'"
            )
        defaults_raw[key] = raw[key]
    defaults = Style(**_parse_style(defaults_raw, palette, "Defaults"))

    captions = []
    caption_list = raw.get("captions") or []
    if not isinstance(caption_list, list):
        raise ValueError("Manifest: 'captions' must be a list")
    for i, entry in enumerate(caption_list):
        if not isinstance(entry, dict):
            raise ValueError(f"Caption {i}: must be a mapping")
        entry = _normalize_keys(entry, f"Caption {i}")
        captions.append(_parse_caption(entry, palette, f"Caption {i}"))

    for prefix, valign in SHORTHAND_PREFIXES.items():
        if f"{prefix}_text" not in raw:
            if any(f"{prefix}_{s}" in raw for s in SHORTHAND_SUFFIXES):
                raise ValueError(f"Manifest: '{prefix}_*' style keys given without '{prefix}_text'")
            continue
        entry = {"valign": valign.value}
        for suffix in SHORTHAND_SUFFIXES:
            key = f"{prefix}_{suffix}"
            if key in raw:
                entry[suffix] = raw[key]
        captions.append(_parse_caption(entry, palette, f"Caption '{prefix}_text'"))

    if len(captions) > MAX_CAPTION_COUNT:
        raise ValueError(
            f"Manifest: too many captions ({len(captions)}), "
            f"maximum is {MAX_CAPTION_COUNT}"
        )

    return ImageMacro(template=template.strip(), captions=tuple(captions), defaults=defaults)


# ── Helpers ───────────────────────────────────────────────────────


def _normalize_keys(mapping: dict, prefix: str) -> dict:
    """Trim and lowercase mapping keys, rejecting collisions."""
    normalized = {}
    for key, value in mapping.items():
        name = str(key).strip().lower()
        if name in normalized:
            raise ValueError(f"{prefix}: duplicate key '{name}'")
        normalized[name] = value
    return normalized


def _check_keys(mapping: dict, valid: set, prefix: str) -> None:
    unknown = sorted(set(mapping) - valid)
    if unknown:
        raise ValueError(
            f"{prefix}: unknown key '{unknown[0]}'. Valid: {sorted(valid)}"
        )


def _parse_caption(entry: dict, palette: dict, prefix: str) -> Caption:
    _check_keys(entry, CAPTION_KEYS, prefix)

    if "text" not in entry:
        raise ValueError(f"{prefix}: missing required field 'text'")
    text = entry["text"]
    if text is None:
        text = ""
    if not isinstance(text, (str, int, float)) or isinstance(text, bool):
        raise ValueError(f"{prefix}: 'text' must be a string")
    text = str(text)
    if len(text) > MAX_CAPTION_LENGTH:
        raise ValueError(
            f"{prefix}: text is {len(text)} characters, "
            f"maximum is {MAX_CAPTION_LENGTH}"
        )

    if "valign" not in entry:
        raise ValueError(f"{prefix}: missing required field 'valign'")
    valign = str(entry["valign"]).strip().lower()
    if valign not in VALID_VALIGNS:
        raise ValueError(
            f"{prefix}: invalid valign '{entry['valign']}'. "
            f"Valid: {sorted(VALID_VALIGNS)}"
        )

    style = _parse_style(entry, palette, prefix)
    return Caption(text=text, valign=VAlign(valign), **style)


def _parse_style(entry: dict, palette: dict, prefix: str) -> dict:
    """Translate manifest style keys into Caption/Style keyword arguments."""
    style = {}

    if entry.get("align") is not None:
        align = str(entry["align"]).strip().lower()
        if align not in VALID_HALIGNS:
            raise ValueError(
                f"{prefix}: invalid align '{entry['align']}'. "
                f"Valid: {sorted(VALID_HALIGNS)}"
            )
        style["halign"] = HAlign(align)

    if entry.get("font") is not None:
        font = entry["font"]
        if not isinstance(font, str) or not font.strip():
            raise ValueError(f"{prefix}: 'font' must be a non-empty string")
        style["font"] = font.strip()

    if entry.get("color") is not None:
        style["fill_color"] = _color(entry["color"], palette, prefix, "color")

    if "outline" in entry:
        if entry["outline"] is None:
            style["outline_width"] = 0
        else:
            style["outline_color"] = _color(entry["outline"], palette, prefix, "outline")

    if entry.get("outline_width") is not None:
        width = entry["outline_width"]
        if isinstance(width, bool) or not isinstance(width, int) or width < 0:
            raise ValueError(f"{prefix}: 'outline_width' must be a non-negative integer")
        if style.get("outline_width") == 0 and width > 0:
            raise ValueError(f"{prefix}: 'outline' is null but 'outline_width' is {width}")
        style["outline_width"] = width

    if entry.get("size") is not None:
        style["size_bounds"] = _size_bounds(entry["size"], prefix)

    return style


def _color(value, palette: dict, prefix: str, key: str):
    try:
        return resolve_color(value, palette)
    except ValueError as e:
        raise ValueError(f"{prefix}: '{key}': {e}") from e


def _size_bounds(value, prefix: str) -> tuple[int, int]:
    """A single size means exactly that size; [min, max] is a range."""
    if isinstance(value, int) and not isinstance(value, bool):
        bounds = (value, value)
    elif isinstance(value, list) and len(value) == 2 and all(
        isinstance(v, int) and not isinstance(v, bool) for v in value
    ):
        bounds = (value[0], value[1])
    else:
        raise ValueError(f"{prefix}: 'size' must be an integer or [min, max]")
    if bounds[0] < 1 or bounds[1] < bounds[0]:
        raise ValueError(
            f"{prefix}: 'size' must satisfy 1 <= min <= max, got {list(bounds)}"
        )
    return bounds
