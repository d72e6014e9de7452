"""memecaption.common: shared utilities.

Contains: color parsing and palette resolution, resource identifier
normalization.
"""

import unicodedata

from PIL import ImageColor


Color = tuple[int, ...]

WHITE = (255, 255, 255)
BLACK = (0, 0, 0)

_HEX_DIGITS = set("0123456789abcdefABCDEF")

# Prefixes other than '#' require a full 24-bit hex number.
_HEX_PREFIXES = ("#", "0x", "0X", "$")


# ── Color utilities ────────────────────────────────────────────────

def parse_hex_color(hex_str: str) -> tuple[int, int, int]:
    """Convert '#RRGGBB', '#RGB', '0xRRGGBB', '$RRGGBB' or 'RRGGBB' to (R, G, B)."""
    value = hex_str.strip()
    for prefix in _HEX_PREFIXES:
        if value.startswith(prefix):
            value = value[len(prefix):]
            if prefix != "#" and len(value) != 6:
                raise ValueError(f"Invalid hex color: '{hex_str}'")
            break
    if not value or not set(value) <= _HEX_DIGITS:
        raise ValueError(f"Invalid hex color: '{hex_str}'")
    if len(value) == 3:
        value = "".join(c * 2 for c in value)
    if len(value) != 6:
        raise ValueError(f"Invalid hex color: '{hex_str}'")
    return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))


def _looks_like_hex(value: str) -> bool:
    if value.startswith(_HEX_PREFIXES):
        return True
    return len(value) in (3, 6) and set(value) <= _HEX_DIGITS


def _channels(values, original) -> Color:
    channels = tuple(values)
    if len(channels) not in (3, 4):
        raise ValueError(f"Color needs 3 or 4 channels, got {original!r}")
    for c in channels:
        if isinstance(c, bool) or not isinstance(c, int) or not 0 <= c <= 255:
            raise ValueError(f"Color channels must be integers 0-255, got {original!r}")
    return channels


def parse_color(value) -> Color:
    """Parse a color given as a string, a sequence or an r/g/b mapping.

    Strings may be hex (see parse_hex_color) or anything Pillow's
    ImageColor understands (CSS names, rgb(...), hsl(...)).
    Sequences are [r, g, b] or [r, g, b, a]. Mappings use the keys
    r/g/b (or red/green/blue), case-insensitive.
    """
    if isinstance(value, str):
        text = value.strip()
        if _looks_like_hex(text):
            return parse_hex_color(text)
        try:
            return ImageColor.getrgb(text)
        except ValueError:
            raise ValueError(f"Unknown color: '{value}'") from None
    if isinstance(value, dict):
        aliases = {"r": "r", "red": "r", "g": "g", "green": "g", "b": "b", "blue": "b"}
        found = {}
        for key, channel in value.items():
            name = aliases.get(str(key).strip().lower())
            if name is None:
                raise ValueError(f"Unknown color channel '{key}' in {value!r}")
            if name in found:
                raise ValueError(f"Duplicate color channel '{name}' in {value!r}")
            found[name] = channel
        missing = [c for c in "rgb" if c not in found]
        if missing:
            raise ValueError(f"Color {value!r} is missing channel(s): {', '.join(missing)}")
        return _channels((found["r"], found["g"], found["b"]), value)
    if isinstance(value, (list, tuple)):
        return _channels(value, value)
    raise ValueError(f"Unknown color: {value!r}")


def resolve_color(value, palette: dict[str, Color]) -> Color:
    """Resolve a color reference: a palette key name or an inline color.

    Palette keys are tried first, then parse_color(). Unknown values
    raise ValueError.
    """
    if isinstance(value, str) and value in palette:
        return palette[value]
    return parse_color(value)


def with_alpha(color: Color) -> tuple[int, int, int, int]:
    """Return color as an RGBA tuple (opaque unless alpha was given)."""
    if len(color) == 4:
        return tuple(color)
    r, g, b = color
    return (r, g, b, 255)


# ── Identifiers ────────────────────────────────────────────────────

def normalize_id(resource_id: str) -> str:
    """Normalize a template/font identifier for cache lookups.

    Strips surrounding whitespace and applies Unicode NFC so visually
    identical names share one cache entry.
    """
    return unicodedata.normalize("NFC", resource_id.strip())
