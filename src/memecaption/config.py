"""Engine configuration.

EngineConfig holds every tunable of the captioning engine with its
documented default. It can be built in code or loaded from a YAML file:

    default_font: Impact
    fill_color: "#ffffff"
    outline_color: black
    outline_width: 2
    min_size: 8
    max_size: 64
    band_policy: stack        # or: split
    band_fraction: 0.333
    output_format: PNG        # PNG, JPEG, GIF or "template"
    jpeg_quality: 85
"""

from dataclasses import dataclass, fields
from pathlib import Path

import yaml

from .common import BLACK, WHITE, Color, parse_color
from .errors import ConfigError


VALID_BAND_POLICIES = {"stack", "split"}

VALID_OUTPUT_FORMATS = {"PNG", "JPEG", "GIF", "TEMPLATE"}

_COLOR_FIELDS = {"fill_color", "outline_color"}


@dataclass(frozen=True)
class EngineConfig:
    default_font: str = "Impact"
    fill_color: Color = WHITE
    outline_color: Color = BLACK
    outline_width: int = 2
    min_size: int = 8
    max_size: int = 64
    # Band reservation: each vertical alignment owns band_fraction of
    # the drawable height. "stack" packs same-alignment captions tightly,
    # "split" divides the region equally between them.
    band_policy: str = "stack"
    band_fraction: float = 1 / 3
    # Drawable area margin: min(max_margin px, margin_fraction of dimension).
    margin_fraction: float = 0.02
    max_margin: int = 16
    output_format: str = "PNG"
    jpeg_quality: int = 85

    def __post_init__(self):
        object.__setattr__(self, "output_format", str(self.output_format).upper())
        if not self.default_font or not str(self.default_font).strip():
            raise ConfigError("default_font must be a non-empty string")
        if self.outline_width < 0:
            raise ConfigError(f"outline_width must be >= 0, got {self.outline_width}")
        if not 1 <= self.min_size <= self.max_size:
            raise ConfigError(
                f"size bounds must satisfy 1 <= min_size <= max_size, "
                f"got ({self.min_size}, {self.max_size})"
            )
        if self.band_policy not in VALID_BAND_POLICIES:
            raise ConfigError(
                f"Unknown band_policy '{self.band_policy}'. "
                f"Valid: {sorted(VALID_BAND_POLICIES)}"
            )
        if not 0 < self.band_fraction <= 1:
            raise ConfigError(
                f"band_fraction must be in (0, 1], got {self.band_fraction}"
            )
        if not 0 <= self.margin_fraction < 0.5 or self.max_margin < 0:
            raise ConfigError("margin_fraction must be in [0, 0.5) and max_margin >= 0")
        if self.output_format not in VALID_OUTPUT_FORMATS:
            raise ConfigError(
                f"Unknown output_format '{self.output_format}'. "
                f"Valid: {sorted(VALID_OUTPUT_FORMATS)}"
            )
        if not 1 <= self.jpeg_quality <= 100:
            raise ConfigError(f"jpeg_quality must be in 1-100, got {self.jpeg_quality}")


def config_from_dict(raw: dict) -> EngineConfig:
    """Build an EngineConfig from a plain dict (e.g. parsed YAML).

    Raises:
        ConfigError: Unknown keys or invalid values.
    """
    if not isinstance(raw, dict):
        raise ConfigError("Engine config must be a mapping")

    known = {f.name for f in fields(EngineConfig)}
    values = {}
    for key, value in raw.items():
        name = str(key).strip().lower()
        if name not in known:
            raise ConfigError(f"Unknown config key '{key}'. Valid: {sorted(known)}")
        if name in _COLOR_FIELDS:
            try:
                value = parse_color(value)
            except ValueError as e:
                raise ConfigError(f"{name}: {e}") from e
        values[name] = value

    try:
        return EngineConfig(**values)
    except TypeError as e:
        raise ConfigError(str(e)) from e


def load_config(config_path: str | Path) -> EngineConfig:
    """Load an EngineConfig from a YAML file. An empty file yields defaults."""
    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
    return config_from_dict(raw or {})
