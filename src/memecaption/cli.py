"""CLI for captioning, resource listing and manifest validation.

Usage:
    # Render a manifest to an image
    memecaption render --templates templates/ --fonts fonts/ \
        --manifest zoidberg.yaml --output zoidberg.png

    # Render with an engine config file and debug logging
    memecaption render --templates templates/ --fonts fonts/ \
        --manifest zoidberg.yaml --output out.jpg --config engine.yaml -v

    # List available templates and fonts
    memecaption list --templates templates/ --fonts fonts/

    # Validate a manifest only (no rendering)
    memecaption validate --manifest zoidberg.yaml
"""

import argparse
import sys
import time
from pathlib import Path

from loguru import logger

from .config import EngineConfig, load_config
from .engine import Engine
from .manifest import load_manifest


def configure_logging(verbose: bool = False) -> None:
    """Route loguru output to stderr at INFO, or DEBUG when verbose."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def _add_store_args(parser):
    parser.add_argument(
        "--templates", required=True,
        help="Directory of template images (identifier = file stem)",
    )
    parser.add_argument(
        "--fonts", required=True,
        help="Directory of .ttf/.otf fonts (identifier = file stem)",
    )


def _describe(caption) -> str:
    text = caption.text.replace("\n", " ")
    if len(text) > 60:
        text = text[:57] + "..."
    return f"{caption.valign.value:<6} {text}"


# ── render ────────────────────────────────────────────────────────


def render_main(args=None):
    parser = argparse.ArgumentParser(
        prog="memecaption render",
        description="Render an image macro manifest to an image file.",
    )
    _add_store_args(parser)
    parser.add_argument(
        "--manifest", required=True,
        help="Path to YAML image macro manifest",
    )
    parser.add_argument(
        "--output", required=True,
        help="Output image path",
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to YAML engine config (default: built-in defaults)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log cache, layout and encoding details",
    )
    parsed = parser.parse_args(args)
    configure_logging(parsed.verbose)

    config = load_config(parsed.config) if parsed.config else EngineConfig()
    image_macro = load_manifest(parsed.manifest)

    print(f"Rendering {image_macro.template} ({len(image_macro.captions)} captions)")
    t0 = time.monotonic()
    with Engine(parsed.templates, parsed.fonts, config=config) as engine:
        output = engine.render(image_macro)
    elapsed = time.monotonic() - t0

    out_path = Path(parsed.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(output.data)
    print(f"Done: {out_path} ({output.format}, {len(output.data)} bytes, {elapsed:.2f}s)")


# ── list ──────────────────────────────────────────────────────────


def list_main(args=None):
    parser = argparse.ArgumentParser(
        prog="memecaption list",
        description="List the templates and fonts the engine can load.",
    )
    _add_store_args(parser)
    parsed = parser.parse_args(args)

    engine = Engine(parsed.templates, parsed.fonts)
    templates = engine.list_templates()
    fonts = engine.list_fonts()

    print(f"Templates ({len(templates)}):")
    for name in templates:
        print(f"  {name}")
    print(f"Fonts ({len(fonts)}):")
    for name in fonts:
        print(f"  {name}")


# ── validate ──────────────────────────────────────────────────────


def validate_main(args=None):
    parser = argparse.ArgumentParser(
        prog="memecaption validate",
        description="Validate an image macro manifest without rendering.",
    )
    parser.add_argument(
        "--manifest", required=True,
        help="Path to YAML image macro manifest",
    )
    parsed = parser.parse_args(args)

    image_macro = load_manifest(parsed.manifest)
    print(f"Manifest valid: template '{image_macro.template}', "
          f"{len(image_macro.captions)} captions")
    for i, caption in enumerate(image_macro.captions):
        print(f"  {i}: {_describe(caption)}")
