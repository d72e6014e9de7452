"""Subcommand dispatcher for memecaption.

Usage:
    memecaption render   --templates ... --fonts ... --manifest ... --output ...
    memecaption list     --templates ... --fonts ...
    memecaption validate --manifest ...
"""

import argparse
import sys


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="memecaption",
        description="Image macro captioning: render, list resources, validate manifests.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register subcommands. Each delegates to its own main() in cli.py.
    subparsers.add_parser("render", help="Render a YAML manifest to an image")
    subparsers.add_parser("list", help="List available templates and fonts")
    subparsers.add_parser("validate", help="Validate a YAML manifest")

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        parser.print_help()
        sys.exit(1)

    from . import cli

    if parsed.command == "render":
        cli.render_main(remaining)
    elif parsed.command == "list":
        cli.list_main(remaining)
    elif parsed.command == "validate":
        cli.validate_main(remaining)


if __name__ == "__main__":
    main()
