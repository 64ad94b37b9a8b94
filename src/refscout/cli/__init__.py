"""Command-line interface for refscout."""

import argparse
import logging
import sys

from dotenv import load_dotenv

# Load .env file from project root
load_dotenv()


def main():
    """Main CLI entry point."""
    from refscout.cli import analyze, config, discover

    modules = [analyze, discover, config]

    from refscout import __version__

    parser = argparse.ArgumentParser(
        prog="refscout",
        description="Find and verify peer reviewers for a research proposal",
    )
    parser.add_argument("--version", action="version", version=f"refscout {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for mod in modules:
        mod.register(subparsers)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()
        sys.exit(1)
