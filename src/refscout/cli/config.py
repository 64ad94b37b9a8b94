"""Config command: show or change the saved discovery settings."""

import sys
from dataclasses import asdict


def register(subparsers):
    """Register the config command."""
    p = subparsers.add_parser("config", help="Show or change saved discovery settings")
    p.add_argument(
        "--set",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        dest="set_values",
        help="Save a discovery setting, e.g. --set min_publications=2 (repeatable)",
    )
    p.add_argument(
        "--unset",
        action="append",
        default=[],
        metavar="KEY",
        help="Remove a saved setting so its default applies again (repeatable)",
    )
    p.set_defaults(func=cmd_config)


def _parse_assignments(values):
    updates = {}
    for item in values:
        key, sep, raw = item.partition("=")
        if not sep or not key.strip():
            print(f"Error: Expected KEY=VALUE, got {item!r}")
            sys.exit(1)
        updates[key.strip()] = raw.strip()
    return updates


# --- Command handlers ---


def cmd_config(args):
    """Save any requested changes, then print the effective settings."""
    from refscout.config import get_config_path, load_discovery_config, update_discovery_settings
    from refscout.errors import ConfigurationError

    updates = _parse_assignments(args.set_values)
    if updates or args.unset:
        try:
            saved = update_discovery_settings(updates, unset=args.unset)
        except ConfigurationError as e:
            print(f"Error: {e}")
            sys.exit(1)
        print(f"Saved {len(saved)} setting(s) to {get_config_path()}")

    print("Effective discovery settings:")
    for key, value in asdict(load_discovery_config()).items():
        print(f"  {key}: {value}")
