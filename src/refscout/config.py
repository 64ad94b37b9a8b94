"""Discovery configuration.

Settings live in ~/.refscout/config.json under the "discovery" key and can be
overridden per process with REFSCOUT_<FIELD> environment variables
(e.g. REFSCOUT_MIN_PUBLICATIONS=2).
"""

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional, Sequence

from refscout.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Default LLM model for analysis and reasoning
DEFAULT_LLM_MODEL = "claude-sonnet-4-5"
FALLBACK_LLM_MODEL = "claude-haiku-4-5-20251001"

# PubMed allows 3 req/s without an API key, 10 req/s with one
PUBMED_DELAY = 0.4
PUBMED_DELAY_WITH_KEY = 0.1


@dataclass(frozen=True)
class DiscoveryConfig:
    """Tunable parameters for one discovery run."""

    # Verification
    min_publications: int = 3  # matched articles needed to mark a suggestion verified
    discovered_min_publications: int = 1
    years_lookback: int = 5
    max_query_variants: int = 3  # name variants actually sent to the index per suggestion
    simple_max_results: int = 30
    disambiguated_max_results: int = 20

    # Discovery
    discovery_max_results: int = 50
    search_pubmed: bool = True
    search_arxiv: bool = True
    search_biorxiv: bool = True
    biorxiv_window_years: int = 2

    # Concurrency and pacing
    max_concurrency: int = 2
    index_delay: float = PUBMED_DELAY  # minimum gap between calls to the same index (seconds)
    request_timeout: float = 15.0

    # Reasoning
    generate_reasoning: bool = True
    reasoning_batch_size: int = 10
    reasoning_batch_pause: float = 0.5
    drop_irrelevant: bool = True

    # Conflict of interest (None = every matched article counts)
    coi_window_years: Optional[int] = None

    def enabled_indices(self) -> list[str]:
        enabled = []
        if self.search_pubmed:
            enabled.append("pubmed")
        if self.search_arxiv:
            enabled.append("arxiv")
        if self.search_biorxiv:
            enabled.append("biorxiv")
        return enabled


def get_config_dir() -> Path:
    """Get the refscout config directory (REFSCOUT_HOME or ~/.refscout)."""
    home = os.getenv("REFSCOUT_HOME")
    return Path(home) if home else Path.home() / ".refscout"


def get_config_path() -> Path:
    return get_config_dir() / "config.json"


def get_config() -> dict:
    """Load the JSON config file, or an empty dict when it does not exist."""
    config_path = get_config_path()
    if not config_path.exists():
        return {}
    try:
        with open(config_path) as f:
            return json.loads(f.read())
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable config %s: %s", config_path, e)
        return {}


def save_config(config: dict) -> None:
    """Save configuration to JSON file."""
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    get_config_path().write_text(json.dumps(config, indent=2))


def _coerce(raw: str, current):
    """Convert an env var string to the type of the field's default."""
    if isinstance(current, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    if current is None:
        # Only Optional[int] fields default to None
        return None if raw.strip().lower() in ("", "none", "null") else int(raw)
    return raw


def update_discovery_settings(updates: dict[str, str], unset: Sequence[str] = ()) -> dict:
    """Persist discovery settings to config.json.

    Values arrive as strings (from the command line) and are converted to the
    type of the field's default.

    Returns:
        The saved "discovery" section.

    Raises:
        ConfigurationError: For an unknown setting or a value of the wrong type.
    """
    defaults = DiscoveryConfig()
    known = {f.name for f in fields(DiscoveryConfig)}
    for key in [*updates, *unset]:
        if key not in known:
            raise ConfigurationError(f"Unknown discovery setting: {key}")

    config = get_config()
    section = dict(config.get("discovery", {}))
    for key, raw in updates.items():
        try:
            section[key] = _coerce(raw, getattr(defaults, key))
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {key}: {raw!r}") from e
    for key in unset:
        section.pop(key, None)

    config["discovery"] = section
    save_config(config)
    logger.info("Saved discovery settings to %s", get_config_path())
    return section


def load_discovery_config(overrides: Optional[dict] = None) -> DiscoveryConfig:
    """Build a DiscoveryConfig from config.json, environment and explicit overrides.

    Precedence (lowest to highest): dataclass defaults, config.json "discovery"
    section, REFSCOUT_* environment variables, ``overrides``.

    """
    config = DiscoveryConfig()

    known = {f.name for f in fields(DiscoveryConfig)}
    file_values = {k: v for k, v in get_config().get("discovery", {}).items() if k in known}
    unknown = set(get_config().get("discovery", {})) - known
    if unknown:
        logger.warning("Unknown discovery settings in config.json: %s", sorted(unknown))
    config = replace(config, **file_values)

    env_values = {}
    for f in fields(DiscoveryConfig):
        raw = os.getenv(f"REFSCOUT_{f.name.upper()}")
        if raw is None:
            continue
        try:
            env_values[f.name] = _coerce(raw, getattr(config, f.name))
        except ValueError:
            logger.warning("Ignoring invalid REFSCOUT_%s=%r", f.name.upper(), raw)
    config = replace(config, **env_values)

    if overrides:
        config = replace(config, **{k: v for k, v in overrides.items() if k in known})
    return config
