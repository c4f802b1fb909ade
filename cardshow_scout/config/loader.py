"""YAML loader for the source seed list.

The seed file lists the web pages to scrape.  It is the configuration-time
entry point of the Source Registry: ``cli sources import`` reads it and
upserts each entry, leaving runtime counters (priority, error streak,
timestamps) untouched for sources that already exist.

Expected shape::

    sources:
      - url: https://www.example-cardshow.com/
        priority_score: 60
      - url: https://dpmsportcards.com/indiana-card-shows/
        enabled: false
        config:
          state: IN
"""

from pathlib import Path

import yaml

from cardshow_scout.models.source import SourceSeed
from cardshow_scout.utils.errors import ConfigurationError


def load_source_seeds(path: str | Path) -> list[SourceSeed]:
    """Load and validate source seeds from a YAML file.

    Bare strings in the ``sources`` list are accepted as URLs.

    Raises:
        ConfigurationError: If the file is missing or malformed.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"Source seed file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict) or not isinstance(data.get("sources", []), list):
        raise ConfigurationError(f"{config_path}: expected a top-level 'sources' list")

    seeds: list[SourceSeed] = []
    for entry in data.get("sources", []):
        if isinstance(entry, str):
            entry = {"url": entry}
        try:
            seeds.append(SourceSeed(**entry))
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"{config_path}: invalid source entry {entry!r}: {exc}") from exc
    return seeds
