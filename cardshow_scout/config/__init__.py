"""Configuration module: exports Settings and the source seed loader."""

from cardshow_scout.config.loader import load_source_seeds
from cardshow_scout.config.settings import Settings

__all__ = ["Settings", "load_source_seeds"]
