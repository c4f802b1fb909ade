"""cardshow_scout: scrape trading-card show listings into a human review queue."""

__version__ = "0.1.0"
