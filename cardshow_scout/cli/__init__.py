"""Command-line interface for cardshow_scout."""
