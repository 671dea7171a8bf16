"""Command-line interface for season-scheduler."""
