"""Configuration loading for the planning engine."""
