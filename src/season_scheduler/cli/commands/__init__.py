"""CLI command modules; importing them registers their commands on the app."""

from . import feedback, planning, profile  # noqa: F401
