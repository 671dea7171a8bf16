"""
YAML → typed config loader.

Loads periodization tables from periodization.yaml (bundled with the
package) and optionally merges user overrides from
~/.season-scheduler/periodization.yaml.

Usage:
    from season_scheduler.core.engine.config_loader import load_model_config, phase_tiers
    cfg = load_model_config()
    tiers = phase_tiers(cfg)

If the bundled YAML cannot be parsed, all lookups return the Python defaults
from config.py (no crash). If the user override file exists but has parse
errors, a warning is logged and the file is ignored.
"""

from __future__ import annotations

import importlib.resources
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from ..config import PHASE_DURATION_TIERS, TAPER_TEMPLATES, PhaseDurations, TaperTemplate

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "periodization.yaml"

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; return {} and log on any error."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring config file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: top level is not a mapping", path)
        return {}
    return data


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_bundled_yaml_path() -> Path | None:
    """Return the path to the bundled periodization.yaml, or None if not found."""
    ref = importlib.resources.files("season_scheduler").joinpath(CONFIG_FILENAME)
    if not ref.is_file():
        return None
    with importlib.resources.as_file(ref) as p:
        return p


def get_user_yaml_path() -> Path | None:
    """Return ~/.season-scheduler/periodization.yaml if it exists, else None."""
    home = Path(os.environ.get("HOME", "~")).expanduser()
    p = home / ".season-scheduler" / CONFIG_FILENAME
    return p if p.exists() else None


def load_model_config(extra_path: Path | None = None) -> dict[str, Any]:
    """
    Load and merge periodization configuration from YAML sources.

    Load order (later overrides earlier):
    1. Bundled src/season_scheduler/periodization.yaml
    2. User override at ~/.season-scheduler/periodization.yaml
    3. ``extra_path`` when given (e.g. from the --config CLI option)

    Returns:
        Merged dict of config sections. Empty dict if no YAML available.
    """
    config: dict[str, Any] = {}

    bundled = get_bundled_yaml_path()
    if bundled is not None:
        config = _deep_merge(config, _load_yaml_file(bundled))

    for path in (get_user_yaml_path(), extra_path):
        if path is not None:
            override = _load_yaml_file(path)
            if override:
                logger.info("Merged config overrides from %s", path)
                config = _deep_merge(config, override)

    return config


def phase_tiers(config: dict[str, Any]) -> list[tuple[float | None, PhaseDurations]]:
    """
    Build phase-duration tiers from the ``phase_durations`` section.

    Each entry needs ``max_km`` (null for the open-ended tier) and the five
    week counts. Falls back to config.PHASE_DURATION_TIERS when the section
    is missing or malformed.
    """
    raw = config.get("phase_durations")
    if not raw:
        return list(PHASE_DURATION_TIERS)
    try:
        tiers = [
            (
                None if entry.get("max_km") is None else float(entry["max_km"]),
                PhaseDurations(
                    base=int(entry["base"]),
                    sharpen=int(entry["sharpen"]),
                    taper=int(entry["taper"]),
                    race=int(entry["race"]),
                    recovery=int(entry["recovery"]),
                ),
            )
            for entry in raw
        ]
    except (KeyError, TypeError, ValueError) as e:
        logger.warning("Malformed phase_durations config (%s); using defaults", e)
        return list(PHASE_DURATION_TIERS)
    bounded = sorted((t for t in tiers if t[0] is not None), key=lambda t: t[0])
    open_ended = [t for t in tiers if t[0] is None]
    return bounded + open_ended[:1]


def taper_templates(config: dict[str, Any]) -> list[TaperTemplate]:
    """Build taper templates from the ``taper_templates`` section."""
    raw = config.get("taper_templates")
    if not raw:
        return list(TAPER_TEMPLATES)
    try:
        return [
            TaperTemplate(
                priority=str(entry["priority"]),
                min_km=float(entry.get("min_km", 0.0)),
                max_km=None if entry.get("max_km") is None else float(entry["max_km"]),
                volume_curve=tuple(float(v) for v in entry["volume_curve"]),
            )
            for entry in raw
        ]
    except (KeyError, TypeError, ValueError) as e:
        logger.warning("Malformed taper_templates config (%s); using defaults", e)
        return list(TAPER_TEMPLATES)
