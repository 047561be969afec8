# analysis/motion/config.py
"""Build a :class:`MotionConfig` from an optional runtime config module.

The module is named explicitly or via ``MOTION_TRAILS_CONFIG_MODULE`` and
may define either the dataclass field names (``grid_size``) or the
upper-case installation constants (``GRID_SIZE``, ``MIN_GRIDS_FOR_BLOB``).
Keyword overrides win over the module; unknown keys are rejected.
"""

from __future__ import annotations

import logging
import os
from dataclasses import fields
from importlib import import_module
from typing import Any, Dict, Optional

from .model import ConfigError, MotionConfig

_LOG = logging.getLogger(__name__)

ENV_VAR = "MOTION_TRAILS_CONFIG_MODULE"

# Upper-case constant names accepted in a config module.
LEGACY_NAMES = {
    "MOTION_THRESHOLD": "motion_threshold",
    "MIN_BLOB_SIZE": "min_blob_size",
    "MIN_GRIDS_FOR_BLOB": "min_blob_size",
    "MAX_BLOBS": "max_blobs",
    "GRID_SIZE": "grid_size",
    "POSITION_SMOOTH_FACTOR": "position_smooth_factor",
    "VELOCITY_SMOOTH_FACTOR": "velocity_smooth_factor",
    "MAX_TRAIL_LENGTH": "max_trail_length",
    "TRAIL_DECAY": "trail_decay",
    "MAX_MATCH_DISTANCE": "max_match_distance",
    "DIFF_MODE": "diff_mode",
    "BLUR_RADIUS": "blur_radius",
}

FIELD_NAMES = frozenset(f.name for f in fields(MotionConfig))


def _values_from_module(name: str) -> Dict[str, Any]:
    try:
        mod = import_module(name)
    except ImportError as exc:
        raise ConfigError(
            f"Could not import motion config module {name!r}. "
            f"Set {ENV_VAR} to an importable module (e.g. 'trails_config')."
        ) from exc

    values: Dict[str, Any] = {}
    for key in dir(mod):
        if key.startswith("_"):
            continue
        if key in FIELD_NAMES:
            values[key] = getattr(mod, key)
        elif key in LEGACY_NAMES:
            values[LEGACY_NAMES[key]] = getattr(mod, key)
    return values


def load_motion_config(module: Optional[str] = None, **overrides: Any) -> MotionConfig:
    """Resolve configuration: defaults < config module < ``overrides``.

    Raises
    ------
    ConfigError
        If the module cannot be imported, an override names an unknown
        option, or any resulting value fails validation.
    """
    unknown = sorted(set(overrides) - FIELD_NAMES)
    if unknown:
        raise ConfigError(f"Unknown motion config option(s): {', '.join(unknown)}")

    values: Dict[str, Any] = {}
    name = module or os.environ.get(ENV_VAR)
    if name:
        values.update(_values_from_module(name))
        _LOG.info("Loaded motion config module %s (%d option(s))", name, len(values))

    values.update({k: v for k, v in overrides.items() if v is not None})
    return MotionConfig(**values)
