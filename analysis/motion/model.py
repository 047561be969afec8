from __future__ import annotations

import math
import numbers
from collections import deque
from dataclasses import dataclass, field, fields
from typing import Any, Deque, List, Tuple

# Age given to a freshly recorded trail point; unmatched trails count down from here.
MAX_AGE = 255.0

DIFF_MODES = ("luma", "rgb")


class MotionError(Exception):
    """Base class for motion-pipeline errors."""


class ConfigError(MotionError, ValueError):
    """Invalid motion configuration (rejected at setup time, never clamped)."""


class FrameShapeError(MotionError):
    """Previous and current frames do not share the same pixel grid."""


@dataclass
class MotionConfig:
    """
    Configuration knobs for the frame-differencing trail pipeline.

    Defaults are the gallery-installation tuning. ``grid_size == 1`` selects
    per-pixel connectivity; anything larger aggregates the signal into
    square cells of that edge length.
    """

    # Difference signal
    diff_mode: str = "luma"  # "luma" (weighted brightness) or "rgb" (mean channel delta)
    blur_radius: int = 1  # box-blur radius applied to both frames before differencing

    # Blob detection
    motion_threshold: float = 20.0  # signal must be strictly above this
    grid_size: int = 10
    min_blob_size: int = 1  # pixels (grid_size == 1) or cells
    max_blobs: int = 100

    # Trail smoothing (EMA: new = old * f + sample * (1 - f))
    position_smooth_factor: float = 0.8
    velocity_smooth_factor: float = 0.5

    # Trail lifetime
    max_trail_length: int = 50
    trail_decay: float = 8.0
    max_match_distance: float = 100.0

    def __post_init__(self) -> None:
        if self.diff_mode not in DIFF_MODES:
            raise ConfigError(
                f"diff_mode must be one of {', '.join(DIFF_MODES)}; got {self.diff_mode!r}"
            )
        _require_int("blur_radius", self.blur_radius, minimum=1)
        _require_int("grid_size", self.grid_size, minimum=1)
        _require_int("min_blob_size", self.min_blob_size, minimum=1)
        _require_int("max_blobs", self.max_blobs, minimum=1)
        _require_int("max_trail_length", self.max_trail_length, minimum=1)

        _require_number("motion_threshold", self.motion_threshold)
        if not 0.0 <= float(self.motion_threshold) <= 255.0:
            raise ConfigError(
                f"motion_threshold must be within [0, 255]; got {self.motion_threshold!r}"
            )
        for name in ("position_smooth_factor", "velocity_smooth_factor"):
            _require_number(name, getattr(self, name))
            value = float(getattr(self, name))
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must be within [0, 1]; got {value!r}")
        _require_number("trail_decay", self.trail_decay)
        _require_number("max_match_distance", self.max_match_distance)
        if not float(self.trail_decay) > 0.0:
            raise ConfigError(f"trail_decay must be > 0; got {self.trail_decay!r}")
        if not float(self.max_match_distance) > 0.0:
            raise ConfigError(
                f"max_match_distance must be > 0; got {self.max_match_distance!r}"
            )

    @property
    def pixel_mode(self) -> bool:
        return self.grid_size == 1

    def as_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _require_int(name: str, value: Any, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ConfigError(f"{name} must be an integer; got {value!r}")
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}; got {value!r}")


def _require_number(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigError(f"{name} must be a number; got {value!r}")
    if math.isnan(value):
        raise ConfigError(f"{name} must not be NaN")


@dataclass(frozen=True)
class Blob:
    """One connected motion region for a single tick, in frame coordinates."""

    x: float
    y: float
    intensity: float
    size: int

    def to_dict(self) -> dict[str, Any]:
        return {"x": self.x, "y": self.y, "intensity": self.intensity, "size": self.size}


@dataclass
class TrailPoint:
    x: float
    y: float
    speed: float
    intensity: float
    age: float = MAX_AGE

    def to_dict(self) -> dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "speed": self.speed,
            "intensity": self.intensity,
            "age": self.age,
        }


@dataclass(eq=False)
class Trail:
    """
    A tracked moving region.

    ``points`` is a bounded FIFO of smoothed positions (oldest first);
    ``position`` and ``velocity`` carry the exponential moving averages
    that produced the most recent point.
    """

    id: int
    points: Deque[TrailPoint]
    position: Tuple[float, float]
    velocity: Tuple[float, float] = (0.0, 0.0)
    speed: float = 0.0
    active: bool = True

    @classmethod
    def start(cls, trail_id: int, blob: Blob, max_length: int) -> Trail:
        return cls(id=trail_id, points=deque(maxlen=max_length), position=(blob.x, blob.y))

    @property
    def last_point(self) -> TrailPoint:
        return self.points[-1]

    def distance_to(self, blob: Blob) -> float:
        last = self.points[-1]
        return math.hypot(blob.x - last.x, blob.y - last.y)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "active": self.active,
            "speed": self.speed,
            "position": list(self.position),
            "velocity": list(self.velocity),
            "points": [p.to_dict() for p in self.points],
        }


@dataclass
class MotionResult:
    """
    Per-tick output of the motion engine.

    ``trails`` is the live trail list handed to a renderer; ``processed`` is
    False on ticks where no difference could be computed (buffer priming).
    """

    frame_id: int
    pts_ms: float
    processed: bool = True
    blobs: List[Blob] = field(default_factory=list)
    trails: List[Trail] = field(default_factory=list)
    area_frac: float = 0.0  # fraction of signal locations above threshold

    @property
    def is_motion(self) -> bool:
        return bool(self.blobs)

    @property
    def active_trails(self) -> List[Trail]:
        return [t for t in self.trails if t.active]
