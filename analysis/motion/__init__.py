"""Public exports for the motion analysis package."""

from __future__ import annotations

from .blobs import BlobDetector
from .config import load_motion_config
from .difference import DifferenceEngine
from .engine import MotionEngine
from .frame_buffer import FrameBuffer
from .model import (
    MAX_AGE,
    Blob,
    ConfigError,
    FrameShapeError,
    MotionConfig,
    MotionError,
    MotionResult,
    Trail,
    TrailPoint,
)
from .sidecar import MotionSidecarWriter
from .tracker import TrailStore, TrailTracker

__all__ = [
    "MotionEngine",
    "MotionResult",
    "MotionConfig",
    "load_motion_config",
    "FrameBuffer",
    "DifferenceEngine",
    "BlobDetector",
    "TrailTracker",
    "TrailStore",
    "Blob",
    "Trail",
    "TrailPoint",
    "MAX_AGE",
    "MotionError",
    "ConfigError",
    "FrameShapeError",
    "MotionSidecarWriter",
]
