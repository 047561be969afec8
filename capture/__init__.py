# capture/__init__.py
"""Capture package: frame transports (OpenCV, synthetic) and the polling video source."""

from .reader import (
    CvCaptureTransport,
    FrameStream,
    ReaderConfig,
    ReaderFactory,
    ReaderStats,
    SyntheticTransport,
)
from .video_source import VideoSource

__all__ = [
    "FrameStream",
    "ReaderFactory",
    "ReaderConfig",
    "ReaderStats",
    "SyntheticTransport",
    "CvCaptureTransport",
    "VideoSource",
]

__version__ = "0.1.0"
