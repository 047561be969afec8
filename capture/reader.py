from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Literal, Optional, Protocol, Tuple, Union

import cv2
import numpy as np

_LOG = logging.getLogger(__name__)

SourceKind = Literal["camera", "file", "synthetic"]


class FrameStream(Protocol):
    def start(self) -> None: ...
    def read(self) -> Optional[Tuple[np.ndarray, float, int]]: ...  # (frame_bgr, pts_ms, frame_id)
    def close(self) -> None: ...


@dataclass
class ReaderStats:
    frames_in: int = 0
    frames_out: int = 0
    drops: int = 0
    read_us_mean: float = 0.0
    read_us_p95: float = 0.0
    _read_us_hist: Deque[float] = field(default_factory=lambda: deque(maxlen=1000), repr=False)

    def update_read_us(self, dt_us: float) -> None:
        self._read_us_hist.append(dt_us)
        if self._read_us_hist:
            arr = np.fromiter(self._read_us_hist, dtype=np.float64)
            self.read_us_mean = float(arr.mean())
            self.read_us_p95 = float(np.percentile(arr, 95))


class SyntheticTransport:
    """Deterministic source: a bright square drifting across a black frame.

    Useful for tests and for exercising the pipeline without a camera.
    Returns None once ``max_frames`` frames have been produced (0 = endless).
    """

    def __init__(
        self,
        width: int = 320,
        height: int = 240,
        fps: float = 30.0,
        square: int = 20,
        start: Tuple[int, int] = (20, 20),
        step: Tuple[int, int] = (4, 2),
        max_frames: int = 0,
    ):
        self.width, self.height, self.fps = width, height, fps
        self.square = square
        self.start_xy = start
        self.step = step
        self.max_frames = max_frames
        self._running = False
        self._frame_id = 0
        self._t0_ms = 0.0
        self._stats = ReaderStats()

    def start(self) -> None:
        self._running = True
        self._t0_ms = time.time() * 1000.0

    def position(self, frame_id: int) -> Tuple[int, int]:
        """Top-left corner of the square in frame ``frame_id`` (bounces off edges)."""
        span_x = max(self.width - self.square, 1)
        span_y = max(self.height - self.square, 1)
        return (
            _bounce(self.start_xy[0] + self.step[0] * frame_id, span_x),
            _bounce(self.start_xy[1] + self.step[1] * frame_id, span_y),
        )

    def read(self) -> Optional[Tuple[np.ndarray, float, int]]:
        if not self._running:
            return None
        if self.max_frames and self._frame_id >= self.max_frames:
            return None
        fid = self._frame_id
        frame = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        x, y = self.position(fid)
        frame[y : y + self.square, x : x + self.square] = 255
        pts_ms = self._t0_ms + fid * 1000.0 / max(self.fps, 0.001)
        self._frame_id += 1
        self._stats.frames_in += 1
        self._stats.frames_out += 1
        return frame, pts_ms, fid

    def close(self) -> None:
        self._running = False

    def stats(self) -> ReaderStats:
        return self._stats


def _bounce(v: int, span: int) -> int:
    period = 2 * span
    v %= period
    return v if v <= span else period - v


class CvCaptureTransport:
    """
    OpenCV capture (camera index or video file) with optional downscale.

    Motion analysis does not need full sensor resolution; ``scale`` < 1
    shrinks every frame with area interpolation before it leaves the reader.
    """

    def __init__(self, target: Union[int, str], scale: float = 1.0):
        if not 0.0 < scale <= 1.0:
            raise ValueError(f"scale must be within (0, 1]; got {scale!r}")
        self.target = target
        self.scale = scale
        self._cap: Optional[cv2.VideoCapture] = None
        self._frame_id = 0
        self._stats = ReaderStats()

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def start(self) -> None:
        if self._cap is not None:
            return
        self._cap = cv2.VideoCapture(self.target)
        if not self._cap.isOpened():
            self._cap.release()
            self._cap = None
            raise RuntimeError(f"cv2.VideoCapture could not open {self.target!r}")

    def read(self) -> Optional[Tuple[np.ndarray, float, int]]:
        if self._cap is None:
            return None
        t0 = time.perf_counter()
        ok, frame = self._cap.read()
        self._stats.update_read_us((time.perf_counter() - t0) * 1e6)
        if not ok or frame is None:
            return None
        self._stats.frames_in += 1
        if self.scale < 1.0:
            frame = cv2.resize(
                frame, None, fx=self.scale, fy=self.scale, interpolation=cv2.INTER_AREA
            )
        fid = self._frame_id
        self._frame_id += 1
        self._stats.frames_out += 1
        return frame, time.time() * 1000.0, fid

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def stats(self) -> ReaderStats:
        return self._stats


# --- Discovery ---------------------------------------------------------------


@dataclass
class ReaderConfig:
    prefer: SourceKind = "camera"
    device: int = 0
    path: Optional[str] = None
    scale: float = 0.5
    # synthetic source
    width: int = 320
    height: int = 240
    max_frames: int = 0


class ReaderFactory:
    @staticmethod
    def from_config(cfg: ReaderConfig) -> FrameStream:
        if cfg.prefer == "synthetic":
            return SyntheticTransport(
                width=cfg.width, height=cfg.height, max_frames=cfg.max_frames
            )
        if cfg.prefer == "file":
            if not cfg.path:
                raise ValueError("ReaderConfig.path is required when prefer='file'")
            target: Union[int, str] = cfg.path
        else:
            target = cfg.device

        # Open failures propagate (RuntimeError); there is no substitute source.
        transport = CvCaptureTransport(target, scale=cfg.scale)
        transport.start()
        _LOG.info("Opened capture %r (scale=%.2f)", target, cfg.scale)
        return transport
