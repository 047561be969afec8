"""Per-tick motion pipeline.

One call to :meth:`MotionEngine.step` runs the whole chain synchronously:

- Loads the frame into the :class:`FrameBuffer` (previous/current pair).
- Computes the motion signal with the :class:`DifferenceEngine`.
- Reduces the signal to blobs with the :class:`BlobDetector`.
- Matches blobs to trails in the :class:`TrailTracker`.

Only the frame buffer and the tracker's trail store carry state between
ticks; a tick either completes or raises, and there is no background work.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from common.frame import Frame

from .blobs import BlobDetector
from .difference import DifferenceEngine
from .frame_buffer import FrameBuffer
from .model import MotionConfig, MotionResult
from .tracker import TrailTracker

if TYPE_CHECKING:
    from capture.video_source import VideoSource

_LOG = logging.getLogger(__name__)


class MotionEngine:
    """Frame differencing + blob detection + trail tracking.

    The tracker may be injected (e.g. with a shared trail store or a
    deterministic id source); otherwise one is built from ``config``.
    """

    def __init__(
        self,
        config: Optional[MotionConfig] = None,
        tracker: Optional[TrailTracker] = None,
    ) -> None:
        self._cfg = config or MotionConfig()
        self._buffer = FrameBuffer()
        self._diff = DifferenceEngine(self._cfg)
        self._detector = BlobDetector(self._cfg)
        self._tracker = tracker or TrailTracker(self._cfg)

    @property
    def config(self) -> MotionConfig:
        return self._cfg

    @property
    def tracker(self) -> TrailTracker:
        return self._tracker

    @property
    def buffer(self) -> FrameBuffer:
        return self._buffer

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def step(self, frame: Frame) -> MotionResult:
        """Process a single frame and return a :class:`MotionResult`.

        The first frame only primes the buffer: there is nothing to
        difference it against, so no blobs are reported for it.

        Raises
        ------
        FrameShapeError
            If the frame's pixel grid differs from the previous frame's.
        """
        self._buffer.load(frame)
        frame_id = int(frame.frame_id)
        pts_ms = float(frame.pts_ms)

        if not self._buffer.primed:
            self._buffer.commit()
            _LOG.info("Frame buffer primed with frame %d (%dx%d)", frame_id, *frame.size)
            return MotionResult(
                frame_id=frame_id,
                pts_ms=pts_ms,
                processed=False,
                trails=self._tracker.trails(),
            )

        prev = self._buffer.previous
        curr = self._buffer.current
        assert prev is not None and curr is not None

        signal = self._diff.compute(prev.img, curr.img)
        blobs = self._detector.detect(signal)
        trails = self._tracker.update(blobs)
        self._buffer.commit()

        if _LOG.isEnabledFor(logging.DEBUG):
            _LOG.debug(
                "frame %d: blobs=%d trails=%d active=%d area=%.4f",
                frame_id,
                len(blobs),
                len(trails),
                sum(1 for t in trails if t.active),
                self._detector.last_area_frac,
            )

        return MotionResult(
            frame_id=frame_id,
            pts_ms=pts_ms,
            processed=True,
            blobs=blobs,
            trails=trails,
            area_frac=self._detector.last_area_frac,
        )

    def tick(self, source: VideoSource) -> Optional[MotionResult]:
        """Poll ``source`` once; skip the tick (return None) if no frame is ready."""
        frame = source.poll()
        if frame is None:
            return None
        return self.step(frame)

    def reset(self) -> None:
        """Forget the previous frame and all trails."""
        self._buffer.reset()
        self._tracker.store.clear()
