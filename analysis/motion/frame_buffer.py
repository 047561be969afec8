from __future__ import annotations

from typing import Optional

from common.frame import Frame

from .model import FrameShapeError


class FrameBuffer:
    """Previous/current frame pair retained across ticks.

    The buffer keeps its own copies so that capture backends are free to
    reuse their output arrays.
    """

    def __init__(self) -> None:
        self._previous: Optional[Frame] = None
        self._current: Optional[Frame] = None

    @property
    def previous(self) -> Optional[Frame]:
        return self._previous

    @property
    def current(self) -> Optional[Frame]:
        return self._current

    @property
    def primed(self) -> bool:
        """True once a previous frame exists to difference against."""
        return self._previous is not None

    def load(self, frame: Frame) -> None:
        if self._previous is not None and self._previous.img.shape != frame.img.shape:
            raise FrameShapeError(
                f"frame {frame.frame_id} has shape {frame.img.shape}, "
                f"previous frame {self._previous.frame_id} has {self._previous.img.shape}"
            )
        self._current = Frame(img=frame.img.copy(), pts_ms=frame.pts_ms, frame_id=frame.frame_id)

    def commit(self) -> None:
        # End of tick: the current frame becomes the comparison baseline.
        if self._current is not None:
            self._previous = self._current
            self._current = None

    def reset(self) -> None:
        self._previous = None
        self._current = None
