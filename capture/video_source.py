from __future__ import annotations

from typing import Optional

from common.frame import Frame

from .reader import FrameStream


class VideoSource:
    """Capture source as seen by the motion engine.

    ``poll()`` never blocks on the pipeline's behalf: it returns a
    :class:`Frame` when the stream has one and ``None`` otherwise. ``ready``
    flips to True after the first valid frame and stays there.
    """

    def __init__(self, stream: FrameStream):
        self._stream = stream
        self._ready = False
        self._last_frame_id: Optional[int] = None

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def last_frame_id(self) -> Optional[int]:
        return self._last_frame_id

    def start(self) -> None:
        self._stream.start()

    def poll(self) -> Optional[Frame]:
        item = self._stream.read()
        if item is None:
            return None
        img, pts_ms, frame_id = item
        if img is None or getattr(img, "ndim", 0) != 3:
            return None
        self._ready = True
        self._last_frame_id = int(frame_id)
        return Frame(img=img, pts_ms=float(pts_ms), frame_id=int(frame_id))

    def close(self) -> None:
        self._stream.close()

    def stats(self):
        # Optional convenience passthrough
        stats = getattr(self._stream, "stats", None)
        return stats() if callable(stats) else None
