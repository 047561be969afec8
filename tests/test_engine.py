from __future__ import annotations

import itertools
import math

import numpy as np
import pytest

from analysis.motion import (
    FrameBuffer,
    FrameShapeError,
    MotionConfig,
    MotionEngine,
    MotionResult,
    TrailTracker,
)
from capture.reader import SyntheticTransport
from capture.video_source import VideoSource
from common.frame import Frame


def _frame(img: np.ndarray, fid: int) -> Frame:
    return Frame(img=img, pts_ms=1_700_000_000_000.0 + fid * 33.0, frame_id=fid)


def _square(x: int, y: int, h: int = 120, w: int = 160, size: int = 20) -> np.ndarray:
    img = np.zeros((h, w, 3), dtype=np.uint8)
    img[y : y + size, x : x + size] = 255
    return img


def test_first_frame_only_primes_buffer() -> None:
    eng = MotionEngine(MotionConfig())
    out = eng.step(_frame(_square(10, 10), 0))

    assert isinstance(out, MotionResult)
    assert out.processed is False
    assert out.blobs == [] and out.trails == []
    assert out.frame_id == 0
    assert eng.buffer.primed


def test_static_scene_produces_no_blobs() -> None:
    eng = MotionEngine(MotionConfig())
    img = _square(40, 40)
    eng.step(_frame(img, 0))
    out = eng.step(_frame(img.copy(), 1))

    assert out.processed
    assert not out.is_motion
    assert out.area_frac == 0.0


def test_moving_square_is_tracked_as_one_trail() -> None:
    cfg = MotionConfig(grid_size=10, max_match_distance=100)
    tracker = TrailTracker(cfg, id_source=itertools.count(1).__next__)
    eng = MotionEngine(cfg, tracker=tracker)

    results = [eng.step(_frame(_square(20 + 5 * i, 40), i)) for i in range(6)]

    last = results[-1]
    assert last.is_motion
    assert {t.id for t in last.trails} == {1}
    trail = last.trails[0]
    assert trail.active
    assert len(trail.points) == 5
    assert trail.speed > 0.0
    # smoothed x trails the square but moves right
    xs = [p.x for p in trail.points]
    assert xs == sorted(xs)


def test_mismatched_frame_size_raises() -> None:
    eng = MotionEngine(MotionConfig())
    eng.step(_frame(_square(0, 0), 0))
    with pytest.raises(FrameShapeError):
        eng.step(_frame(_square(0, 0, h=100), 1))


def test_trails_fade_after_motion_stops() -> None:
    cfg = MotionConfig(trail_decay=64, grid_size=10)
    eng = MotionEngine(cfg)
    eng.step(_frame(_square(20, 20), 0))
    moved = eng.step(_frame(_square(30, 20), 1))
    assert moved.trails

    still = _square(30, 20)
    remaining = None
    for i in range(2, 2 + math.ceil(255 / 64) + 1):
        remaining = eng.step(_frame(still.copy(), i)).trails
    assert remaining == []


def test_tick_skips_until_source_ready() -> None:
    class _Stream:
        def __init__(self) -> None:
            self.items = [None, None, (_square(5, 5), 0.0, 0), (_square(9, 5), 33.0, 1)]

        def start(self) -> None: ...

        def read(self):
            return self.items.pop(0) if self.items else None

        def close(self) -> None: ...

    src = VideoSource(_Stream())
    eng = MotionEngine(MotionConfig())

    assert eng.tick(src) is None
    assert eng.tick(src) is None
    assert not src.ready

    first = eng.tick(src)
    assert first is not None and first.processed is False
    assert src.ready

    second = eng.tick(src)
    assert second is not None and second.processed and second.frame_id == 1


def test_synthetic_transport_drives_pipeline() -> None:
    stream = SyntheticTransport(width=160, height=120, step=(3, 0), max_frames=10)
    src = VideoSource(stream)
    src.start()
    eng = MotionEngine(MotionConfig(grid_size=5, max_match_distance=60))

    results = []
    while True:
        res = eng.tick(src)
        if res is None:
            break
        results.append(res)
    src.close()

    assert len(results) == 10
    assert all(r.processed for r in results[1:])
    assert all(r.is_motion for r in results[1:])
    assert len(results[-1].active_trails) >= 1


def test_frame_buffer_copies_and_commits() -> None:
    buf = FrameBuffer()
    img = _square(0, 0)
    buf.load(_frame(img, 0))
    img[:] = 7  # caller mutates after handing the frame over
    buf.commit()

    assert buf.previous is not None
    assert buf.previous.img.max() == 255
    assert buf.current is None
    buf.reset()
    assert not buf.primed


def test_reset_clears_trails_and_buffer() -> None:
    eng = MotionEngine(MotionConfig())
    eng.step(_frame(_square(10, 10), 0))
    eng.step(_frame(_square(30, 10), 1))
    assert eng.tracker.trails()

    eng.reset()

    assert eng.tracker.trails() == []
    assert not eng.buffer.primed
