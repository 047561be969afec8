from __future__ import annotations

import itertools
import math

import pytest

from analysis.motion import MAX_AGE, Blob, MotionConfig, TrailStore, TrailTracker


def _blob(x: float, y: float, intensity: float = 50.0, size: int = 4) -> Blob:
    return Blob(x=x, y=y, intensity=intensity, size=size)


def _tracker(**kw) -> TrailTracker:
    return TrailTracker(MotionConfig(**kw), id_source=itertools.count(1).__next__)


def test_stationary_blob_grows_one_trail_up_to_cap() -> None:
    tr = _tracker(max_trail_length=5)

    for n in range(1, 9):
        trails = tr.update([_blob(100.0, 100.0)])
        assert len(trails) == 1
        assert len(trails[0].points) == min(n, 5)

    trail = tr.trails()[0]
    assert trail.id == 1
    assert trail.active
    assert trail.speed == 0.0


def test_new_trail_starts_at_centroid_with_zero_velocity() -> None:
    tr = _tracker()
    (trail,) = tr.update([_blob(12.0, 34.0, intensity=77.0)])

    assert trail.position == (12.0, 34.0)
    assert trail.velocity == (0.0, 0.0)
    assert trail.speed == 0.0
    p = trail.points[-1]
    assert (p.x, p.y, p.speed, p.intensity, p.age) == (12.0, 34.0, 0.0, 77.0, MAX_AGE)


def test_nearby_blob_matches_existing_trail() -> None:
    tr = _tracker(max_match_distance=50)
    (t1,) = tr.update([_blob(100.0, 100.0)])
    trails = tr.update([_blob(105.0, 102.0)])

    assert len(trails) == 1
    assert trails[0] is t1
    assert len(t1.points) == 2
    assert t1.speed > 0.0


def test_far_blob_creates_new_trail_and_old_one_ages() -> None:
    tr = _tracker(max_match_distance=50, trail_decay=8)
    tr.update([_blob(100.0, 100.0)])
    trails = tr.update([_blob(400.0, 400.0)])

    assert [t.id for t in trails] == [1, 2]
    old, new = trails
    assert not old.active
    assert new.active
    assert old.points[-1].age == MAX_AGE - 8
    assert new.points[-1].age == MAX_AGE


def test_match_distance_is_strict() -> None:
    tr = _tracker(max_match_distance=10)
    tr.update([_blob(0.0, 0.0)])
    trails = tr.update([_blob(10.0, 0.0)])

    assert len(trails) == 2


@pytest.mark.parametrize("decay", [8, 10, 51, 255, 300])
def test_unmatched_trail_evicted_after_ceil_255_over_decay_ticks(decay: int) -> None:
    tr = _tracker(trail_decay=decay)
    tr.update([_blob(50.0, 50.0)])
    ticks = math.ceil(255 / decay)

    for _ in range(ticks - 1):
        assert len(tr.update([])) == 1
    assert tr.update([]) == []
    assert len(tr.store) == 0


def test_evicted_trail_is_not_resurrected() -> None:
    tr = _tracker(trail_decay=255)
    (first,) = tr.update([_blob(50.0, 50.0)])
    tr.update([])
    (second,) = tr.update([_blob(50.0, 50.0)])

    assert second.id != first.id
    assert first.id not in tr.store


def test_older_points_expire_before_newer_ones() -> None:
    tr = _tracker(trail_decay=100, max_match_distance=50)
    tr.update([_blob(0.0, 0.0)])
    tr.update([])  # ages first point to 155
    tr.update([_blob(0.0, 0.0)])  # matched: appended at 255, no ageing
    trails = tr.update([])  # 55 and 155
    assert [p.age for p in trails[0].points] == [55.0, 155.0]

    trails = tr.update([])  # first point hits -45 and is dropped
    assert [p.age for p in trails[0].points] == [55.0]


def test_position_converges_geometrically_to_step() -> None:
    f = 0.8
    d = 40.0
    tr = _tracker(position_smooth_factor=f, max_match_distance=1000, max_trail_length=100)
    tr.update([_blob(0.0, 0.0)])

    for k in range(1, 12):
        (trail,) = tr.update([_blob(d, 0.0)])
        assert math.isclose(trail.position[0], d * (1 - f**k), rel_tol=1e-9)
        assert math.isclose(trail.points[-1].x, trail.position[0])


def test_velocity_ema_and_speed() -> None:
    tr = _tracker(
        position_smooth_factor=0.0, velocity_smooth_factor=0.5, max_match_distance=1000
    )
    tr.update([_blob(0.0, 0.0)])
    (trail,) = tr.update([_blob(6.0, 8.0)])

    # displacement (6, 8) blended with zero velocity at 0.5
    assert trail.velocity == pytest.approx((3.0, 4.0))
    assert trail.speed == pytest.approx(5.0)
    assert trail.points[-1].speed == pytest.approx(5.0)


def test_greedy_matching_gives_first_blob_first_choice() -> None:
    tr = _tracker(max_match_distance=50)
    tr.update([_blob(0.0, 0.0)])

    # Both blobs are in range of the single trail; the first one listed wins.
    trails = tr.update([_blob(20.0, 0.0), _blob(5.0, 0.0)])

    assert len(trails) == 2
    t1, t2 = trails
    assert t1.id == 1 and t2.id == 2
    assert t2.points[-1].x == 5.0


def test_equidistant_trails_tie_breaks_to_earliest() -> None:
    tr = _tracker(max_match_distance=100)
    tr.update([_blob(0.0, 0.0), _blob(20.0, 0.0)])

    trails = tr.update([_blob(10.0, 0.0)])

    matched = [t for t in trails if t.active]
    assert [t.id for t in matched] == [1]


def test_trail_created_this_tick_is_not_reused_within_tick() -> None:
    tr = _tracker(max_match_distance=100)
    trails = tr.update([_blob(0.0, 0.0), _blob(1.0, 0.0)])

    assert len(trails) == 2
    assert all(len(t.points) == 1 for t in trails)


def test_injected_store_and_ids_are_used() -> None:
    store = TrailStore()
    ids = iter([101, 202])
    tr = TrailTracker(MotionConfig(max_match_distance=5), store=store, id_source=lambda: next(ids))

    tr.update([_blob(0.0, 0.0), _blob(50.0, 50.0)])

    assert [t.id for t in store] == [101, 202]
    assert 101 in store and store.get(202) is not None


def test_two_trackers_are_independent() -> None:
    a, b = _tracker(), _tracker()
    a.update([_blob(1.0, 1.0)])

    assert len(a.trails()) == 1
    assert b.trails() == []


def test_snapshot_is_detached() -> None:
    tr = _tracker(trail_decay=8)
    tr.update([_blob(3.0, 4.0)])
    snap = tr.snapshot()
    tr.update([])

    assert snap[0]["points"][0]["age"] == MAX_AGE
    assert snap[0]["active"] is True
    assert snap[0]["id"] == 1
