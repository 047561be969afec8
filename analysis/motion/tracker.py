from __future__ import annotations

import itertools
import logging
import math
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from .model import MAX_AGE, Blob, MotionConfig, Trail, TrailPoint

_LOG = logging.getLogger(__name__)


class TrailStore:
    """Insertion-ordered registry of live trails, keyed by id."""

    def __init__(self) -> None:
        self._trails: Dict[int, Trail] = {}

    def __len__(self) -> int:
        return len(self._trails)

    def __iter__(self) -> Iterator[Trail]:
        return iter(list(self._trails.values()))

    def __contains__(self, trail_id: object) -> bool:
        return trail_id in self._trails

    def get(self, trail_id: int) -> Optional[Trail]:
        return self._trails.get(trail_id)

    def add(self, trail: Trail) -> None:
        if trail.id in self._trails:
            raise KeyError(f"trail id {trail.id} already registered")
        self._trails[trail.id] = trail

    def remove(self, trail_id: int) -> None:
        del self._trails[trail_id]

    def clear(self) -> None:
        self._trails.clear()


class TrailTracker:
    """
    Associate per-tick blobs with persistent trails.

    Matching is greedy nearest-neighbour: blobs are taken in detector order
    (largest first) and each claims the closest still-unmatched trail whose
    last recorded point lies strictly within ``max_match_distance``. Ties go
    to the trail registered first. A blob with no trail in range starts a new
    one. Trails left unmatched in a tick have every point aged by
    ``trail_decay``; once a trail runs out of points it is evicted for good.
    """

    def __init__(
        self,
        config: Optional[MotionConfig] = None,
        store: Optional[TrailStore] = None,
        id_source: Optional[Callable[[], int]] = None,
    ) -> None:
        self._cfg = config or MotionConfig()
        self._store = store if store is not None else TrailStore()
        self._next_id = id_source or itertools.count(1).__next__

    @property
    def store(self) -> TrailStore:
        return self._store

    def trails(self) -> List[Trail]:
        return list(self._store)

    def snapshot(self) -> List[dict[str, Any]]:
        """Plain-data copy of the trail set, safe to hold across ticks."""
        return [t.to_dict() for t in self._store]

    # ------------------------------------------------------------------ #
    # Per-tick update
    # ------------------------------------------------------------------ #

    def update(self, blobs: Sequence[Blob]) -> List[Trail]:
        for trail in self._store:
            trail.active = False

        unmatched: List[Trail] = list(self._store)
        bound: List[Tuple[Trail, Blob]] = []

        for blob in blobs:
            trail = self._nearest(blob, unmatched)
            if trail is not None:
                unmatched.remove(trail)
            else:
                trail = Trail.start(self._next_id(), blob, self._cfg.max_trail_length)
                self._store.add(trail)
                _LOG.debug(
                    "trail %d started at (%.1f, %.1f) size=%d",
                    trail.id,
                    blob.x,
                    blob.y,
                    blob.size,
                )
            trail.active = True
            bound.append((trail, blob))

        for trail, blob in bound:
            self._advance(trail, blob)

        for trail in unmatched:
            self._age(trail)

        return self.trails()

    def _nearest(self, blob: Blob, candidates: Sequence[Trail]) -> Optional[Trail]:
        best: Optional[Trail] = None
        best_distance = float(self._cfg.max_match_distance)
        for trail in candidates:
            distance = trail.distance_to(blob)
            if distance < best_distance:
                best, best_distance = trail, distance
        return best

    def _advance(self, trail: Trail, blob: Blob) -> None:
        fv = float(self._cfg.velocity_smooth_factor)
        fp = float(self._cfg.position_smooth_factor)

        if trail.points:
            last = trail.last_point
            dx, dy = blob.x - last.x, blob.y - last.y
        else:
            dx, dy = 0.0, 0.0

        vx, vy = trail.velocity
        vx = vx * fv + dx * (1.0 - fv)
        vy = vy * fv + dy * (1.0 - fv)
        trail.velocity = (vx, vy)
        trail.speed = math.hypot(vx, vy)

        px, py = trail.position
        px = px * fp + blob.x * (1.0 - fp)
        py = py * fp + blob.y * (1.0 - fp)
        trail.position = (px, py)

        # deque(maxlen) drops the oldest point once the trail is full
        trail.points.append(
            TrailPoint(x=px, y=py, speed=trail.speed, intensity=blob.intensity, age=MAX_AGE)
        )

    def _age(self, trail: Trail) -> None:
        decay = float(self._cfg.trail_decay)
        survivors = []
        for point in trail.points:
            point.age -= decay
            if point.age > 0:
                survivors.append(point)

        trail.points.clear()
        trail.points.extend(survivors)

        if not trail.points:
            self._store.remove(trail.id)
            _LOG.debug("trail %d evicted", trail.id)
