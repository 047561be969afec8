from __future__ import annotations

from collections import deque
from typing import List, Optional, Tuple

import numpy as np

from .model import Blob, MotionConfig

# 4-connectivity: (drow, dcol)
_NEIGHBOURS = ((0, -1), (0, 1), (-1, 0), (1, 0))


class BlobDetector:
    """Group a motion signal into connected blobs.

    With ``grid_size == 1`` the flood fill runs over pixels. Otherwise the
    signal is first reduced to a grid of square cells: a cell is in motion
    if any of its pixels exceeds the threshold, and carries the mean of
    those pixels as its intensity. Cell centroids are mapped back into
    frame coordinates (cell index * size + half a cell).
    """

    def __init__(self, config: Optional[MotionConfig] = None) -> None:
        self._cfg = config or MotionConfig()
        self.last_area_frac = 0.0

    def detect(self, signal: np.ndarray) -> List[Blob]:
        sig = np.asarray(signal, dtype=np.float32)
        if sig.ndim != 2:
            raise ValueError(f"motion signal must be 2-D; got shape {sig.shape}")

        if self._cfg.pixel_mode:
            mask = sig > float(self._cfg.motion_threshold)
            values = sig
        else:
            mask, values = self.cell_grid(sig)

        self.last_area_frac = float(mask.mean()) if mask.size else 0.0

        blobs: List[Blob] = []
        for members, total in self._components(mask, values):
            if len(members) < self._cfg.min_blob_size:
                continue
            blobs.append(self._summarise(members, total))

        # Stable sort keeps discovery order for equal sizes.
        blobs.sort(key=lambda b: b.size, reverse=True)
        return blobs[: self._cfg.max_blobs]

    def cell_grid(self, signal: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Return (motion mask, mean above-threshold intensity) per cell."""
        g = int(self._cfg.grid_size)
        h, w = signal.shape
        gh, gw = -(-h // g), -(-w // g)

        padded = np.zeros((gh * g, gw * g), dtype=np.float32)
        padded[:h, :w] = signal
        cells = padded.reshape(gh, g, gw, g)

        above = cells > float(self._cfg.motion_threshold)
        counts = above.sum(axis=(1, 3))
        totals = np.where(above, cells, 0.0).sum(axis=(1, 3))

        mask = counts > 0
        means = np.zeros((gh, gw), dtype=np.float32)
        np.divide(totals, counts, out=means, where=mask)
        return mask, means

    def _components(self, mask: np.ndarray, values: np.ndarray):
        """Yield (members, intensity_total) per 4-connected component, row-major."""
        rows, cols = mask.shape
        visited = np.zeros_like(mask, dtype=bool)

        for seed in np.flatnonzero(mask):
            r0, c0 = divmod(int(seed), cols)
            if visited[r0, c0]:
                continue

            visited[r0, c0] = True
            queue = deque([(r0, c0)])
            members: List[Tuple[int, int]] = []
            total = 0.0

            while queue:
                r, c = queue.popleft()
                members.append((r, c))
                total += float(values[r, c])
                for dr, dc in _NEIGHBOURS:
                    nr, nc = r + dr, c + dc
                    if 0 <= nr < rows and 0 <= nc < cols and mask[nr, nc] and not visited[nr, nc]:
                        visited[nr, nc] = True
                        queue.append((nr, nc))

            yield members, total

    def _summarise(self, members: List[Tuple[int, int]], total: float) -> Blob:
        n = len(members)
        mean_row = sum(r for r, _ in members) / n
        mean_col = sum(c for _, c in members) / n

        if self._cfg.pixel_mode:
            x, y = mean_col, mean_row
        else:
            g = float(self._cfg.grid_size)
            x = mean_col * g + g / 2.0
            y = mean_row * g + g / 2.0

        return Blob(x=float(x), y=float(y), intensity=total / n, size=n)
