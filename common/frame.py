from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class Frame:
    img: np.ndarray  # BGR (H,W,3) or BGRA (H,W,4), uint8
    pts_ms: float  # epoch ms (float)
    frame_id: int

    @property
    def width(self) -> int:
        return int(self.img.shape[1])

    @property
    def height(self) -> int:
        return int(self.img.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        """(width, height) of the pixel grid, ignoring channels."""
        return self.width, self.height
