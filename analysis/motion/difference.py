"""Frame differencing: turn two consecutive frames into a motion signal.

The signal is a float32 (H, W) array in [0, 255]. Both frames get a small
box blur first to keep sensor noise out of the threshold stage.
"""

from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from .model import FrameShapeError, MotionConfig

# Perceptual brightness weights, (R, G, B).
LUMA_WEIGHTS_RGB = (0.212, 0.715, 0.072)

# Frames are BGR(A); reorder once so the dot product lines up with channels.
_LUMA_WEIGHTS_BGR = np.array(LUMA_WEIGHTS_RGB[::-1], dtype=np.float32)


class DifferenceEngine:
    def __init__(self, config: Optional[MotionConfig] = None) -> None:
        self._cfg = config or MotionConfig()
        k = 2 * int(self._cfg.blur_radius) + 1
        self._ksize = (k, k)

    @property
    def mode(self) -> str:
        return self._cfg.diff_mode

    def preprocess(self, img: np.ndarray) -> np.ndarray:
        """Drop alpha, blur, and widen to float32."""
        arr = np.asarray(img)
        if arr.ndim != 3 or arr.shape[2] not in (3, 4):
            raise FrameShapeError(f"expected an (H, W, 3|4) image; got shape {arr.shape}")
        bgr = np.ascontiguousarray(arr[:, :, :3])
        return cv2.blur(bgr, self._ksize).astype(np.float32)

    def compute(self, prev_img: np.ndarray, curr_img: np.ndarray) -> np.ndarray:
        if prev_img.shape != curr_img.shape:
            raise FrameShapeError(
                f"cannot difference frames of shape {prev_img.shape} and {curr_img.shape}"
            )
        prev = self.preprocess(prev_img)
        curr = self.preprocess(curr_img)

        if self._cfg.diff_mode == "rgb":
            signal = np.abs(curr - prev).mean(axis=2)
        else:
            signal = np.abs(curr @ _LUMA_WEIGHTS_BGR - prev @ _LUMA_WEIGHTS_BGR)

        return np.clip(signal, 0.0, 255.0).astype(np.float32)
