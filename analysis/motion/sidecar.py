from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from sidecar.writer import SidecarWriter

from .model import MotionConfig, MotionResult

SCHEMA = "motion_trails.v1"


class MotionSidecarWriter:
    """
    Thin wrapper around SidecarWriter for per-tick trail snapshots.

    One meta line (schema + effective config), then one ``"trails"`` line
    per processed tick carrying the blobs and the full trail state an
    external renderer needs.
    """

    def __init__(self, path: str | Path, config: Optional[MotionConfig] = None):
        self._writer = SidecarWriter(path)
        self._cfg = config

    def __enter__(self) -> MotionSidecarWriter:
        self._writer.__enter__()
        self._writer.append_meta(
            {
                "type": "meta",
                "schema": SCHEMA,
                "config": self._cfg.as_dict() if self._cfg is not None else None,
            }
        )
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._writer.__exit__(exc_type, exc, tb)

    def write_result(self, res: MotionResult) -> None:
        if not res.processed:
            return
        payload: dict[str, Any] = {
            "type": "trails",
            "frame_id": int(res.frame_id),
            "pts_ms": float(res.pts_ms),
            "area_frac": float(res.area_frac),
            "blobs": [b.to_dict() for b in res.blobs],
            "trails": [t.to_dict() for t in res.trails],
        }
        self._writer.append_record(payload)

    def flush(self) -> None:
        self._writer.flush()

    def close(self) -> None:
        self._writer.close()
