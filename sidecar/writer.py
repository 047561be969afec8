# ruff: noqa: UP007  # keep Optional[...] for Py3.9; don't force X | Y
from __future__ import annotations

import json
import os
from contextlib import suppress
from pathlib import Path
from typing import Any, Mapping, Optional, TextIO

import numpy as np


def _default(obj: Any) -> Any:
    # numpy scalars leak out of signal math; emit them as plain numbers
    if isinstance(obj, np.generic):
        return obj.item()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class SidecarWriter:
    """Line-delimited JSON writer (one object per line)."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._fh: Optional[TextIO] = None
        self.records_written = 0

    def __enter__(self) -> SidecarWriter:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._fh is not None

    def open(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self.path.open("w", encoding="utf-8", newline="")
        self.records_written = 0

    def append_meta(self, meta: Mapping[str, Any]) -> None:
        rec = dict(meta)
        rec.setdefault("type", "meta")
        self.append_record(rec)

    def append_record(self, rec: Mapping[str, Any]) -> None:
        if not self._fh:
            raise RuntimeError("SidecarWriter is not open")
        self._fh.write(json.dumps(rec, ensure_ascii=False, default=_default) + "\n")
        self.records_written += 1

    def flush(self) -> None:
        if self._fh:
            self._fh.flush()

    def close(self) -> None:
        if self._fh is not None:
            with suppress(Exception):
                self._fh.flush()
            # Best-effort durability; harmless if underlying file doesn't support fileno()
            with suppress(Exception):
                os.fsync(self._fh.fileno())
            self._fh.close()
            self._fh = None
