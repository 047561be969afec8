from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Optional

_LOG = logging.getLogger(__name__)


class SidecarReader:
    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.skipped = 0

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return self.records()

    def records(self, type: Optional[str] = None) -> Iterator[dict[str, Any]]:
        """Yield decoded lines, optionally only those whose ``type`` matches."""
        self.skipped = 0
        with self.path.open("r", encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    rec = json.loads(line)
                except json.JSONDecodeError:
                    self.skipped += 1
                    _LOG.warning("%s:%d: skipping malformed sidecar line", self.path, lineno)
                    continue
                if not isinstance(rec, dict):
                    self.skipped += 1
                    continue
                if type is None or rec.get("type") == type:
                    yield rec

    def meta(self) -> Optional[dict[str, Any]]:
        return next(self.records(type="meta"), None)
