"""Per-role "last seen" timestamps persisted in a local JSON file."""

import json
import logging
import os
from pathlib import Path

from seatline.utils.clock import parse_iso

logger = logging.getLogger(__name__)


class WatermarkStore:
    """Monotonic watermarks keyed by role id.

    A watermark only moves forward: ``advance`` with a timestamp that is not
    newer than the stored one is a no-op.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def _load(self) -> dict[str, str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Unreadable watermark file %s (%s), starting fresh", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self.path)

    def get(self, role_id: str) -> str | None:
        return self._load().get(role_id)

    def advance(self, role_id: str, created_at: str) -> bool:
        """Move the watermark to ``created_at`` if it is newer. Returns whether it moved."""
        data = self._load()
        current = data.get(role_id)
        if current is not None and parse_iso(created_at) <= parse_iso(current):
            return False
        data[role_id] = created_at
        self._save(data)
        return True
