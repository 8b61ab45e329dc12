from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from profile_timer.core.profiles import ProfileItem


class ProfilesStoreError(RuntimeError):
    pass


class ProfilesStore:
    """
    Read-only view of a profiles.yaml document:

        items:
          - uid: abc
            updated: 1700000000
            option:
              update_interval: 30

    Every call re-reads the file so callers always see the latest snapshot.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def mtime(self) -> float:
        try:
            return float(self.path.stat().st_mtime)
        except OSError:
            return 0.0

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            obj = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ProfilesStoreError(f"invalid yaml: {self.path} error={e}") from e
        if obj is None:
            return {}
        if not isinstance(obj, dict):
            raise ProfilesStoreError(f"invalid profiles document: {self.path}")
        return obj

    def snapshot(self) -> list[ProfileItem]:
        raw_items = self._load().get("items")
        if raw_items is None:
            return []
        if not isinstance(raw_items, list):
            raise ProfilesStoreError(f"'items' must be a list: {self.path}")
        out: list[ProfileItem] = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                continue
            item = ProfileItem.from_raw(raw)
            if item is not None:
                out.append(item)
        return out
