from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable


@dataclass(frozen=True)
class ProfileItem:
    uid: str
    update_interval: int | None = None  # minutes
    updated: int | None = None  # unix seconds

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> "ProfileItem | None":
        uid = str(raw.get("uid") or "").strip()
        if not uid:
            return None
        option = raw.get("option") if isinstance(raw.get("option"), dict) else {}
        interval = option.get("update_interval", raw.get("update_interval"))
        updated = raw.get("updated")
        return cls(
            uid=uid,
            update_interval=_as_int(interval),
            updated=_as_int(updated),
        )


def _as_int(v: Any) -> int | None:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def build_interval_map(items: Iterable[ProfileItem]) -> dict[str, int]:
    """uid -> update_interval for every profile with a positive interval."""
    out: dict[str, int] = {}
    for item in items:
        interval = item.update_interval or 0
        if interval > 0:
            out[item.uid] = interval
    return out


def is_overdue(item: ProfileItem, now_ts: float) -> bool:
    interval = item.update_interval or 0
    if interval <= 0 or item.updated is None:
        return False
    return now_ts - item.updated >= interval * 60
