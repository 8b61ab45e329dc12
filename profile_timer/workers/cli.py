from __future__ import annotations

import json
import sys
import time
from pathlib import Path

from profile_timer.config import get_timer_settings
from profile_timer.logging_setup import setup_logging
from profile_timer.services.profiles_store import ProfilesStore, ProfilesStoreError
from profile_timer.services.timer import plan_changes
from profile_timer.workers.timer_worker import TimerWorker


def _get_opt(argv: list[str], key: str) -> str | None:
    if key not in argv:
        return None
    idx = argv.index(key)
    if idx + 1 >= len(argv):
        return None
    return argv[idx + 1]


def cmd_run(argv: list[str]) -> int:
    settings = get_timer_settings()
    setup_logging(settings.log_level)
    TimerWorker(settings).run_forever()
    return 0


def cmd_plan(argv: list[str]) -> int:
    settings = get_timer_settings()
    path = Path(_get_opt(argv, "--profiles") or settings.profiles_path)
    items = ProfilesStore(path).snapshot()
    # A fresh process starts from an empty registry.
    plan = plan_changes({}, items, now_ts=time.time())
    print(json.dumps({"ok": True, "profiles_path": str(path), **plan}, ensure_ascii=False, indent=2))
    return 0


def cmd_status(argv: list[str]) -> int:
    settings = get_timer_settings()
    path = Path(_get_opt(argv, "--status") or settings.status_path)
    if not path.exists():
        print(json.dumps({"ok": False, "error": f"no status file: {path}"}, ensure_ascii=False))
        return 1
    status = json.loads(path.read_text(encoding="utf-8"))
    print(json.dumps({"ok": True, **status}, ensure_ascii=False, indent=2))
    return 0


def cmd_reload(argv: list[str]) -> int:
    path = get_timer_settings().reload_signal_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(str(time.time()), encoding="utf-8")
    print(json.dumps({"ok": True, "signal": str(path)}, ensure_ascii=False))
    return 0


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print("Usage: python -m profile_timer.workers.cli run|plan|status|reload [options]", file=sys.stderr)
        return 2

    cmd = argv[0]
    tail = argv[1:]
    try:
        if cmd == "run":
            return cmd_run(tail)
        if cmd == "plan":
            return cmd_plan(tail)
        if cmd == "status":
            return cmd_status(tail)
        if cmd == "reload":
            return cmd_reload(tail)
        print(f"Unknown command: {cmd}", file=sys.stderr)
        return 2
    except ProfilesStoreError as e:
        print(json.dumps({"ok": False, "error_code": "PROFILES_INVALID", "error": str(e)}, ensure_ascii=False))
        return 10
    except Exception as e:  # pragma: no cover - defensive
        print(json.dumps({"ok": False, "error_code": "UNEXPECTED", "error": str(e)}, ensure_ascii=False))
        return 12


if __name__ == "__main__":
    raise SystemExit(main())
