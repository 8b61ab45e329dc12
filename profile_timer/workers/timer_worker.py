from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any

from profile_timer.config import TimerSettings, get_timer_settings
from profile_timer.logging_setup import setup_logging
from profile_timer.services.profiles_store import ProfilesStore
from profile_timer.services.task_runtime import TaskRuntime
from profile_timer.services.timer import Timer
from profile_timer.workers.hooks import CommandHooks

logger = logging.getLogger("profile_timer.worker")


class TimerWorker:
    """
    Process owner of the timer.

    The TaskRuntime, ProfilesStore and Timer built here are the single
    process-wide schedule state: created once at startup, handed to whoever
    needs them, never rebuilt. Nothing is persisted; a restart rebuilds the
    registry from profiles.yaml through initialize().
    """

    def __init__(
        self,
        settings: TimerSettings | None = None,
        *,
        runtime: TaskRuntime | None = None,
        hooks: CommandHooks | None = None,
    ) -> None:
        self.settings = settings or get_timer_settings()
        self.store = ProfilesStore(self.settings.profiles_path)
        self.runtime = runtime or TaskRuntime(self.settings.timezone)
        self.hooks = hooks or CommandHooks(self.settings.refresh_cmd, self.settings.apply_cmd)
        self.timer = Timer(
            self.runtime,
            self.store.snapshot,
            self.hooks.refresh_profile,
            self.hooks.apply_config,
        )
        self._last_reload_mtime = 0.0
        self._last_profiles_mtime = 0.0

    def _check_reload_signal(self) -> bool:
        p = self.settings.reload_signal_path
        try:
            if not p.exists():
                return False
            mt = float(p.stat().st_mtime)
        except OSError:
            return False
        if mt > self._last_reload_mtime:
            self._last_reload_mtime = mt
            return True
        return False

    def _check_profiles_changed(self) -> bool:
        mt = self.store.mtime()
        if mt != self._last_profiles_mtime:
            self._last_profiles_mtime = mt
            return True
        return False

    def status(self) -> dict[str, Any]:
        entries = self.timer.entries()
        return {
            "ts": time.time(),
            "initialized": self.timer.initialized,
            "profiles_path": str(self.settings.profiles_path),
            "entries": [
                {"uid": uid, "task_id": tid, "interval_minutes": minutes}
                for uid, (tid, minutes) in sorted(entries.items())
            ],
            "jobs": self.runtime.describe_jobs(),
        }

    def _write_status(self) -> None:
        path: Path = self.settings.status_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(self.status(), ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error("status write failed path=%s error=%s", path, e)

    def refresh(self, *, repair: bool = False) -> None:
        try:
            self.timer.refresh()
            if repair:
                fixed = self.timer.repair()
                if fixed["registered"] or fixed["removed"]:
                    logger.warning(
                        "repair applied registered=%s removed=%s", fixed["registered"], fixed["removed"]
                    )
        except Exception as e:
            logger.error("refresh failed error=%s", e)
        self._write_status()

    def start(self) -> None:
        self.runtime.start()
        # Seed both watermarks so the first tick does not re-run what initialize() did.
        self._check_profiles_changed()
        self._check_reload_signal()
        try:
            advanced = self.timer.initialize()
            logger.info("startup catch-up advanced=%s", advanced)
        except Exception as e:
            logger.error("initialize failed error=%s", e)
        self._write_status()

    def tick(self, *, periodic: bool) -> None:
        if self._check_reload_signal():
            logger.info("reload signal detected; refreshing now")
            self.refresh()
        elif self._check_profiles_changed():
            logger.info("profiles changed path=%s; refreshing", self.settings.profiles_path)
            self.refresh()
        if periodic:
            if not self.timer.initialized:
                self._retry_initialize()
            self.refresh(repair=True)

    def _retry_initialize(self) -> None:
        try:
            self.timer.initialize()
        except Exception as e:
            logger.error("initialize retry failed error=%s", e)

    def run_forever(self) -> None:
        s = self.settings
        logger.info("start profiles=%s refresh_seconds=%s", s.profiles_path, s.refresh_seconds)
        self.start()
        try:
            last_refresh = time.time()
            while True:
                time.sleep(max(1, s.tick_seconds))
                periodic = time.time() - last_refresh >= float(s.refresh_seconds)
                self.tick(periodic=periodic)
                if periodic:
                    last_refresh = time.time()
        except KeyboardInterrupt:
            logger.info("stop (keyboard interrupt)")
        finally:
            self.runtime.shutdown(wait=False)


def main() -> None:
    settings = get_timer_settings()
    setup_logging(settings.log_level)
    TimerWorker(settings).run_forever()


if __name__ == "__main__":
    main()
