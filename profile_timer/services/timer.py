from __future__ import annotations

import functools
import logging
import threading
import time
from typing import Any, Awaitable, Callable, Iterable, Mapping, Protocol

from profile_timer.core.diff import (
    FIRST_TASK_ID,
    Add,
    Delete,
    Modify,
    Mutation,
    TaskId,
    TaskIdAllocator,
    describe,
    gen_diff,
)
from profile_timer.core.profiles import ProfileItem, build_interval_map, is_overdue

logger = logging.getLogger("profile_timer.timer")

SnapshotProvider = Callable[[], list[ProfileItem]]
RefreshProfile = Callable[[str], Awaitable[Any]]
ApplyConfig = Callable[[], Awaitable[Any]]


class Runtime(Protocol):
    def register(self, task_id: int, minutes: int, body: Callable[[], Awaitable[None]], *, name: str = "") -> None: ...
    def remove(self, task_id: int) -> None: ...
    def advance(self, task_id: int) -> None: ...
    def task_ids(self) -> set[int]: ...


async def capture_errors(label: str, op: Callable[[], Awaitable[Any]]) -> bool:
    """Await op(); log any failure and report it as False instead of raising."""
    try:
        await op()
    except Exception as e:
        logger.error("%s failed error=%s", label, e)
        return False
    return True


async def run_profile_task(uid: str, refresh_profile: RefreshProfile, apply_config: ApplyConfig) -> bool:
    """
    Body of one scheduled job: update the profile, then push the new config
    into the proxy core. Never raises; a failed run leaves the schedule as is.
    """
    logger.info("timer task start uid=%s", uid)
    if not await capture_errors(f"profile update uid={uid}", lambda: refresh_profile(uid)):
        return False
    if not await capture_errors(f"core reconfigure uid={uid}", apply_config):
        return False
    logger.info("timer task done uid=%s", uid)
    return True


def overdue_uids(items: Iterable[ProfileItem], now_ts: float) -> list[str]:
    return [item.uid for item in items if is_overdue(item, now_ts)]


def plan_changes(
    current: Mapping[str, tuple[TaskId, int]],
    items: list[ProfileItem],
    *,
    next_task_id: TaskId = FIRST_TASK_ID,
    now_ts: float | None = None,
) -> dict[str, Any]:
    """Dry run: mutations and startup catch-up for a snapshot, without side effects."""
    desired = build_interval_map(items)
    diff = gen_diff(current, desired, TaskIdAllocator(next_task_id))
    ts = time.time() if now_ts is None else now_ts
    return {
        "mutations": {uid: describe(m) for uid, m in sorted(diff.items())},
        "advance": sorted(uid for uid in overdue_uids(items, ts) if uid in desired),
    }


class Timer:
    """
    Keeps one runtime job per profile with a positive update interval.

    The registry (uid -> (task_id, interval)) is the only record of what was
    scheduled. All registry reads/writes and runtime mutations happen under
    self._lock, so concurrent refresh() calls are applied one after another.
    """

    def __init__(
        self,
        runtime: Runtime,
        snapshot: SnapshotProvider,
        refresh_profile: RefreshProfile,
        apply_config: ApplyConfig,
        *,
        allocator: TaskIdAllocator | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._runtime = runtime
        self._snapshot = snapshot
        self._refresh_profile = refresh_profile
        self._apply_config = apply_config
        self._allocator = allocator or TaskIdAllocator()
        self._clock = clock

        self._timer_map: dict[str, tuple[TaskId, int]] = {}
        self._lock = threading.Lock()
        self._init_lock = threading.Lock()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def entries(self) -> dict[str, tuple[TaskId, int]]:
        with self._lock:
            return dict(self._timer_map)

    def initialize(self) -> list[str]:
        """
        First reconciliation plus catch-up: every profile already overdue gets
        one immediate run. Returns the advanced uids. Later calls are no-ops.
        """
        with self._init_lock:
            if self._initialized:
                logger.info("timer already initialized, skipping")
                return []

            logger.info("initializing timer")
            self.refresh()

            advanced: list[str] = []
            now_ts = self._clock()
            items = self._snapshot()
            with self._lock:
                for uid in overdue_uids(items, now_ts):
                    entry = self._timer_map.get(uid)
                    if entry is None:
                        logger.warning("catch-up skipped, not scheduled uid=%s", uid)
                        continue
                    logger.info("advancing overdue task uid=%s task_id=%s", uid, entry[0])
                    if self._call("advance", uid, self._runtime.advance, entry[0]):
                        advanced.append(uid)

            self._initialized = True
            logger.info("timer initialization completed advanced=%s", len(advanced))
            return advanced

    def refresh(self) -> dict[str, Mutation]:
        """Reconcile the runtime with the latest snapshot; returns applied mutations."""
        items = self._snapshot()
        desired = build_interval_map(items)
        with self._lock:
            diff = gen_diff(self._timer_map, desired, self._allocator)
            for uid, mutation in diff.items():
                self._apply(uid, mutation)
        if diff:
            logger.info(
                "timer refreshed added=%s modified=%s deleted=%s",
                sum(1 for m in diff.values() if isinstance(m, Add)),
                sum(1 for m in diff.values() if isinstance(m, Modify)),
                sum(1 for m in diff.values() if isinstance(m, Delete)),
            )
        return diff

    def plan(self) -> dict[str, Any]:
        with self._lock:
            current = dict(self._timer_map)
        return plan_changes(
            current,
            self._snapshot(),
            next_task_id=self._allocator.peek(),
            now_ts=self._clock(),
        )

    def repair(self) -> dict[str, list[Any]]:
        """
        Bring the runtime back in line with the registry: re-register entries
        whose job is gone and drop jobs the registry does not know about.
        refresh() never does this on its own.
        """
        registered: list[str] = []
        removed: list[int] = []
        with self._lock:
            live = self._runtime.task_ids()
            known = {tid for tid, _ in self._timer_map.values()}
            for uid, (tid, minutes) in self._timer_map.items():
                if tid in live:
                    continue
                logger.warning("repair: job missing, re-registering uid=%s task_id=%s", uid, tid)
                if self._call("register", uid, self._add_task, uid, tid, minutes):
                    registered.append(uid)
            for tid in sorted(live - known):
                logger.warning("repair: removing orphan job task_id=%s", tid)
                if self._call("remove", str(tid), self._runtime.remove, tid):
                    removed.append(tid)
        return {"registered": registered, "removed": removed}

    def _apply(self, uid: str, mutation: Mutation) -> None:
        # Caller holds self._lock.
        if isinstance(mutation, Delete):
            self._timer_map.pop(uid, None)
            logger.info("removing task uid=%s task_id=%s", uid, mutation.task_id)
            self._call("remove", uid, self._runtime.remove, mutation.task_id)
        elif isinstance(mutation, Add):
            self._timer_map[uid] = (mutation.task_id, mutation.interval)
            self._call("register", uid, self._add_task, uid, mutation.task_id, mutation.interval)
        else:
            self._timer_map[uid] = (mutation.task_id, mutation.interval)
            self._call("remove", uid, self._runtime.remove, mutation.task_id)
            self._call("register", uid, self._add_task, uid, mutation.task_id, mutation.interval)

    def _add_task(self, uid: str, task_id: TaskId, minutes: int) -> None:
        logger.info("adding task uid=%s task_id=%s interval=%sm", uid, task_id, minutes)
        body = functools.partial(run_profile_task, uid, self._refresh_profile, self._apply_config)
        self._runtime.register(task_id, minutes, body, name=f"profile:{uid}")

    @staticmethod
    def _call(action: str, uid: str, fn: Callable[..., Any], *args: Any) -> bool:
        try:
            fn(*args)
        except Exception as e:
            logger.error("runtime %s failed uid=%s error=%s", action, uid, e)
            return False
        return True
