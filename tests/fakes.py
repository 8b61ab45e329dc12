from __future__ import annotations

import asyncio
import threading
from typing import Any, Awaitable, Callable


class FakeRuntime:
    """In-memory stand-in for TaskRuntime; records every call."""

    def __init__(self) -> None:
        self.jobs: dict[int, dict[str, Any]] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.advanced: list[int] = []
        self.fail_register: set[int] = set()
        self.started = False
        self._lock = threading.Lock()

    def start(self, *, paused: bool = False) -> None:
        self.started = True

    def shutdown(self, *, wait: bool = False) -> None:
        self.started = False

    def register(self, task_id: int, minutes: int, body: Callable[[], Awaitable[None]], *, name: str = "") -> None:
        with self._lock:
            self.calls.append(("register", task_id, minutes))
            if task_id in self.fail_register:
                raise RuntimeError(f"register refused task_id={task_id}")
            if task_id in self.jobs:
                raise RuntimeError(f"task already registered task_id={task_id}")
            self.jobs[task_id] = {"minutes": minutes, "body": body, "name": name}

    def remove(self, task_id: int) -> None:
        with self._lock:
            self.calls.append(("remove", task_id))
            if task_id not in self.jobs:
                raise RuntimeError(f"unknown task_id={task_id}")
            del self.jobs[task_id]

    def advance(self, task_id: int) -> None:
        self.calls.append(("advance", task_id))
        if task_id not in self.jobs:
            raise RuntimeError(f"unknown task_id={task_id}")
        self.advanced.append(task_id)

    def task_ids(self) -> set[int]:
        return set(self.jobs)

    def describe_jobs(self) -> list[dict[str, Any]]:
        return [
            {"id": str(tid), "name": job["name"], "interval_minutes": job["minutes"], "next_run_time": None}
            for tid, job in sorted(self.jobs.items())
        ]

    def fire(self, task_id: int) -> Any:
        return asyncio.run(self.jobs[task_id]["body"]())


class Profiles:
    """Mutable snapshot provider: profiles.set({...}) then pass profiles.snapshot."""

    def __init__(self) -> None:
        self.items: list[Any] = []

    def set(self, items: list[Any]) -> None:
        self.items = list(items)

    def snapshot(self) -> list[Any]:
        return list(self.items)
