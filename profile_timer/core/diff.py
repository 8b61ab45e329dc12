from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Mapping, Union

TaskId = int

FIRST_TASK_ID = 1


@dataclass(frozen=True)
class Delete:
    task_id: TaskId


@dataclass(frozen=True)
class Add:
    task_id: TaskId
    interval: int


@dataclass(frozen=True)
class Modify:
    task_id: TaskId
    interval: int


Mutation = Union[Delete, Add, Modify]


class TaskIdAllocator:
    """
    Process-lifetime task id counter.

    Ids only ever grow; a removed id is never handed out again, so a late
    remove/advance for an old job can never hit a newer one.
    """

    def __init__(self, start: TaskId = FIRST_TASK_ID) -> None:
        self._next = int(start)
        self._lock = threading.Lock()

    @property
    def lock(self) -> threading.Lock:
        return self._lock

    def peek(self) -> TaskId:
        return self._next

    def take(self) -> TaskId:
        with self._lock:
            return self.take_locked()

    def take_locked(self) -> TaskId:
        # Caller must hold self.lock.
        tid = self._next
        self._next += 1
        return tid


def gen_diff(
    current: Mapping[str, tuple[TaskId, int]],
    desired: Mapping[str, int],
    allocator: TaskIdAllocator,
) -> dict[str, Mutation]:
    """
    Compare the registry (uid -> (task_id, interval)) against the desired
    uid -> interval map and return the mutations needed to converge.

    Only side effect: one allocator increment per Add.
    """
    diff: dict[str, Mutation] = {}

    for uid, (tid, interval) in current.items():
        new_interval = desired.get(uid, 0)
        if new_interval <= 0:
            diff[uid] = Delete(tid)
        elif new_interval != interval:
            diff[uid] = Modify(tid, new_interval)

    with allocator.lock:
        for uid, interval in desired.items():
            if interval <= 0 or uid in current:
                continue
            diff[uid] = Add(allocator.take_locked(), interval)

    return diff


def describe(mutation: Mutation) -> dict[str, object]:
    if isinstance(mutation, Delete):
        return {"op": "delete", "task_id": mutation.task_id}
    if isinstance(mutation, Add):
        return {"op": "add", "task_id": mutation.task_id, "interval": mutation.interval}
    return {"op": "modify", "task_id": mutation.task_id, "interval": mutation.interval}
