from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable

TaskBody = Callable[[], Awaitable[None]]


class TaskRuntimeError(RuntimeError):
    pass


def _job_id(task_id: int) -> str:
    return str(int(task_id))


def _run_coroutine(body: TaskBody) -> None:
    # Executor threads have no running loop; each execution gets its own.
    asyncio.run(body())


class TaskRuntime:
    """
    Recurring-task engine keyed by numeric task id.

    Thin layer over APScheduler's BackgroundScheduler:
    - one job per task id, repeated every N minutes,
    - max_instances=1 so a slow run makes the next firing get skipped instead
      of overlapping,
    - advance() pulls next_run_time to "now" without touching the trigger.
    """

    def __init__(self, timezone: str | None = None, *, scheduler: Any = None) -> None:
        try:
            from apscheduler.jobstores.base import ConflictingIdError, JobLookupError  # type: ignore
            from apscheduler.schedulers.background import BackgroundScheduler  # type: ignore
            from apscheduler.triggers.interval import IntervalTrigger  # type: ignore
        except Exception as e:
            raise TaskRuntimeError(
                "APScheduler is required but not installed. Install with: pip install -e .\n"
                f"import_error={e}"
            ) from e

        self.ConflictingIdError = ConflictingIdError
        self.JobLookupError = JobLookupError
        self.IntervalTrigger = IntervalTrigger
        self._logger = logging.getLogger("profile_timer.runtime")

        if scheduler is None:
            options: dict[str, Any] = {
                "job_defaults": {
                    "max_instances": 1,
                    "coalesce": True,
                }
            }
            if timezone:
                options["timezone"] = timezone
            scheduler = BackgroundScheduler(**options)
        self.scheduler = scheduler

    @property
    def running(self) -> bool:
        return bool(self.scheduler.running)

    def start(self, *, paused: bool = False) -> None:
        if not self.running:
            self.scheduler.start(paused=paused)

    def shutdown(self, *, wait: bool = False) -> None:
        if self.running:
            self.scheduler.shutdown(wait=wait)

    def register(self, task_id: int, minutes: int, body: TaskBody, *, name: str = "") -> None:
        if int(minutes) <= 0:
            raise TaskRuntimeError(f"invalid interval task_id={task_id} minutes={minutes}")
        jid = _job_id(task_id)
        # Pending jobs (scheduler not started yet) skip APScheduler's own id check.
        if self.scheduler.get_job(jid) is not None:
            raise TaskRuntimeError(f"task already registered task_id={task_id}")
        trigger = self.IntervalTrigger(minutes=int(minutes), timezone=self.scheduler.timezone)
        try:
            self.scheduler.add_job(
                _run_coroutine,
                trigger=trigger,
                args=[body],
                id=jid,
                name=name or jid,
                max_instances=1,
                coalesce=True,
                replace_existing=False,
            )
        except self.ConflictingIdError as e:
            raise TaskRuntimeError(f"task already registered task_id={task_id}") from e
        self._logger.debug("registered task_id=%s minutes=%s name=%s", task_id, minutes, name)

    def remove(self, task_id: int) -> None:
        try:
            self.scheduler.remove_job(_job_id(task_id))
        except self.JobLookupError as e:
            raise TaskRuntimeError(f"unknown task_id={task_id}") from e
        self._logger.debug("removed task_id=%s", task_id)

    def advance(self, task_id: int) -> None:
        job = self.scheduler.get_job(_job_id(task_id))
        if job is None:
            raise TaskRuntimeError(f"unknown task_id={task_id}")
        job.modify(next_run_time=datetime.now(self.scheduler.timezone))
        self._logger.debug("advanced task_id=%s", task_id)

    def task_ids(self) -> set[int]:
        out: set[int] = set()
        for job in self.scheduler.get_jobs():
            try:
                out.add(int(job.id))
            except (TypeError, ValueError):
                continue
        return out

    def describe_jobs(self) -> list[dict[str, Any]]:
        jobs = []
        for job in self.scheduler.get_jobs():
            nrt = getattr(job, "next_run_time", None)
            interval = getattr(job.trigger, "interval", None)
            jobs.append(
                {
                    "id": str(job.id),
                    "name": str(job.name),
                    "interval_minutes": int(interval.total_seconds() // 60) if interval is not None else None,
                    "next_run_time": nrt.isoformat() if nrt else None,
                }
            )
        return jobs
