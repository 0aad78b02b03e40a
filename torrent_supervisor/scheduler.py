"""Recurring background jobs.

Each registered job gets its own asyncio task that runs the (synchronous) job
in a worker thread, then sleeps for whatever is left of its interval. A run
that outlasts its interval delays the next one; firings of the same job never
overlap and missed firings are not queued up. Exceptions are logged and the
loop keeps going.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass
class Job:
    name: str
    interval_s: float
    func: Callable[[], object]
    initial_delay_s: float | None = None
    runs: int = 0
    failures: int = 0
    last_run_ts: float | None = None
    last_error: str | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class JobScheduler:
    def __init__(self) -> None:
        self.jobs: dict[str, Job] = {}
        self.tasks: dict[str, asyncio.Task] = {}

    def schedule(
        self,
        name: str,
        interval_s: float,
        func: Callable[[], object],
        initial_delay_s: float | None = None,
    ) -> Job:
        if name in self.jobs:
            raise ValueError(f"job {name!r} already scheduled")
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        job = Job(name=name, interval_s=interval_s, func=func, initial_delay_s=initial_delay_s)
        self.jobs[name] = job
        return job

    def start(self) -> "JobScheduler":
        """Spawn one loop per job. Must be called from a running event loop."""
        for name, job in self.jobs.items():
            task = self.tasks.get(name)
            if isinstance(task, asyncio.Task) and not task.done():
                continue
            self.tasks[name] = asyncio.create_task(self._loop(job), name=f"job:{name}")
        logger.info("Started %d background job(s)", len(self.tasks))
        return self

    async def stop(self) -> None:
        tasks = [t for t in self.tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.tasks.clear()

    async def run_now(self, name: str) -> bool:
        """Run a job once right away. Returns False if it is already running."""
        return await asyncio.to_thread(self._execute, self.jobs[name])

    def summary(self) -> list[str]:
        """One status line per job: run and failure counts, last run and error."""
        lines = []
        for job in self.jobs.values():
            last_run = (
                time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(job.last_run_ts))
                if job.last_run_ts is not None
                else "never"
            )
            line = f"{job.name}: runs={job.runs} failures={job.failures} last_run={last_run}"
            if job.last_error:
                line += f" last_error={job.last_error}"
            lines.append(line)
        return lines

    def _execute(self, job: Job) -> bool:
        if not job._lock.acquire(blocking=False):
            logger.warning("Job %s is still running, skipping this firing", job.name)
            return False
        try:
            job.func()
            job.last_error = None
        except Exception as exc:
            job.failures += 1
            job.last_error = str(exc)
            logger.exception("Job %s failed", job.name)
        finally:
            job.runs += 1
            job.last_run_ts = time.time()
            job._lock.release()
        return True

    async def _loop(self, job: Job) -> None:
        logger.info("Starting job %s (interval=%ss)", job.name, job.interval_s)
        delay = job.interval_s if job.initial_delay_s is None else job.initial_delay_s
        await asyncio.sleep(max(0.0, delay))
        while True:
            try:
                start = time.monotonic()
                await asyncio.to_thread(self._execute, job)
                elapsed = time.monotonic() - start
                await asyncio.sleep(max(0.0, job.interval_s - elapsed))
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Job loop %s error", job.name)
                await asyncio.sleep(job.interval_s)
