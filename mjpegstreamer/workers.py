"""A pool of worker threads that run jobs one frame at a time."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

_log = logging.getLogger(__name__)


@dataclass(eq=False)
class Worker:
    """One thread of a pool together with its job object and timing."""

    number: int
    name: str
    pool: WorkersPool = field(repr=False)
    job: Any = None
    has_job: bool = False
    job_timely: bool = False
    job_failed: bool = False
    job_start_ts: float = 0.0
    last_job_time: float = 0.0
    _cond: threading.Condition = field(default_factory=threading.Condition, repr=False)
    _thread: threading.Thread | None = field(default=None, repr=False)

    def _loop(self) -> None:
        pool = self.pool
        _log.debug("Hello! I am a worker %s ^_^", self.name)
        while not pool._stop:
            _log.debug("Worker %s waiting for a new job ...", self.name)
            with self._cond:
                self._cond.wait_for(lambda: self.has_job)

            if not pool._stop:
                start_ts = time.monotonic()
                try:
                    ok = bool(pool._run_job(self))
                except Exception:
                    _log.exception("Worker %s: job raised an error", self.name)
                    ok = False
                self.job_failed = not ok
                if ok:
                    self.job_start_ts = start_ts
                    self.last_job_time = time.monotonic() - start_ts
                with self._cond:
                    self.has_job = False

            with pool._free_cond:
                pool._free_workers += 1
                pool._free_cond.notify()
        _log.debug("Bye-bye (worker %s)", self.name)


class WorkersPool:
    """Threads that each run one job at a time, handed out in freshest-first order."""

    def __init__(
        self,
        name: str,
        worker_prefix: str,
        n_workers: int,
        desired_interval: float,
        job_factory: Callable[[], Any],
        run_job: Callable[[Worker], bool],
        job_destroy: Callable[[Any], None] | None = None,
    ) -> None:
        _log.info("Creating pool %s with %u workers ...", name, n_workers)
        self.name = name
        self.desired_interval = desired_interval
        self.n_workers = n_workers
        self.job_timely_ts = 0.0
        self.approx_job_time = 0.0
        self._run_job = run_job
        self._job_destroy = job_destroy
        self._stop = False
        self._closed = False
        self._free_cond = threading.Condition()
        self._free_workers = 0
        self.workers: list[Worker] = []

        for number in range(n_workers):
            worker = Worker(number=number, name=f"{worker_prefix}-{number}", pool=self)
            worker.job = job_factory()
            worker._thread = threading.Thread(target=worker._loop, name=worker.name, daemon=True)
            worker._thread.start()
            self._free_workers += 1
            self.workers.append(worker)

    def wait(self) -> Worker:
        """Block until a worker is free and return the one with the newest finished job."""
        with self._free_cond:
            self._free_cond.wait_for(lambda: self._free_workers > 0)

        found: Worker | None = None
        for worker in self.workers:
            if not worker.has_job and (found is None or found.job_start_ts <= worker.job_start_ts):
                found = worker
        if found is None:
            raise RuntimeError(f"Pool {self.name}: no free worker found")
        self.workers.remove(found)
        self.workers.append(found)

        found.job_timely = found.job_start_ts > self.job_timely_ts
        if found.job_timely:
            self.job_timely_ts = found.job_start_ts
        return found

    def assign(self, worker: Worker) -> None:
        """Start the worker on the job it currently holds."""
        with worker._cond:
            worker.has_job = True
            worker._cond.notify()
        with self._free_cond:
            self._free_workers -= 1

    def get_fluency_delay(self, worker: Worker) -> float:
        """Update the average job time and return the delay before the next grab."""
        approx_job_time = self.approx_job_time * 0.9 + worker.last_job_time * 0.1
        _log.debug(
            "Correcting pool's %s approx_job_time: %.3f -> %.3f (last_job_time=%.3f)",
            self.name,
            self.approx_job_time,
            approx_job_time,
            worker.last_job_time,
        )
        self.approx_job_time = approx_job_time

        min_delay = self.approx_job_time / self.n_workers
        if self.desired_interval > 0 and min_delay > 0 and self.desired_interval > min_delay:
            return self.desired_interval
        return min_delay

    def close(self) -> None:
        """Stop every worker thread and release the job objects."""
        if self._closed:
            return
        self._closed = True
        _log.info("Destroying workers pool %s ...", self.name)
        self._stop = True
        for worker in self.workers:
            with worker._cond:
                worker.has_job = True
                worker._cond.notify()
            if worker._thread is not None:
                worker._thread.join()
            if self._job_destroy is not None:
                self._job_destroy(worker.job)

    def __enter__(self) -> WorkersPool:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()