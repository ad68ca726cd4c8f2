"""
Job scheduler with store-backed run-locks.

Jobs fire on fixed daily UTC times (``DailyAt``) or fixed intervals
aligned to the epoch (``Every``). Before each run the scheduler takes a
lease on the job name in the shared store; if another runner (another
process, or an overlapping run) holds it, the run is skipped with a
warning. The lease is released when the run ends, and expires after its
TTL if the holder dies.

A failing job never stops the scheduler: the exception is logged and
handed to the job's ``on_failure`` hook. A hook that raises is logged
too. ``stop()`` also cuts short the wait for the next due job.
"""

from __future__ import annotations

import asyncio
import logging
import os
import socket
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from fth_reserves.errors import JobLockedError

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class LeaseStore(Protocol):
    def acquire_lease(self, job_name: str, owner: str, ttl_seconds: float) -> bool: ...

    def release_lease(self, job_name: str, owner: str) -> None: ...


# =========================================================================
# Triggers
# =========================================================================


@dataclass(frozen=True)
class DailyAt:
    hour: int
    minute: int = 0

    def __post_init__(self) -> None:
        if not (0 <= self.hour < 24 and 0 <= self.minute < 60):
            raise ValueError(f"invalid time of day {self.hour:02d}:{self.minute:02d}")

    @classmethod
    def parse(cls, text: str) -> DailyAt:
        """Parse ``HH:MM`` (UTC)."""
        try:
            hour, minute = (int(part) for part in text.split(":"))
        except ValueError as exc:
            raise ValueError(f"expected HH:MM, got {text!r}") from exc
        return cls(hour, minute)

    def next_run(self, now: datetime) -> datetime:
        target = now.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if target <= now:
            target += timedelta(days=1)
        return target


@dataclass(frozen=True)
class Every:
    interval: timedelta

    def __post_init__(self) -> None:
        if self.interval <= timedelta(0):
            raise ValueError("interval must be positive")

    def next_run(self, now: datetime) -> datetime:
        elapsed = now - _EPOCH
        periods = elapsed // self.interval + 1
        return _EPOCH + periods * self.interval


Trigger = DailyAt | Every


@dataclass
class Job:
    name: str
    trigger: Trigger
    func: Callable[[], Awaitable[Any]]
    on_failure: Callable[[Exception], Any] | None = None
    next_run: datetime | None = None


def default_owner() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =========================================================================
# Scheduler
# =========================================================================


class JobScheduler:
    """Runs registered jobs on their triggers, one lease per run.

    Args:
        leases: Store providing acquire_lease / release_lease.
        owner: Lease owner id. Defaults to host:pid:random.
        lease_ttl_s: Lease lifetime; bounds how long a crashed run blocks.
        now, sleep: Injectable for tests.
    """

    def __init__(
        self,
        leases: LeaseStore,
        *,
        owner: str | None = None,
        lease_ttl_s: float = 3600.0,
        now: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._leases = leases
        self.owner = owner or default_owner()
        self._lease_ttl_s = lease_ttl_s
        self._now = now
        self._sleep = sleep
        self._jobs: dict[str, Job] = {}
        self._stopping = asyncio.Event()

    @property
    def jobs(self) -> list[Job]:
        return list(self._jobs.values())

    def add_job(
        self,
        name: str,
        trigger: Trigger,
        func: Callable[[], Awaitable[Any]],
        *,
        on_failure: Callable[[Exception], Any] | None = None,
    ) -> Job:
        if name in self._jobs:
            raise ValueError(f"job {name!r} already registered")
        job = Job(name=name, trigger=trigger, func=func, on_failure=on_failure)
        self._jobs[name] = job
        return job

    def _acquire(self, job: Job) -> None:
        if not self._leases.acquire_lease(job.name, self.owner, self._lease_ttl_s):
            raise JobLockedError(f"job {job.name} is already running elsewhere")

    async def run_job(self, name: str) -> bool:
        """Run one job now under its lease. Returns False if skipped or failed."""
        job = self._jobs[name]
        try:
            self._acquire(job)
        except JobLockedError as exc:
            logger.warning("skipping run: %s", exc, extra={"job": job.name})
            return False

        logger.info("job started", extra={"job": job.name, "owner": self.owner})
        try:
            await job.func()
        except Exception as exc:
            logger.exception("job failed", extra={"job": job.name})
            if job.on_failure is not None:
                try:
                    job.on_failure(exc)
                except Exception:
                    logger.exception("on_failure hook failed", extra={"job": job.name})
            return False
        finally:
            self._leases.release_lease(job.name, self.owner)
        logger.info("job finished", extra={"job": job.name})
        return True

    def stop(self) -> None:
        """Stop ``run_forever``, waking it if it is waiting for the next job."""
        self._stopping.set()

    async def _wait(self, delay: float) -> None:
        """Sleep for ``delay`` or until ``stop()``, whichever comes first."""
        sleeper = asyncio.ensure_future(self._sleep(delay))
        stopper = asyncio.ensure_future(self._stopping.wait())
        try:
            await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            stopper.cancel()

    async def run_forever(self) -> None:
        """Fire jobs at their next due times until ``stop()``."""
        if not self._jobs:
            raise ValueError("no jobs registered")
        now = self._now()
        for job in self._jobs.values():
            job.next_run = job.trigger.next_run(now)

        while not self._stopping.is_set():
            due_at = min(j.next_run for j in self._jobs.values() if j.next_run is not None)
            delay = (due_at - self._now()).total_seconds()
            if delay > 0:
                await self._wait(delay)
                continue

            now = self._now()
            due = [j for j in self._jobs.values() if j.next_run is not None and j.next_run <= now]
            for job in due:
                job.next_run = job.trigger.next_run(now)
            await asyncio.gather(*(self.run_job(j.name) for j in due))
