"""
Delayed job queues.

A job waits in the schedule until its run_at deadline, then a worker pops it.
Backoff is expressed as a later deadline, never as a sleeping worker, so a
small pool can carry many delayed jobs.

InMemoryJobQueue serves a single process; ValkeyJobQueue lets several worker
processes share one schedule.
"""

import heapq
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime

from clients.valkey_client import ValkeyClient
from jobs.models import JobRecord
from utils.timezone import to_timestamp

logger = logging.getLogger(__name__)


class JobQueue(ABC):
    """Job record store plus a schedule ordered by run_at."""

    @abstractmethod
    def put(self, job: JobRecord) -> None:
        """Store `job` and schedule it at job.run_at (replacing any earlier slot)."""

    @abstractmethod
    def save(self, job: JobRecord) -> None:
        """Store `job` without touching the schedule."""

    @abstractmethod
    def get(self, job_id: str) -> JobRecord | None:
        """Latest stored record, None if unknown."""

    @abstractmethod
    def pop_due(self, now: datetime, limit: int | None = None) -> list[JobRecord]:
        """
        Claim jobs whose run_at <= now, earliest first.

        Claimed jobs leave the schedule; each is handed to exactly one caller.
        """

    @abstractmethod
    def remove(self, job_id: str) -> bool:
        """Take a job off the schedule. True if it was scheduled."""

    @abstractmethod
    def pending_count(self) -> int:
        """Number of scheduled jobs (due or not)."""


class InMemoryJobQueue(JobQueue):
    """Heap-ordered schedule guarded by a lock."""

    def __init__(self):
        self._records: dict[str, JobRecord] = {}
        self._heap: list[tuple[datetime, int, str]] = []
        self._slots: dict[str, int] = {}  # job id -> live heap sequence number
        self._sequence = itertools.count()
        self._lock = threading.Lock()

    def put(self, job: JobRecord) -> None:
        with self._lock:
            self._records[job.id] = job
            seq = next(self._sequence)
            self._slots[job.id] = seq
            heapq.heappush(self._heap, (job.run_at, seq, job.id))

    def save(self, job: JobRecord) -> None:
        with self._lock:
            self._records[job.id] = job

    def get(self, job_id: str) -> JobRecord | None:
        with self._lock:
            return self._records.get(job_id)

    def pop_due(self, now: datetime, limit: int | None = None) -> list[JobRecord]:
        claimed = []
        with self._lock:
            while self._heap and (limit is None or len(claimed) < limit):
                run_at, seq, job_id = self._heap[0]
                if self._slots.get(job_id) != seq:
                    # Stale slot: job was removed or rescheduled
                    heapq.heappop(self._heap)
                    continue
                if run_at > now:
                    break
                heapq.heappop(self._heap)
                del self._slots[job_id]
                claimed.append(self._records[job_id])
        return claimed

    def remove(self, job_id: str) -> bool:
        with self._lock:
            # Heap entry becomes stale and is skipped by pop_due
            return self._slots.pop(job_id, None) is not None

    def pending_count(self) -> int:
        with self._lock:
            return len(self._slots)


class ValkeyJobQueue(JobQueue):
    """
    Schedule shared through Valkey.

    Records live under `<prefix>job:<id>` as JSON; the schedule is the sorted
    set `<prefix>schedule` scored by run_at timestamp. A worker owns a job
    only if its ZREM succeeds.
    """

    RECORD_TTL_SECONDS = 7 * 24 * 3600

    def __init__(self, valkey: ValkeyClient, prefix: str = "jobs:"):
        self._valkey = valkey
        self._prefix = prefix
        self._schedule_key = f"{prefix}schedule"

    def _record_key(self, job_id: str) -> str:
        return f"{self._prefix}job:{job_id}"

    def put(self, job: JobRecord) -> None:
        self.save(job)
        self._valkey.zadd(self._schedule_key, job.id, to_timestamp(job.run_at))

    def save(self, job: JobRecord) -> None:
        self._valkey.set(
            self._record_key(job.id),
            job.model_dump_json(),
            expire_seconds=self.RECORD_TTL_SECONDS,
        )

    def get(self, job_id: str) -> JobRecord | None:
        raw = self._valkey.get(self._record_key(job_id))
        if raw is None:
            return None
        return JobRecord.model_validate_json(raw)

    def pop_due(self, now: datetime, limit: int | None = None) -> list[JobRecord]:
        batch = limit if limit is not None else 100
        claimed = []
        for job_id in self._valkey.zrange_due(self._schedule_key, to_timestamp(now), batch):
            if not self._valkey.zrem(self._schedule_key, job_id):
                continue  # Another worker claimed it
            job = self.get(job_id)
            if job is None:
                logger.error(f"Scheduled job {job_id} has no stored record, dropping it")
                continue
            claimed.append(job)
        return claimed

    def remove(self, job_id: str) -> bool:
        return self._valkey.zrem(self._schedule_key, job_id)

    def pending_count(self) -> int:
        return self._valkey.zcard(self._schedule_key)
