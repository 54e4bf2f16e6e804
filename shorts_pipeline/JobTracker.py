"""
Job status persistence.

The orchestrator is the only writer of a job record; polling clients only
read it. Two backends share one interface: an in-process dictionary for the
CLI and tests, and Redis (JSON values under `job:<id>` with a TTL) when
several processes need to see the same jobs.
"""
import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Dict, List, Optional

import redis

from .Errors import JobNotFoundError
from .Models import ProcessingJob, ProcessingStage, JobStatus, SegmentCaptions, now_ms

logger = logging.getLogger(__name__)


def status_for_stage(stage: ProcessingStage) -> JobStatus:
    if stage == ProcessingStage.COMPLETE:
        return JobStatus.COMPLETE
    if stage == ProcessingStage.ERROR:
        return JobStatus.ERROR
    if stage == ProcessingStage.QUEUED:
        return JobStatus.PENDING
    return JobStatus.PROCESSING


class JobTracker(ABC):
    """Stores `ProcessingJob` records and applies partial updates to them."""

    @abstractmethod
    def create_job(self, job: ProcessingJob) -> None:
        ...

    @abstractmethod
    def get_job(self, job_id: str) -> Optional[ProcessingJob]:
        ...

    @abstractmethod
    def delete_job(self, job_id: str) -> None:
        ...

    @abstractmethod
    def _save(self, job: ProcessingJob) -> None:
        ...

    def _apply(self, job_id: str, updates: Dict[str, Any]) -> ProcessingJob:
        job = self.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job not found: {job_id}")
        updates = dict(updates)
        updates["updated_at"] = now_ms()
        updated = replace(job, **updates)
        self._save(updated)
        return updated

    def update_job(self, job_id: str, **updates: Any) -> ProcessingJob:
        """
        Merges `updates` into the stored job and stamps `updated_at`.

        Returns:
            ProcessingJob: The job as stored after the update.

        Raises:
            JobNotFoundError: If no job with `job_id` exists.
            TypeError: If an update names a field the job does not have.
        """
        updated = self._apply(job_id, updates)
        logger.debug(f"Updated job {job_id}: {updated.stage.value} - {updated.message}")
        return updated

    def update_progress(
        self,
        job_id: str,
        stage: ProcessingStage,
        progress: float,
        message: str,
        current_segment: Optional[int] = None
    ) -> ProcessingJob:
        updates: Dict[str, Any] = {
            "stage": stage,
            "status": status_for_stage(stage),
            "progress": progress,
            "message": message,
        }
        if current_segment is not None:
            updates["current_segment"] = current_segment
        return self.update_job(job_id, **updates)

    def complete_job(
        self,
        job_id: str,
        output_url: str,
        captions: Optional[List[SegmentCaptions]] = None
    ) -> ProcessingJob:
        return self.update_job(
            job_id,
            status=JobStatus.COMPLETE,
            stage=ProcessingStage.COMPLETE,
            progress=100.0,
            message="Processing complete",
            output_url=output_url,
            captions=captions,
            completed_at=now_ms(),
        )

    def fail_job(self, job_id: str, error: str) -> ProcessingJob:
        return self.update_job(
            job_id,
            status=JobStatus.ERROR,
            stage=ProcessingStage.ERROR,
            message="Processing failed",
            error=error,
        )


class InMemoryJobTracker(JobTracker):
    """Thread-safe dictionary store. Jobs live as long as the process."""

    def __init__(self):
        self._jobs: Dict[str, ProcessingJob] = {}
        self._lock = threading.Lock()

    def create_job(self, job: ProcessingJob) -> None:
        with self._lock:
            self._jobs[job.id] = job
        logger.info(f"Created job {job.id} (in-memory)")

    def get_job(self, job_id: str) -> Optional[ProcessingJob]:
        with self._lock:
            return self._jobs.get(job_id)

    def delete_job(self, job_id: str) -> None:
        with self._lock:
            self._jobs.pop(job_id, None)

    def _save(self, job: ProcessingJob) -> None:
        self._jobs[job.id] = job

    def _apply(self, job_id: str, updates: Dict[str, Any]) -> ProcessingJob:
        # Read-modify-write under one lock so concurrent updates never interleave.
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(f"Job not found: {job_id}")
            updates = dict(updates)
            updates["updated_at"] = now_ms()
            updated = replace(job, **updates)
            self._save(updated)
            return updated


class RedisJobTracker(JobTracker):
    """
    Redis-backed store. Each job is a JSON string under `job:<id>`, rewritten
    with a fresh TTL on every update.

    Args:
        redis_url (str): Connection URL, e.g. 'redis://localhost:6379/0'.
        ttl_sec (int): Expiry applied on every write.
        client (Optional[Any]): An existing `redis.Redis`-compatible client.
    """

    KEY_PREFIX = "job:"

    def __init__(self, redis_url: str = "redis://localhost:6379/0", ttl_sec: int = 86400, client: Optional[Any] = None):
        if client is None:
            client = redis.Redis.from_url(redis_url, decode_responses=True)
        self.redis = client
        self.ttl_sec = ttl_sec

    def _key(self, job_id: str) -> str:
        return f"{self.KEY_PREFIX}{job_id}"

    def create_job(self, job: ProcessingJob) -> None:
        self._save(job)
        logger.info(f"Created job {job.id} (redis)")

    def get_job(self, job_id: str) -> Optional[ProcessingJob]:
        data = self.redis.get(self._key(job_id))
        if not data:
            return None
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return ProcessingJob.from_dict(json.loads(data))

    def delete_job(self, job_id: str) -> None:
        self.redis.delete(self._key(job_id))

    def _save(self, job: ProcessingJob) -> None:
        self.redis.setex(self._key(job.id), self.ttl_sec, json.dumps(job.to_dict()))


def create_job_tracker(config: Dict[str, Any]) -> JobTracker:
    """Builds the tracker selected by CONFIG['JOB_STORE'] ('memory' or 'redis')."""
    store = config.get("JOB_STORE", "memory")
    if store == "memory":
        return InMemoryJobTracker()
    if store == "redis":
        return RedisJobTracker(config.get("REDIS_URL", "redis://localhost:6379/0"), int(config.get("JOB_TTL_SEC", 86400)))
    raise ValueError(f"Unknown job store '{store}'. Expected 'memory' or 'redis'.")
