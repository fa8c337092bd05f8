"""Helpers for enqueuing and managing background jobs."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bunjang_bridge.core.enums import JobStatus, JobType
from bunjang_bridge.core.utils import utcnow
from bunjang_bridge.models.job import Job


async def enqueue_job(
    db: AsyncSession,
    *,
    job_type: JobType,
    payload: Dict[str, Any],
    max_attempts: int = 3,
) -> Job:
    """Create a queued job. The caller commits."""
    job = Job(
        job_type=job_type.value,
        payload=payload,
        status=JobStatus.QUEUED.value,
        max_attempts=max_attempts,
    )
    db.add(job)
    await db.flush()
    await db.refresh(job)
    return job


async def fetch_next_queued_job(db: AsyncSession) -> Optional[Job]:
    """Fetch the next due queued job (using SKIP LOCKED to avoid contention)."""
    now = utcnow()
    stmt = (
        select(Job)
        .where(
            Job.status == JobStatus.QUEUED.value,
            or_(Job.run_after.is_(None), Job.run_after <= now),
        )
        .order_by(Job.created_at.asc(), Job.id.asc())
        .limit(1)
        .with_for_update(skip_locked=True)
    )
    result = await db.execute(stmt)
    return result.scalars().first()


async def mark_job_in_progress(db: AsyncSession, job: Job) -> None:
    job.status = JobStatus.IN_PROGRESS.value
    job.last_attempt_at = utcnow()
    job.attempts += 1
    await db.flush()


async def mark_job_completed(db: AsyncSession, job: Job, result: Optional[Dict[str, Any]] = None) -> None:
    job.status = JobStatus.COMPLETED.value
    job.result = result
    job.error_message = None
    await db.flush()


async def mark_job_failed(
    db: AsyncSession,
    job: Job,
    error_message: str,
    *,
    retryable: bool = True,
    backoff_seconds: float = 5.0,
) -> None:
    """
    Record a failed attempt. Retryable jobs go back to the queue with
    exponential backoff until ``max_attempts`` is reached.
    """
    job.error_message = error_message[:2000]
    if retryable and job.attempts < job.max_attempts:
        delay = backoff_seconds * (2 ** (job.attempts - 1))
        job.status = JobStatus.QUEUED.value
        job.run_after = utcnow() + timedelta(seconds=delay)
    else:
        job.status = JobStatus.FAILED.value
    await db.flush()


async def get_job(db: AsyncSession, job_id: int) -> Optional[Job]:
    return await db.get(Job, job_id)


async def peek_queue_count(db: AsyncSession) -> int:
    """Check how many jobs are still queued (without locking)."""
    stmt = select(func.count(Job.id)).where(Job.status == JobStatus.QUEUED.value)
    result = await db.execute(stmt)
    return result.scalar() or 0


async def purge_finished_jobs(db: AsyncSession, older_than: datetime) -> int:
    """Delete completed and failed jobs last touched before ``older_than``."""
    if older_than.tzinfo is None:
        older_than = older_than.replace(tzinfo=timezone.utc)
    stmt = delete(Job).where(
        Job.status.in_([JobStatus.COMPLETED.value, JobStatus.FAILED.value]),
        Job.updated_at < older_than,
    )
    result = await db.execute(stmt)
    return result.rowcount or 0
