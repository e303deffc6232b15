"""
Persistent store for generation jobs.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.exceptions import JobNotFoundError
from app.models.base import utcnow
from app.models.job import Job, JobKind, JobStatus, KIND_SERVICES, TERMINAL_STATUSES

logger = logging.getLogger(__name__)

# Payload keys accepted on creation
PAYLOAD_FIELDS = ('text', 'voice', 'source_audio_key', 'provider', 'model_id', 'aspect_ratio')


class JobStore:
    """
    CRUD for Job records.

    Status changes are conditional UPDATEs so a terminal job is never rewritten.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def create_job(self, owner_id: str, kind: str, payload: Dict[str, Any]) -> Job:
        """Create a pending job for the given owner."""
        kind = JobKind(kind).value
        unknown = set(payload) - set(PAYLOAD_FIELDS)
        if unknown:
            raise ValueError(f'Unknown job payload fields: {", ".join(sorted(unknown))}')

        job = Job(
            owner_id=owner_id,
            kind=kind,
            service=KIND_SERVICES[kind],
            status=JobStatus.pending.value,
            result_key=None,
            failed=False,
            **payload,
        )
        async with self._session_factory() as session:
            session.add(job)
            await session.commit()
            await session.refresh(job)
        return job

    async def get_job(self, job_id: str, owner_id: Optional[str] = None) -> Job:
        """
        Load a job.

        Raises:
            JobNotFoundError: absent, or owner_id given and not the owner
        """
        async with self._session_factory() as session:
            job = await session.get(Job, job_id)
        if job is None or (owner_id is not None and job.owner_id != owner_id):
            raise JobNotFoundError(job_id)
        return job

    async def mark_in_progress(self, job_id: str) -> bool:
        """Move a pending job to in_progress."""
        return await self._transition(
            job_id,
            Job.status == JobStatus.pending.value,
            status=JobStatus.in_progress.value,
        )

    async def mark_completed(self, job_id: str, result_key: str) -> bool:
        """
        Record the result of a job.

        Returns False and leaves the record alone if the job is already terminal.
        """
        if not result_key:
            raise ValueError('result_key is required to complete a job')
        changed = await self._transition(
            job_id,
            Job.status.notin_(sorted(TERMINAL_STATUSES)),
            status=JobStatus.completed.value,
            result_key=result_key,
            completed_at=utcnow(),
        )
        if not changed:
            logger.warning('Job %s is already terminal, result %s not recorded', job_id, result_key)
        return changed

    async def mark_failed(self, job_id: str, error: Optional[str] = None, terminal: bool = False) -> bool:
        """
        Flag a job as failed. Safe to call repeatedly.

        With terminal=True a job that has not finished also moves to the failed
        status; a completed job keeps its status and result.
        """
        values = {'failed': True}
        if error is not None:
            values['error_message'] = error

        async with self._session_factory() as session:
            result = await session.execute(
                update(Job).where(Job.id == job_id).values(**values)
            )
            if terminal:
                await session.execute(
                    update(Job)
                    .where(Job.id == job_id, Job.status.notin_(sorted(TERMINAL_STATUSES)))
                    .values(status=JobStatus.failed.value, completed_at=utcnow())
                )
            await session.commit()

        if result.rowcount == 0:
            raise JobNotFoundError(job_id)
        return True

    async def count_recent_jobs(self, owner_id: str, window_seconds: float) -> int:
        """Number of jobs the owner created in the trailing window."""
        since = utcnow() - timedelta(seconds=window_seconds)
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count(Job.id)).where(Job.owner_id == owner_id, Job.created_at >= since)
            )
            return result.scalar() or 0

    async def list_jobs(
        self,
        owner_id: str,
        kinds: Optional[Iterable[str]] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Job], int]:
        """Jobs of one owner, newest first, with the total count."""
        conditions = [Job.owner_id == owner_id]
        if kinds:
            conditions.append(Job.kind.in_(list(kinds)))

        async with self._session_factory() as session:
            count_result = await session.execute(select(func.count(Job.id)).where(*conditions))
            total = count_result.scalar() or 0

            result = await session.execute(
                select(Job)
                .where(*conditions)
                .order_by(Job.created_at.desc())
                .limit(limit)
                .offset(offset)
            )
            jobs = list(result.scalars().all())
        return jobs, total

    async def _transition(self, job_id: str, guard, **values) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                update(Job).where(Job.id == job_id, guard).values(**values)
            )
            await session.commit()
            if result.rowcount:
                return True
            exists = await session.get(Job, job_id)
        if exists is None:
            raise JobNotFoundError(job_id)
        return False
