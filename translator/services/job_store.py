"""SQLAlchemy-backed job store with retries on connection failures."""

import functools
import logging
import uuid
from typing import List, Optional, Tuple, Union

from sqlalchemy import func
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from translator.config import settings
from translator.exceptions import NotFoundError, TransientInfrastructureError
from translator.models.job import Job

logger = logging.getLogger(__name__)


def _with_retries(func_):
    """Retry a store operation on connection errors, then surface them as transient."""
    retrying = retry(
        retry=retry_if_exception_type(OperationalError),
        stop=stop_after_attempt(settings.STORE_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        reraise=True,
    )(func_)

    @functools.wraps(func_)
    def wrapper(*args, **kwargs):
        try:
            return retrying(*args, **kwargs)
        except OperationalError as e:
            logger.error(f"Job store unavailable in {func_.__name__}: {e}")
            raise TransientInfrastructureError("Job store unavailable") from e

    return wrapper


class JobStore:
    """Durable record of each job's current state."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @_with_retries
    def create(self, job: Job) -> Job:
        """Insert a new job and commit it."""
        with self.session_factory() as db:
            db.add(job)
            db.commit()
            db.refresh(job)
            db.expunge(job)
        logger.info(f"Created {job.kind} job {job.id}")
        return job

    @_with_retries
    def find_by_id(self, job_id: Union[str, uuid.UUID]) -> Job:
        """
        Load a job by id.

        Raises:
            NotFoundError: If no job has this id
        """
        try:
            key = job_id if isinstance(job_id, uuid.UUID) else uuid.UUID(str(job_id))
        except ValueError:
            raise NotFoundError(f"Job {job_id} not found") from None

        with self.session_factory() as db:
            job = db.get(Job, key)
            if job is None:
                raise NotFoundError(f"Job {job_id} not found")
            db.expunge(job)
            return job

    @_with_retries
    def update(self, job: Job) -> Job:
        """Persist the current state of a job."""
        with self.session_factory() as db:
            merged = db.merge(job)
            db.commit()
            db.refresh(merged)
            db.expunge(merged)
        return merged

    @_with_retries
    def find_page(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> Tuple[List[Job], int]:
        """
        List jobs newest first.

        Args:
            page: 1-based page number
            limit: Page size
            status: Optional status filter
            kind: Optional kind filter

        Returns:
            Tuple of (jobs on this page, total matching jobs)
        """
        with self.session_factory() as db:
            query = db.query(Job)
            if status:
                query = query.filter(Job.status == status)
            if kind:
                query = query.filter(Job.kind == kind)

            total = query.with_entities(func.count(Job.id)).scalar()
            items = (
                query.order_by(Job.created_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
            for item in items:
                db.expunge(item)
            return items, total
