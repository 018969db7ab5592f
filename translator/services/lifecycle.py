"""Job lifecycle state machine."""

import logging
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from translator.exceptions import InvalidTransition
from translator.models.job import Job, JobKind, JobStatus

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Check whether a status change is permitted."""
    return target in ALLOWED_TRANSITIONS[current]


def transition(
    job: Job,
    target: JobStatus,
    *,
    result_text: Optional[str] = None,
    detected_language: Optional[str] = None,
    confidence: Optional[float] = None,
    provider: Optional[str] = None,
    error_detail: Optional[str] = None,
) -> Job:
    """
    Move a job to a new status, enforcing the lifecycle invariants.

    Result fields are only written on entering completed, the error detail
    only on entering failed. The job is mutated in place and returned; the
    caller persists it.

    Args:
        job: Job to mutate
        target: Desired status
        result_text: Translated text (translation jobs)
        detected_language: Language code (detection jobs)
        confidence: Detection confidence (detection jobs)
        provider: Name of the strategy that produced the result
        error_detail: Failure description (failed only)

    Returns:
        The mutated job

    Raises:
        InvalidTransition: If the change is not allowed or required fields are missing
    """
    current = JobStatus(job.status)
    if not can_transition(current, target):
        raise InvalidTransition(
            f"Job {job.id} cannot move from {current.value} to {target.value}",
            details={"from": current.value, "to": target.value},
        )

    if target == JobStatus.COMPLETED:
        if job.kind == JobKind.TRANSLATION.value:
            if not result_text:
                raise InvalidTransition(f"Job {job.id} cannot complete without a translation")
            job.result_text = result_text
        else:
            if not detected_language or confidence is None:
                raise InvalidTransition(f"Job {job.id} cannot complete without a detected language")
            job.detected_language = detected_language
            job.confidence = confidence
        job.provider = provider

    elif target == JobStatus.FAILED:
        if not error_detail:
            raise InvalidTransition(f"Job {job.id} cannot fail without an error detail")
        job.error_detail = error_detail
        if provider:
            job.provider = provider

    job.status = target.value
    job.updated_at = datetime.utcnow()

    logger.info(f"Job {job.id}: {current.value} -> {target.value}")
    return job
