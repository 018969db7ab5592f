"""SQLAlchemy ORM models."""

from translator.models.job import TERMINAL_STATUSES, Job, JobKind, JobStatus

__all__ = [
    "Job",
    "JobKind",
    "JobStatus",
    "TERMINAL_STATUSES",
]
