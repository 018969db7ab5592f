"""Job model for translation and language detection requests."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Float, Index, String, Text, Uuid

from translator.database import Base


class JobKind(str, enum.Enum):
    """Kind of work a job carries."""

    TRANSLATION = "translation"
    DETECTION = "detection"


class JobStatus(str, enum.Enum):
    """Lifecycle states of a job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


class Job(Base):
    """Job represents one translation or one language detection request."""

    __tablename__ = "jobs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    kind = Column(String(20), nullable=False)  # 'translation', 'detection'
    input_text = Column(Text, nullable=False)
    source_language = Column(String(10))  # Translation only, may be 'auto'
    target_language = Column(String(10))  # Translation only
    status = Column(String(20), nullable=False, default=JobStatus.PENDING.value)
    result_text = Column(Text)
    detected_language = Column(String(10))
    confidence = Column(Float)
    provider = Column(String(50))
    error_detail = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_jobs_status", "status"),
        Index("idx_jobs_kind", "kind"),
        Index("idx_jobs_created_at", "created_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in {s.value for s in TERMINAL_STATUSES}

    def __repr__(self):
        return f"<Job {self.id} kind={self.kind} status={self.status}>"
