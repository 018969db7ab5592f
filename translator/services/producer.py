"""Job producer: validates requests, records jobs and enqueues work."""

import logging
import math
import uuid
from datetime import datetime
from typing import Any, Dict, Optional, Union

import pydantic

from translator.config import settings
from translator.exceptions import ValidationError
from translator.models.job import Job, JobKind, JobStatus
from translator.schemas.job import DetectionCreate, TranslationCreate
from translator.schemas.messages import encode_message, message_for_job
from translator.services.job_store import JobStore

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class JobProducer:
    """Creates jobs in pending state and publishes one work message per job."""

    def __init__(
        self,
        store: JobStore,
        queue,
        translation_queue: Optional[str] = None,
        detection_queue: Optional[str] = None,
    ):
        self.store = store
        self.queue = queue
        self.queue_names = {
            JobKind.TRANSLATION.value: translation_queue or settings.TRANSLATION_QUEUE,
            JobKind.DETECTION.value: detection_queue or settings.DETECTION_QUEUE,
        }

    def _validate(self, schema, **data):
        try:
            return schema(**data)
        except pydantic.ValidationError as e:
            raise ValidationError(details=e.errors(include_url=False)) from e

    def _submit(self, job: Job) -> Job:
        """Commit the job, then publish its message."""
        job = self.store.create(job)
        queue_name = self.queue_names[job.kind]
        self.queue.publish(queue_name, encode_message(message_for_job(job)), durable=True)
        logger.info(f"Enqueued {job.kind} job {job.id} on {queue_name}")
        return job

    def create_translation_job(self, text: str, source_lang: str, target_lang: str) -> Job:
        """
        Create a translation job and enqueue it.

        Raises:
            ValidationError: If text or language codes are missing
            TransientInfrastructureError: If the store or broker is unreachable
        """
        data = self._validate(TranslationCreate, text=text, source_lang=source_lang, target_lang=target_lang)
        now = datetime.utcnow()
        job = Job(
            id=uuid.uuid4(),
            kind=JobKind.TRANSLATION.value,
            input_text=data.text,
            source_language=data.source_lang,
            target_language=data.target_lang,
            status=JobStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        return self._submit(job)

    def create_detection_job(self, text: str) -> Job:
        """
        Create a language detection job and enqueue it.

        Raises:
            ValidationError: If text is missing
            TransientInfrastructureError: If the store or broker is unreachable
        """
        data = self._validate(DetectionCreate, text=text)
        now = datetime.utcnow()
        job = Job(
            id=uuid.uuid4(),
            kind=JobKind.DETECTION.value,
            input_text=data.text,
            status=JobStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        return self._submit(job)

    def get_job(self, job_id: Union[str, uuid.UUID]) -> Job:
        """Raises NotFoundError for unknown ids."""
        return self.store.find_by_id(job_id)

    def list_jobs(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> Dict[str, Any]:
        """List jobs newest first with pagination metadata."""
        if page < 1:
            raise ValidationError("page must be at least 1")
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if status is not None and status not in {s.value for s in JobStatus}:
            raise ValidationError(f"Unknown status: {status}")
        if kind is not None and kind not in {k.value for k in JobKind}:
            raise ValidationError(f"Unknown kind: {kind}")

        items, total = self.store.find_page(page=page, limit=limit, status=status, kind=kind)
        return {
            "items": items,
            "total": total,
            "page": page,
            "total_pages": math.ceil(total / limit),
        }
