"""Job routes."""

import logging
import uuid
from functools import lru_cache
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from translator.database import SessionLocal
from translator.exceptions import NotFoundError, TransientInfrastructureError, ValidationError
from translator.schemas.job import (
    DetectionCreate,
    JobPage,
    JobResponse,
    LanguageResponse,
    TranslationCreate,
)
from translator.services.job_store import JobStore
from translator.services.producer import JobProducer
from translator.services.providers import ProviderClient
from translator.services.queue import RedisQueue

logger = logging.getLogger(__name__)

router = APIRouter(tags=["jobs"])


@lru_cache
def get_queue() -> RedisQueue:
    return RedisQueue.from_settings()


@lru_cache
def get_provider() -> ProviderClient:
    return ProviderClient.from_settings()


def get_producer() -> JobProducer:
    return JobProducer(JobStore(SessionLocal), get_queue())


def _unavailable(e: TransientInfrastructureError):
    logger.error(f"Infrastructure unavailable: {e}")
    return HTTPException(status_code=e.status_code, detail=e.default_message)


@router.post("/translations", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
def create_translation(
    data: TranslationCreate,
    producer: JobProducer = Depends(get_producer),
):
    """Create a translation job."""
    try:
        job = producer.create_translation_job(data.text, data.source_lang, data.target_lang)
    except ValidationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.details or e.message)
    except TransientInfrastructureError as e:
        raise _unavailable(e)
    return JobResponse.model_validate(job)


@router.post("/detections", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
def create_detection(
    data: DetectionCreate,
    producer: JobProducer = Depends(get_producer),
):
    """Create a language detection job."""
    try:
        job = producer.create_detection_job(data.text)
    except ValidationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.details or e.message)
    except TransientInfrastructureError as e:
        raise _unavailable(e)
    return JobResponse.model_validate(job)


@router.get("/jobs", response_model=JobPage)
def list_jobs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    kind: Optional[str] = None,
    producer: JobProducer = Depends(get_producer),
):
    """List jobs newest first."""
    try:
        result = producer.list_jobs(page=page, limit=limit, status=status_filter, kind=kind)
    except ValidationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except TransientInfrastructureError as e:
        raise _unavailable(e)

    return JobPage(
        items=[JobResponse.model_validate(job) for job in result["items"]],
        total=result["total"],
        page=result["page"],
        total_pages=result["total_pages"],
    )


@router.get("/jobs/{job_id}", response_model=JobResponse)
def get_job(
    job_id: uuid.UUID,
    producer: JobProducer = Depends(get_producer),
):
    """Get a job with its status and result."""
    try:
        job = producer.get_job(job_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    except TransientInfrastructureError as e:
        raise _unavailable(e)
    return JobResponse.model_validate(job)


@router.get("/languages", response_model=List[LanguageResponse])
def list_languages(provider: ProviderClient = Depends(get_provider)):
    """Languages accepted for translation."""
    return provider.supported_languages()
