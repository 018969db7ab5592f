"""Tests for job lifecycle transitions."""

import uuid
from datetime import datetime

import pytest

from translator.exceptions import InvalidTransition
from translator.models.job import Job, JobKind, JobStatus
from translator.services.lifecycle import can_transition, transition


def make_job(kind=JobKind.TRANSLATION, status=JobStatus.PENDING):
    return Job(
        id=uuid.uuid4(),
        kind=kind.value,
        input_text="Hello world",
        source_language="en" if kind == JobKind.TRANSLATION else None,
        target_language="fr" if kind == JobKind.TRANSLATION else None,
        status=status.value,
        created_at=datetime(2024, 1, 1),
        updated_at=datetime(2024, 1, 1),
    )


@pytest.mark.parametrize(
    "current,target,allowed",
    [
        (JobStatus.PENDING, JobStatus.PROCESSING, True),
        (JobStatus.PENDING, JobStatus.COMPLETED, False),
        (JobStatus.PENDING, JobStatus.FAILED, False),
        (JobStatus.PROCESSING, JobStatus.COMPLETED, True),
        (JobStatus.PROCESSING, JobStatus.FAILED, True),
        (JobStatus.PROCESSING, JobStatus.PENDING, False),
        (JobStatus.COMPLETED, JobStatus.PROCESSING, False),
        (JobStatus.COMPLETED, JobStatus.FAILED, False),
        (JobStatus.FAILED, JobStatus.COMPLETED, False),
        (JobStatus.FAILED, JobStatus.PENDING, False),
    ],
)
def test_can_transition(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_pending_to_processing_touches_updated_at():
    job = make_job()

    transition(job, JobStatus.PROCESSING)

    assert job.status == "processing"
    assert job.updated_at > datetime(2024, 1, 1)
    assert job.result_text is None


def test_complete_translation_sets_result():
    job = make_job(status=JobStatus.PROCESSING)

    transition(job, JobStatus.COMPLETED, result_text="Bonjour le monde", provider="libretranslate")

    assert job.status == "completed"
    assert job.result_text == "Bonjour le monde"
    assert job.provider == "libretranslate"
    assert job.error_detail is None


def test_complete_detection_sets_language_and_confidence():
    job = make_job(kind=JobKind.DETECTION, status=JobStatus.PROCESSING)

    transition(job, JobStatus.COMPLETED, detected_language="fr", confidence=0.5, provider="heuristic")

    assert job.detected_language == "fr"
    assert job.confidence == 0.5
    assert job.result_text is None


def test_complete_translation_requires_result_text():
    job = make_job(status=JobStatus.PROCESSING)

    with pytest.raises(InvalidTransition):
        transition(job, JobStatus.COMPLETED)

    assert job.status == "processing"


def test_complete_detection_requires_confidence():
    job = make_job(kind=JobKind.DETECTION, status=JobStatus.PROCESSING)

    with pytest.raises(InvalidTransition):
        transition(job, JobStatus.COMPLETED, detected_language="fr")


def test_fail_requires_error_detail():
    job = make_job(status=JobStatus.PROCESSING)

    with pytest.raises(InvalidTransition):
        transition(job, JobStatus.FAILED)


def test_fail_records_detail_only():
    job = make_job(status=JobStatus.PROCESSING)

    transition(job, JobStatus.FAILED, error_detail="provider responded with HTTP 503")

    assert job.status == "failed"
    assert job.error_detail == "provider responded with HTTP 503"
    assert job.result_text is None


def test_terminal_job_cannot_move():
    job = make_job(status=JobStatus.COMPLETED)

    with pytest.raises(InvalidTransition) as exc_info:
        transition(job, JobStatus.PROCESSING)

    assert exc_info.value.details == {"from": "completed", "to": "processing"}
    assert job.status == "completed"
