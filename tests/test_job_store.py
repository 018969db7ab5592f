"""Tests for the SQLAlchemy job store."""

import uuid
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from translator.exceptions import NotFoundError, TransientInfrastructureError
from translator.models.job import Job, JobKind, JobStatus
from translator.services.job_store import JobStore


def new_job(kind=JobKind.DETECTION, status=JobStatus.PENDING, created_at=None):
    created_at = created_at or datetime.utcnow()
    return Job(
        id=uuid.uuid4(),
        kind=kind.value,
        input_text="Bonjour",
        status=status.value,
        created_at=created_at,
        updated_at=created_at,
    )


def test_create_and_find(job_store):
    job = job_store.create(new_job())

    found = job_store.find_by_id(job.id)

    assert found.id == job.id
    assert found.status == "pending"
    assert found.input_text == "Bonjour"


def test_find_accepts_string_id(job_store):
    job = job_store.create(new_job())

    assert job_store.find_by_id(str(job.id)).id == job.id


def test_find_unknown_id_raises(job_store):
    with pytest.raises(NotFoundError):
        job_store.find_by_id(uuid.uuid4())


def test_find_malformed_id_raises(job_store):
    with pytest.raises(NotFoundError):
        job_store.find_by_id("not-a-uuid")


def test_update_persists_changes(job_store):
    job = job_store.create(new_job())
    job.status = JobStatus.PROCESSING.value

    job_store.update(job)

    assert job_store.find_by_id(job.id).status == "processing"


def test_find_page_orders_newest_first(job_store):
    base = datetime(2024, 1, 1)
    ids = [job_store.create(new_job(created_at=base + timedelta(minutes=i))).id for i in range(5)]

    items, total = job_store.find_page(page=1, limit=2)

    assert total == 5
    assert [job.id for job in items] == [ids[4], ids[3]]

    items, _ = job_store.find_page(page=3, limit=2)
    assert [job.id for job in items] == [ids[0]]


def test_find_page_filters(job_store):
    job_store.create(new_job(kind=JobKind.TRANSLATION))
    job_store.create(new_job(kind=JobKind.DETECTION))
    job_store.create(new_job(kind=JobKind.DETECTION, status=JobStatus.COMPLETED))

    _, total = job_store.find_page(kind="detection")
    assert total == 2

    items, total = job_store.find_page(status="completed", kind="detection")
    assert total == 1
    assert items[0].status == "completed"


def test_connection_errors_become_transient():
    """Test that the store retries, then reports the outage as transient."""
    session = MagicMock()
    session.__enter__.return_value.get.side_effect = OperationalError("SELECT", {}, Exception("down"))
    factory = MagicMock(return_value=session)
    store = JobStore(factory)

    with pytest.raises(TransientInfrastructureError):
        store.find_by_id(uuid.uuid4())

    # STORE_RETRY_ATTEMPTS is 2 under test
    assert factory.call_count == 2
