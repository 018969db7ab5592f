"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STORE_RETRY_ATTEMPTS", "2")
os.environ.setdefault("QUEUE_RETRY_ATTEMPTS", "2")

import json
import threading
import uuid
from typing import Callable, Dict, List, Optional

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from translator.database import Base
from translator.schemas.messages import Delivery
from translator.services.job_store import JobStore
from translator.services.providers import ProviderClient


class FakeQueue:
    """In-memory stand-in for the broker, recording every ack and nack."""

    def __init__(self):
        self.queues: Dict[str, List[Delivery]] = {}
        self.declared = set()
        self.acked: List[Delivery] = []
        self.nacked: List[Delivery] = []
        self.closed = False

    def declare(self, queue_name, durable=True):
        self.declared.add(queue_name)
        self.queues.setdefault(queue_name, [])

    def publish(self, queue_name, message, durable=True):
        message_id = uuid.uuid4().hex
        raw = json.dumps({"message_id": message_id, "body": message})
        self.queues.setdefault(queue_name, []).append(
            Delivery(queue_name=queue_name, body=message, message_id=message_id, raw=raw)
        )
        return message_id

    def messages(self, queue_name) -> List[Delivery]:
        return list(self.queues.get(queue_name, []))

    def ack(self, delivery):
        self.acked.append(delivery)

    def nack(self, delivery, requeue=False):
        self.nacked.append(delivery)
        if requeue:
            self.queues[delivery.queue_name].insert(0, delivery)

    def recover(self, queue_name):
        return 0

    def consume(self, queue_name, handler, prefetch=1, stop_event=None):
        self.declare(queue_name)
        while self.queues[queue_name] and not (stop_event and stop_event.is_set()):
            handler(self.queues[queue_name].pop(0))
        if stop_event:
            stop_event.set()

    def close(self):
        self.closed = True


@pytest.fixture(scope="function")
def test_db():
    """Create an in-memory SQLite session factory for each test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
    )

    yield TestingSessionLocal

    engine.dispose()


@pytest.fixture
def job_store(test_db):
    return JobStore(test_db)


@pytest.fixture
def fake_queue():
    return FakeQueue()


@pytest.fixture
def sleeps():
    """Records every backoff sleep instead of sleeping."""
    return []


@pytest.fixture
def make_provider(sleeps):
    """Build a ProviderClient whose HTTP traffic is served by a handler function."""
    clients = []

    def factory(
        handler: Callable[[httpx.Request], httpx.Response],
        endpoints: Optional[List[str]] = None,
        **kwargs,
    ) -> ProviderClient:
        client = ProviderClient(
            endpoints=endpoints or ["http://a.test", "http://b.test", "http://c.test"],
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
            sleep=sleeps.append,
            **kwargs,
        )
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.close()


LANGUAGES = [
    {"code": "en", "name": "English"},
    {"code": "fr", "name": "French"},
    {"code": "es", "name": "Spanish"},
    {"code": "pt", "name": "Portuguese"},
]


def libretranslate_handler(
    translate: Callable[[dict], str] = lambda payload: f"[{payload['target']}] {payload['q']}",
    failing_hosts=(),
    calls: Optional[list] = None,
):
    """Handler emulating a healthy LibreTranslate server, except on failing hosts."""
    lock = threading.Lock()

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            with lock:
                calls.append((request.url.host, request.url.path))
        if request.url.host in failing_hosts:
            return httpx.Response(503, json={"error": "unavailable"})
        if request.url.path == "/languages":
            return httpx.Response(200, json=LANGUAGES)
        payload = json.loads(request.content)
        if request.url.path == "/translate":
            return httpx.Response(200, json={"translatedText": translate(payload)})
        if request.url.path == "/detect":
            return httpx.Response(200, json=[{"language": "fr", "confidence": 92.0}])
        return httpx.Response(404)

    return handler
