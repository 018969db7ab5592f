"""Background worker consuming translation and detection queues."""

import logging
import signal
import threading
from typing import Dict, Optional

from translator.config import settings
from translator.database import SessionLocal
from translator.exceptions import (
    InvalidMessage,
    ProviderError,
    TransientInfrastructureError,
)
from translator.models.job import JobKind, JobStatus
from translator.schemas.messages import Delivery, decode_message
from translator.services.job_store import JobStore
from translator.services.lifecycle import transition
from translator.services.processors import DetectionProcessor, TranslationProcessor
from translator.services.providers import ProviderClient
from translator.services.queue import RedisQueue

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

INTERNAL_ERROR_DETAIL = "Internal processing error"


class Worker:
    """Dispatches queue deliveries to processors and drives the job lifecycle."""

    def __init__(
        self,
        store: JobStore,
        queue,
        processors: Dict[str, object],
        queue_names: Optional[Dict[str, str]] = None,
        error_backoff: float = None,
    ):
        """Initialize worker."""
        self.store = store
        self.queue = queue
        self.error_backoff = settings.WORKER_ERROR_BACKOFF if error_backoff is None else error_backoff

        # Processor registry, keyed by job kind
        self.processors = processors
        self.queue_names = queue_names or {
            JobKind.TRANSLATION.value: settings.TRANSLATION_QUEUE,
            JobKind.DETECTION.value: settings.DETECTION_QUEUE,
        }

    @classmethod
    def from_settings(cls) -> "Worker":
        """Build a worker wired to the configured database, broker and providers."""
        provider = ProviderClient.from_settings()
        return cls(
            store=JobStore(SessionLocal),
            queue=RedisQueue.from_settings(),
            processors={
                JobKind.TRANSLATION.value: TranslationProcessor(provider),
                JobKind.DETECTION.value: DetectionProcessor(provider, use_provider=settings.DETECTION_USE_PROVIDER),
            },
        )

    def handle_delivery(self, kind: str, delivery: Delivery):
        """
        Process one delivery and acknowledge or reject it.

        The message is acked only once the job is terminal in the store. Any
        exception escaping processing rejects the message without requeue.
        """
        try:
            self.process_message(kind, delivery.body)
        except Exception as e:
            logger.error(f"Rejecting message {delivery.message_id} from {delivery.queue_name}: {e}")
            self.queue.nack(delivery, requeue=False)
            return

        self.queue.ack(delivery)

    def process_message(self, kind: str, body: str):
        """
        Run the job referenced by a message to a terminal state.

        Raises:
            InvalidMessage: If the body is undecodable or of another kind
            NotFoundError: If the job row does not exist
            TransientInfrastructureError: If the store is unreachable
        """
        message = decode_message(body)
        if message.kind != kind:
            raise InvalidMessage(f"{message.kind} message received on the {kind} queue")

        processor = self.processors.get(kind)
        if not processor:
            raise ValueError(f"No processor for job kind: {kind}")

        job = self.store.find_by_id(message.id)

        if job.is_terminal:
            logger.info(f"Job {job.id} already {job.status}, skipping redelivered message")
            return

        if job.status == JobStatus.PENDING.value:
            job = self.store.update(transition(job, JobStatus.PROCESSING))
        else:
            logger.warning(f"Job {job.id} was left processing, re-attempting")

        try:
            result = processor.process(message)
        except ProviderError as e:
            logger.warning(f"Job {job.id} failed: {e}")
            self.store.update(transition(job, JobStatus.FAILED, error_detail=str(e)))
            return
        except TransientInfrastructureError:
            raise
        except Exception as e:
            logger.error(f"Job {job.id} crashed: {e}", exc_info=True)
            self.store.update(transition(job, JobStatus.FAILED, error_detail=INTERNAL_ERROR_DETAIL))
            raise

        self.store.update(transition(job, JobStatus.COMPLETED, **result))
        logger.info(f"Job {job.id} completed successfully")

    def consume_queue(self, kind: str, stop_event: threading.Event):
        """Consume one queue until stopped, reconnecting after broker outages."""
        queue_name = self.queue_names[kind]

        def handler(delivery: Delivery):
            self.handle_delivery(kind, delivery)

        while not stop_event.is_set():
            try:
                self.queue.consume(queue_name, handler, prefetch=1, stop_event=stop_event)
            except TransientInfrastructureError as e:
                logger.error(f"Consumer for {queue_name} lost the broker: {e}")
                stop_event.wait(self.error_backoff)

    def run(self, stop_event: Optional[threading.Event] = None):
        """Main worker loop.

        Each queue gets its own consumer thread; both stop when stop_event
        is set, after finishing the message in hand.

        Args:
            stop_event: Optional threading.Event to signal worker to stop
        """
        stop_event = stop_event or threading.Event()
        logger.info("Worker started")

        threads = [
            threading.Thread(
                target=self.consume_queue,
                args=(kind, stop_event),
                name=f"consumer-{kind}",
                daemon=True,
            )
            for kind in self.processors
        ]
        for thread in threads:
            thread.start()

        for thread in threads:
            while thread.is_alive():
                thread.join(timeout=1)

        logger.info("Worker stopped")

    def close(self):
        """Release broker and provider resources."""
        self.queue.close()
        closed = set()
        for processor in self.processors.values():
            provider = getattr(processor, "provider", None)
            if provider is not None and id(provider) not in closed:
                provider.close()
                closed.add(id(provider))


def worker_loop(stop_event=None):
    """Run worker loop (for use as background thread).

    Args:
        stop_event: Optional threading.Event to signal worker to stop
    """
    worker = Worker.from_settings()
    try:
        worker.run(stop_event=stop_event)
    finally:
        worker.close()


def main():
    """Entry point for standalone worker."""
    stop_event = threading.Event()

    def request_stop(signum, frame):
        logger.info(f"Received signal {signum}, finishing in-flight work")
        stop_event.set()

    signal.signal(signal.SIGTERM, request_stop)
    signal.signal(signal.SIGINT, request_stop)

    worker_loop(stop_event)


if __name__ == "__main__":
    main()
