"""Redis reliable-queue broker for job messages."""

import functools
import json
import logging
import os
import socket
import threading
import time
import uuid
from datetime import datetime
from typing import Callable, Optional

import redis
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from translator.config import settings
from translator.exceptions import TransientInfrastructureError
from translator.schemas.messages import Delivery

logger = logging.getLogger(__name__)

QUEUE_REGISTRY_KEY = "queues:declared"


def _with_retries(func_):
    """Retry a broker operation on connection errors, then surface them as transient."""
    retrying = retry(
        retry=retry_if_exception_type((redis.exceptions.ConnectionError, redis.exceptions.TimeoutError)),
        stop=stop_after_attempt(settings.QUEUE_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        reraise=True,
    )(func_)

    @functools.wraps(func_)
    def wrapper(*args, **kwargs):
        try:
            return retrying(*args, **kwargs)
        except redis.exceptions.RedisError as e:
            logger.error(f"Broker unavailable in {func_.__name__}: {e}")
            raise TransientInfrastructureError("Message broker unavailable") from e

    return wrapper


def default_consumer_name() -> str:
    """Consumer id unique to this process: prefix-pid-random."""
    prefix = settings.WORKER_NAME or socket.gethostname()
    return f"{prefix}-{os.getpid()}-{uuid.uuid4().hex[:8]}"


class RedisQueue:
    """
    At-least-once queue on Redis lists.

    Publishing pushes onto the queue list. Fetching atomically moves the
    message onto a processing list owned by this consumer, where it stays
    until it is acknowledged or rejected.

    Every consumer keeps a heartbeat key alive while it runs. Processing
    lists whose owner's heartbeat has expired are moved back onto the
    queue by recover(), which runs when consuming starts and then once per
    heartbeat TTL.
    """

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        consumer_name: Optional[str] = None,
        block_timeout: int = 1,
        error_backoff: float = 5.0,
        heartbeat_ttl: int = 30,
    ):
        """Initialize the queue."""
        self.redis = redis_client or redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
        self.consumer_name = consumer_name or default_consumer_name()
        self.block_timeout = block_timeout
        self.error_backoff = error_backoff
        self.heartbeat_ttl = heartbeat_ttl

        self._heartbeat_lock = threading.Lock()
        self._heartbeat_stop = threading.Event()
        self._heartbeat_thread: Optional[threading.Thread] = None

    @classmethod
    def from_settings(cls) -> "RedisQueue":
        return cls(
            block_timeout=settings.WORKER_BLOCK_TIMEOUT,
            error_backoff=settings.WORKER_ERROR_BACKOFF,
            heartbeat_ttl=settings.WORKER_HEARTBEAT_TTL,
        )

    def queue_key(self, queue_name: str) -> str:
        return f"queue:{queue_name}"

    def processing_key(self, queue_name: str, consumer_name: Optional[str] = None) -> str:
        owner = self.consumer_name if consumer_name is None else consumer_name
        return f"queue:{queue_name}:processing:{owner}"

    def heartbeat_key(self, consumer_name: Optional[str] = None) -> str:
        return f"consumers:{consumer_name or self.consumer_name}:heartbeat"

    def health_check(self) -> bool:
        """Check if Redis is accessible."""
        try:
            self.redis.ping()
            return True
        except redis.exceptions.RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    @_with_retries
    def heartbeat(self):
        """Mark this consumer alive for heartbeat_ttl seconds."""
        self.redis.set(self.heartbeat_key(), datetime.utcnow().isoformat(), ex=self.heartbeat_ttl)

    def _keep_alive(self):
        while not self._heartbeat_stop.wait(self.heartbeat_ttl / 3):
            try:
                self.heartbeat()
            except TransientInfrastructureError as e:
                logger.error(f"Heartbeat for {self.consumer_name} failed: {e}")

    def start_heartbeat(self):
        """Write the heartbeat now and keep refreshing it from a background thread."""
        with self._heartbeat_lock:
            self.heartbeat()
            if self._heartbeat_thread and self._heartbeat_thread.is_alive():
                return
            self._heartbeat_stop.clear()
            self._heartbeat_thread = threading.Thread(
                target=self._keep_alive,
                name=f"heartbeat-{self.consumer_name}",
                daemon=True,
            )
            self._heartbeat_thread.start()

    @_with_retries
    def declare(self, queue_name: str, durable: bool = True):
        """Register a queue. Declaring an existing queue is a no-op."""
        if not durable:
            raise ValueError("Only durable queues are supported")
        if self.redis.sadd(QUEUE_REGISTRY_KEY, queue_name):
            logger.info(f"Declared queue {queue_name}")

    @_with_retries
    def publish(self, queue_name: str, message: str, durable: bool = True) -> str:
        """
        Publish a message body.

        Returns:
            Broker message id
        """
        message_id = uuid.uuid4().hex
        envelope = json.dumps({
            "message_id": message_id,
            "body": message,
            "persistent": durable,
            "published_at": datetime.utcnow().isoformat(),
        })
        self.redis.lpush(self.queue_key(queue_name), envelope)
        logger.info(f"Published message {message_id} to {queue_name}")
        return message_id

    def fetch(self, queue_name: str) -> Optional[Delivery]:
        """Wait up to block_timeout for the next message."""
        raw = self.redis.brpoplpush(
            self.queue_key(queue_name),
            self.processing_key(queue_name),
            timeout=self.block_timeout,
        )
        if not raw:
            return None

        try:
            envelope = json.loads(raw)
            return Delivery(
                queue_name=queue_name,
                body=envelope["body"],
                message_id=envelope.get("message_id", ""),
                raw=raw,
            )
        except (ValueError, KeyError, TypeError):
            # Not one of our envelopes; hand the raw payload to the consumer to reject
            return Delivery(queue_name=queue_name, body=raw, message_id="", raw=raw)

    @_with_retries
    def ack(self, delivery: Delivery):
        """Acknowledge a delivery, removing it for good."""
        self.redis.lrem(self.processing_key(delivery.queue_name), 1, delivery.raw)
        logger.debug(f"Acked message {delivery.message_id}")

    @_with_retries
    def nack(self, delivery: Delivery, requeue: bool = False):
        """Reject a delivery, optionally putting it back at the head of the queue."""
        with self.redis.pipeline() as pipe:
            pipe.lrem(self.processing_key(delivery.queue_name), 1, delivery.raw)
            if requeue:
                pipe.rpush(self.queue_key(delivery.queue_name), delivery.raw)
            pipe.execute()
        logger.warning(f"Rejected message {delivery.message_id} on {delivery.queue_name} (requeue={requeue})")

    @_with_retries
    def recover(self, queue_name: str) -> int:
        """
        Move messages held by consumers that stopped heartbeating back onto the queue.

        Processing lists of live consumers, this one included, are left alone.

        Returns:
            Number of messages redelivered
        """
        prefix = self.processing_key(queue_name, "")
        count = 0
        for key in self.redis.scan_iter(match=f"{prefix}*"):
            owner = key[len(prefix):]
            if owner == self.consumer_name or self.redis.exists(self.heartbeat_key(owner)):
                continue

            moved = 0
            while self.redis.rpoplpush(key, self.queue_key(queue_name)):
                moved += 1
            if moved:
                logger.warning(f"Redelivering {moved} unacknowledged messages of stopped consumer {owner} on {queue_name}")
            count += moved
        return count

    @_with_retries
    def get_queue_length(self, queue_name: str) -> int:
        return self.redis.llen(self.queue_key(queue_name))

    def consume(
        self,
        queue_name: str,
        handler: Callable[[Delivery], None],
        prefetch: int = 1,
        stop_event: Optional[threading.Event] = None,
    ):
        """
        Feed messages to handler one at a time until stop_event is set.

        The handler is responsible for acking or rejecting each delivery;
        the next message is only fetched after the handler returns.

        Args:
            queue_name: Queue to consume
            handler: Callable receiving each Delivery
            prefetch: Unacknowledged messages allowed in flight (only 1 is supported)
            stop_event: Cancellation token
        """
        if prefetch != 1:
            raise ValueError("RedisQueue delivers one message at a time; prefetch must be 1")

        stop_event = stop_event or threading.Event()
        self.declare(queue_name)
        # Heartbeat first so peers never take this consumer for dead
        self.start_heartbeat()
        self.recover(queue_name)
        next_recovery = time.monotonic() + self.heartbeat_ttl
        logger.info(f"Consuming {queue_name} as {self.consumer_name}")

        while not stop_event.is_set():
            try:
                if time.monotonic() >= next_recovery:
                    self.recover(queue_name)
                    next_recovery = time.monotonic() + self.heartbeat_ttl
                delivery = self.fetch(queue_name)
            except (redis.exceptions.RedisError, TransientInfrastructureError) as e:
                logger.error(f"Broker error on {queue_name}: {e}")
                stop_event.wait(self.error_backoff)
                continue

            if delivery is None:
                continue

            try:
                handler(delivery)
            except Exception as e:
                logger.error(f"Handler error on {queue_name}: {e}", exc_info=True)
                stop_event.wait(self.error_backoff)

        logger.info(f"Stopped consuming {queue_name}")

    def close(self):
        """Stop the heartbeat, release this consumer's id and close the connection."""
        self._heartbeat_stop.set()
        if self._heartbeat_thread:
            self._heartbeat_thread.join(timeout=1)
        try:
            self.redis.delete(self.heartbeat_key())
        except redis.exceptions.RedisError as e:
            logger.warning(f"Could not clear heartbeat for {self.consumer_name}: {e}")
        self.redis.close()
