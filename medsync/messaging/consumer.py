"""Queue consumer with at-least-once delivery and a dead-letter stream.

Handlers report the messages they failed to process; every other message of
the batch is acknowledged. Failed messages stay pending and are redelivered
once they have been idle for the visibility timeout. When a handler raises,
the whole batch stays pending. Messages delivered more than
``max_receive_count`` times are moved to ``<queue>:dlq``.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import redis.asyncio as redis
import structlog

from medsync.messaging.broker import StreamBroker
from medsync.utils.dates import get_current_timestamp

logger = structlog.get_logger(__name__)


@dataclass
class QueueMessage:
    """A message delivered from a queue."""

    message_id: str
    body: dict[str, Any]
    queue: str
    receive_count: int = 1


@dataclass
class BatchResult:
    """Outcome of a batch: the ids of the messages that must be redelivered."""

    failed_message_ids: list[str] = field(default_factory=list)


BatchHandler = Callable[[list[QueueMessage]], Awaitable[BatchResult | None]]


@dataclass
class ConsumerConfig:
    """Configuration for a queue consumer."""

    queue: str
    group_name: str
    consumer_name: str
    batch_size: int = 10
    block_ms: int = 1000
    visibility_timeout_ms: int = 30000
    max_receive_count: int = 3
    claim_interval_seconds: float = 5.0
    dlq: str | None = None

    @property
    def dlq_queue(self) -> str:
        return self.dlq or f"{self.queue}:dlq"


class QueueConsumer:
    """Deliver batches from a Redis Streams queue to a handler."""

    def __init__(self, broker: StreamBroker, config: ConsumerConfig, handler: BatchHandler):
        self.broker = broker
        self.config = config
        self.handler = handler
        self._running = False

    async def poll(self) -> int:
        """
        Read one batch of new messages and deliver it.

        Returns:
            Number of messages delivered
        """
        entries = await self.broker.consume_group(
            self.config.queue,
            self.config.group_name,
            self.config.consumer_name,
            count=self.config.batch_size,
            block=self.config.block_ms,
        )
        messages: list[QueueMessage] = []
        for entry_id, fields in entries:
            body = await self._decode_or_dead_letter(entry_id, fields)
            if body is not None:
                messages.append(QueueMessage(entry_id, body, self.config.queue))

        if messages:
            await self._deliver(messages)
        return len(messages)

    async def _decode_or_dead_letter(
        self, entry_id: str, fields: dict[str, Any], receive_count: int = 1
    ) -> dict[str, Any] | None:
        try:
            return self.broker.decode(fields)
        except (KeyError, ValueError) as e:
            logger.error("malformed_message", queue=self.config.queue, message_id=entry_id)
            await self._dead_letter(entry_id, {"raw": fields, "error": str(e)}, receive_count)
            return None

    async def reclaim(self) -> int:
        """
        Redeliver messages whose previous delivery was not acknowledged.

        Returns:
            Number of messages redelivered
        """
        claimed = await self.broker.claim_stuck_messages(
            self.config.queue,
            self.config.group_name,
            self.config.consumer_name,
            min_idle_time=self.config.visibility_timeout_ms,
            count=self.config.batch_size,
        )
        if not claimed:
            return 0

        # Entries trimmed from the stream come back without fields
        trimmed = [entry_id for entry_id, fields in claimed if not fields]
        await self.broker.ack(self.config.queue, self.config.group_name, trimmed)

        live = [(entry_id, fields) for entry_id, fields in claimed if fields]
        counts = await self.broker.delivery_counts(
            self.config.queue, self.config.group_name, [entry_id for entry_id, _ in live]
        )

        redeliver: list[QueueMessage] = []
        for entry_id, fields in live:
            receive_count = counts.get(entry_id, 1)
            body = await self._decode_or_dead_letter(entry_id, fields, receive_count)
            if body is None:
                continue
            if receive_count > self.config.max_receive_count:
                await self._dead_letter(entry_id, body, receive_count)
                continue
            redeliver.append(QueueMessage(entry_id, body, self.config.queue, receive_count))

        if redeliver:
            await self._deliver(redeliver)
        return len(redeliver)

    async def _deliver(self, messages: list[QueueMessage]) -> None:
        message_ids = [m.message_id for m in messages]
        try:
            result = await self.handler(messages)
        except Exception as e:
            # Left pending; redelivered after the visibility timeout
            logger.error(
                "batch_processing_failed",
                queue=self.config.queue,
                message_ids=message_ids,
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        failed = set(result.failed_message_ids) if result else set()
        if failed:
            logger.warning(
                "batch_items_failed", queue=self.config.queue, message_ids=sorted(failed)
            )
        processed = [message_id for message_id in message_ids if message_id not in failed]
        if processed:
            await self.broker.ack(self.config.queue, self.config.group_name, processed)

    async def _dead_letter(self, entry_id: str, body: dict[str, Any], receive_count: int) -> None:
        await self.broker.publish(
            self.config.dlq_queue,
            {
                "originalMessageId": entry_id,
                "queue": self.config.queue,
                "receiveCount": receive_count,
                "deadLetteredAt": get_current_timestamp(),
                "body": body,
            },
        )
        await self.broker.ack(self.config.queue, self.config.group_name, [entry_id])
        logger.warning(
            "message_dead_lettered",
            queue=self.config.queue,
            message_id=entry_id,
            receive_count=receive_count,
        )

    async def run(self) -> None:
        """Consume until ``stop`` is called."""
        await self.broker.create_group(self.config.queue, self.config.group_name)
        self._running = True
        loop = asyncio.get_running_loop()
        last_claim = 0.0

        logger.info("consumer_started", queue=self.config.queue, group=self.config.group_name)

        while self._running:
            try:
                if loop.time() - last_claim >= self.config.claim_interval_seconds:
                    last_claim = loop.time()
                    await self.reclaim()
                await self.poll()
            except redis.RedisError as e:
                logger.error("consumer_poll_failed", queue=self.config.queue, error=str(e))
                await asyncio.sleep(1.0)

        logger.info("consumer_stopped", queue=self.config.queue)

    def stop(self) -> None:
        """Stop the consume loop after the current batch."""
        self._running = False
