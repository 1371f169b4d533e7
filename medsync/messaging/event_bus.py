"""Routed event bus over Redis Streams.

Entries are wrapped in an envelope and delivered to the target queue of every
rule whose pattern matches the entry source and detail type. Results are
reported per entry; callers must check ``failed_entry_count``.
"""

import uuid
from dataclasses import dataclass

import redis.asyncio as redis
import structlog

from medsync.messaging.broker import StreamBroker
from medsync.schemas.events import BusEntry, BusEnvelope, PutEventsResult, PutEventsResultEntry
from medsync.utils.dates import get_current_timestamp

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Rule:
    """Routes matching events to a target queue."""

    name: str
    target_queue: str
    sources: tuple[str, ...] = ()
    detail_types: tuple[str, ...] = ()

    def matches(self, entry: BusEntry) -> bool:
        if self.sources and entry.source not in self.sources:
            return False
        if self.detail_types and entry.detail_type not in self.detail_types:
            return False
        return True


class EventBus:
    """Named event bus with routing rules."""

    def __init__(self, broker: StreamBroker, name: str, rules: list[Rule]):
        self.broker = broker
        self.name = name
        self.rules = rules

    async def put_events(self, entries: list[BusEntry]) -> PutEventsResult:
        """
        Submit events to the bus.

        Args:
            entries: Events to submit

        Returns:
            Per-entry result; failed entries carry an error code instead of an event ID
        """
        result = PutEventsResult()

        for entry in entries:
            envelope = BusEnvelope(
                id=str(uuid.uuid4()),
                detail_type=entry.detail_type,
                source=entry.source,
                bus=self.name,
                time=get_current_timestamp(),
                detail=entry.detail,
            )
            body = envelope.model_dump(by_alias=True)

            try:
                for rule in self.rules:
                    if rule.matches(entry):
                        await self.broker.publish(rule.target_queue, body)
            except redis.RedisError as e:
                logger.error(
                    "bus_entry_failed", bus=self.name, detail_type=entry.detail_type, error=str(e)
                )
                result.failed_entry_count += 1
                result.entries.append(
                    PutEventsResultEntry(error_code="DeliveryFailed", error_message=str(e))
                )
                continue

            result.entries.append(PutEventsResultEntry(event_id=envelope.id))

        return result
