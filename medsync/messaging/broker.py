"""Redis Streams broker.

Thin async wrapper over the stream commands used by the topic, the event bus
and the queue consumers.
"""

import json
from typing import Any

import redis.asyncio as redis
import structlog

logger = structlog.get_logger(__name__)

BODY_FIELD = "body"


class StreamBroker:
    """Publish to and consume from Redis Streams."""

    def __init__(self, redis_client: redis.Redis, max_len: int = 100000):
        """
        Initialize broker.

        Args:
            redis_client: Redis client
            max_len: Approximate maximum length kept per stream
        """
        self.redis = redis_client
        self.max_len = max_len

    async def publish(self, stream_key: str, body: dict[str, Any]) -> str:
        """
        Append a JSON body to a stream.

        Args:
            stream_key: Stream to append to
            body: JSON-serializable message body

        Returns:
            Stream entry ID
        """
        data = {BODY_FIELD: json.dumps(body, default=str)}
        return await self.redis.xadd(stream_key, data, maxlen=self.max_len, approximate=True)

    async def create_group(self, stream_key: str, group_name: str, start_id: str = "0") -> bool:
        """
        Create a consumer group if it doesn't exist.

        Returns:
            True if created, False if it already existed
        """
        try:
            await self.redis.xgroup_create(stream_key, group_name, id=start_id, mkstream=True)
            return True
        except redis.ResponseError as e:
            if "BUSYGROUP" in str(e):
                return False
            raise

    async def consume_group(
        self,
        stream_key: str,
        group_name: str,
        consumer_name: str,
        count: int = 10,
        block: int = 1000,
    ) -> list[tuple[str, dict[str, Any]]]:
        """
        Read new messages as part of a consumer group (XREADGROUP).

        Returns:
            List of (entry_id, fields)
        """
        response = await self.redis.xreadgroup(
            groupname=group_name,
            consumername=consumer_name,
            streams={stream_key: ">"},
            count=count,
            block=block,
        )
        messages: list[tuple[str, dict[str, Any]]] = []
        for _stream, entries in response or []:
            messages.extend(entries)
        return messages

    async def ack(self, stream_key: str, group_name: str, entry_ids: list[str]) -> None:
        """Acknowledge processed messages."""
        if entry_ids:
            await self.redis.xack(stream_key, group_name, *entry_ids)

    async def claim_stuck_messages(
        self,
        stream_key: str,
        group_name: str,
        consumer_name: str,
        min_idle_time: int,
        count: int = 10,
    ) -> list[tuple[str, dict[str, Any] | None]]:
        """
        Claim pending messages idle for at least ``min_idle_time`` ms (XAUTOCLAIM).

        Claiming increments the delivery counter of each message.
        """
        response = await self.redis.xautoclaim(
            stream_key, group_name, consumer_name, min_idle_time, count=count
        )
        return response[1]

    async def delivery_counts(
        self, stream_key: str, group_name: str, entry_ids: list[str]
    ) -> dict[str, int]:
        """Get how many times each pending entry has been delivered."""
        counts: dict[str, int] = {}
        for entry_id in entry_ids:
            pending = await self.redis.xpending_range(
                stream_key, group_name, min=entry_id, max=entry_id, count=1
            )
            for item in pending:
                counts[item["message_id"]] = item["times_delivered"]
        return counts

    @staticmethod
    def decode(fields: dict[str, Any]) -> dict[str, Any]:
        """Decode the JSON body of a stream entry."""
        return json.loads(fields[BODY_FIELD])
