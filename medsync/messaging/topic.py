"""Publish/subscribe topic with attribute filter policies.

A publish writes one notification to every subscribed queue whose filter
policy accepts the message attributes.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any

import redis.asyncio as redis
import structlog

from medsync.core.exceptions import InternalError
from medsync.messaging.broker import StreamBroker
from medsync.schemas.events import TopicNotification
from medsync.utils.dates import get_current_timestamp

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Subscription:
    """A queue subscribed to a topic.

    ``filter_policy`` maps an attribute name to its accepted values; an empty
    policy accepts every message.
    """

    queue: str
    filter_policy: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def accepts(self, attributes: dict[str, str]) -> bool:
        return matches_filter_policy(self.filter_policy, attributes)


def matches_filter_policy(
    filter_policy: dict[str, tuple[str, ...]], attributes: dict[str, str]
) -> bool:
    """Check every policy attribute is present with an accepted value."""
    return all(attributes.get(name) in accepted for name, accepted in filter_policy.items())


class EventTopic:
    """Fan-out topic over Redis Streams."""

    def __init__(self, broker: StreamBroker, name: str, subscriptions: list[Subscription]):
        self.broker = broker
        self.name = name
        self.subscriptions = subscriptions

    async def publish(self, message: dict[str, Any], attributes: dict[str, str]) -> str:
        """
        Publish a message to every matching subscription.

        Args:
            message: JSON-serializable message
            attributes: Routable attributes evaluated by filter policies

        Returns:
            Message ID shared by every delivered copy

        Raises:
            InternalError: If writing to a subscribed queue fails
        """
        notification = TopicNotification(
            message_id=str(uuid.uuid4()),
            topic=self.name,
            message=message,
            attributes=attributes,
            timestamp=get_current_timestamp(),
        )
        body = notification.model_dump(by_alias=True)

        targets = [s.queue for s in self.subscriptions if s.accepts(attributes)]
        if not targets:
            logger.warning("no_matching_subscription", topic=self.name, attributes=attributes)

        for queue in targets:
            try:
                await self.broker.publish(queue, body)
            except redis.RedisError as e:
                logger.error(
                    "topic_delivery_failed",
                    topic=self.name,
                    queue=queue,
                    message_id=notification.message_id,
                    error=str(e),
                )
                raise InternalError("Failed to publish appointment event") from e

        logger.info(
            "topic_message_published",
            topic=self.name,
            message_id=notification.message_id,
            queues=targets,
        )
        return notification.message_id
