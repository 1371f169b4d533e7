"""FastAPI dependencies."""

from typing import Annotated

import redis.asyncio as redis
from fastapi import Depends, Request

from medsync.config import settings
from medsync.core.redis_client import get_redis_client
from medsync.messaging.broker import StreamBroker
from medsync.messaging.publisher import TopicAppointmentEventPublisher
from medsync.messaging.routing import build_appointment_topic
from medsync.middleware.logging import get_request_id
from medsync.repositories.appointment_repository import RedisAppointmentRepository
from medsync.services.appointment_service import AppointmentService


def get_appointment_service(
    redis_client: Annotated[redis.Redis, Depends(get_redis_client)],
) -> AppointmentService:
    """
    Build the appointment service over the shared Redis client.

    Args:
        redis_client: Redis client used by the store and the topic

    Returns:
        Appointment service
    """
    broker = StreamBroker(redis_client, settings.stream_max_len)
    return AppointmentService(
        repository=RedisAppointmentRepository(redis_client, settings.redis_key_prefix),
        publisher=TopicAppointmentEventPublisher(build_appointment_topic(broker, settings)),
        ttl_days=settings.appointment_ttl_days,
    )


def get_correlation_id(request: Request) -> str:
    """Get the correlation ID of the current request."""
    return get_request_id(request)


# Type aliases for dependency injection
AppointmentServiceDep = Annotated[AppointmentService, Depends(get_appointment_service)]
CorrelationId = Annotated[str, Depends(get_correlation_id)]
