"""Wiring and lifecycle of the queue-consuming worker processes."""

import asyncio
import os
import signal
import socket

import redis.asyncio as redis
import structlog

from medsync.config import Settings
from medsync.constants import SUPPORTED_COUNTRIES, get_country_profile
from medsync.core.redis_client import close_redis_connection, get_redis_client
from medsync.database import dispose_engines, get_session_factory
from medsync.messaging.broker import StreamBroker
from medsync.messaging.consumer import BatchHandler, ConsumerConfig, QueueConsumer
from medsync.messaging.routing import build_event_bus
from medsync.repositories.appointment_repository import RedisAppointmentRepository
from medsync.repositories.enriched_appointment_repository import EnrichedAppointmentRepository
from medsync.services.enrichment_service import EnrichmentProvider, SimulatedEnrichmentProvider
from medsync.workers.completion_reconciler import CompletionReconciler
from medsync.workers.country_worker import CountryAppointmentWorker

logger = structlog.get_logger(__name__)

COMPLETION_WORKER = "completion"
COMPLETION_GROUP = "processCompletion"
WORKER_KINDS = tuple(country.lower() for country in SUPPORTED_COUNTRIES) + (COMPLETION_WORKER,)


def _consumer_config(settings: Settings, queue: str, group_name: str) -> ConsumerConfig:
    return ConsumerConfig(
        queue=queue,
        group_name=group_name,
        consumer_name=f"{group_name}-{socket.gethostname()}-{os.getpid()}",
        batch_size=settings.consumer_batch_size,
        block_ms=settings.consumer_block_ms,
        visibility_timeout_ms=settings.visibility_timeout_ms,
        max_receive_count=settings.max_receive_count,
    )


def build_country_worker(
    country: str,
    settings: Settings,
    broker: StreamBroker,
    redis_client: redis.Redis,
    provider: EnrichmentProvider | None = None,
) -> CountryAppointmentWorker:
    """Assemble the enrichment worker of a country from settings."""
    return CountryAppointmentWorker(
        country=country,
        repository=RedisAppointmentRepository(redis_client, settings.redis_key_prefix),
        enriched_repository=EnrichedAppointmentRepository(country, get_session_factory(country)),
        event_bus=build_event_bus(broker, settings),
        provider=provider
        or SimulatedEnrichmentProvider(country, settings.enrichment_delay_seconds),
        event_source=settings.event_source,
    )


def build_consumer(kind: str, settings: Settings, redis_client: redis.Redis) -> QueueConsumer:
    """
    Build the queue consumer of a worker process.

    Args:
        kind: ``pe``, ``cl`` or ``completion``
        settings: Application settings
        redis_client: Redis client shared by the store and the transport

    Returns:
        Consumer bound to the worker's queue and handler

    Raises:
        ValueError: If the worker kind is unknown
    """
    broker = StreamBroker(redis_client, settings.stream_max_len)

    handler: BatchHandler
    if kind == COMPLETION_WORKER:
        reconciler = CompletionReconciler(
            RedisAppointmentRepository(redis_client, settings.redis_key_prefix)
        )
        handler = reconciler.handle_batch
        config = _consumer_config(settings, settings.completion_queue, COMPLETION_GROUP)
    elif kind.upper() in SUPPORTED_COUNTRIES:
        country = kind.upper()
        worker = build_country_worker(country, settings, broker, redis_client)
        handler = worker.handle_batch
        config = _consumer_config(
            settings, settings.queue_for(country), get_country_profile(country).worker_name
        )
    else:
        raise ValueError(f"Unknown worker: {kind}")

    return QueueConsumer(broker, config, handler)


async def run_worker(kind: str, settings: Settings) -> None:
    """Run a worker until SIGINT or SIGTERM, then release connections."""
    consumer = build_consumer(kind, settings, get_redis_client())

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, consumer.stop)

    logger.info("worker_starting", worker=kind, queue=consumer.config.queue)
    try:
        await consumer.run()
    finally:
        await close_redis_connection()
        await dispose_engines()
        logger.info("worker_shutdown", worker=kind)
