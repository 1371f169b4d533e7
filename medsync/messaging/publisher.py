"""Lifecycle event publishing."""

from abc import ABC, abstractmethod

import structlog

from medsync.constants import APPOINTMENT_CREATED, APPOINTMENT_UPDATED
from medsync.messaging.topic import EventTopic
from medsync.schemas.appointments import Appointment
from medsync.schemas.events import LifecycleEvent
from medsync.utils.dates import get_current_timestamp

logger = structlog.get_logger(__name__)


class AppointmentEventPublisher(ABC):
    """Publishes appointment lifecycle events."""

    @abstractmethod
    async def publish_appointment_created(
        self, appointment: Appointment, correlation_id: str | None = None
    ) -> str:
        """Announce a newly created appointment; return the message ID."""

    @abstractmethod
    async def publish_appointment_updated(
        self, appointment: Appointment, correlation_id: str | None = None
    ) -> str:
        """Announce a status change; return the message ID."""


class TopicAppointmentEventPublisher(AppointmentEventPublisher):
    """Publishes lifecycle events to the appointment topic."""

    def __init__(self, topic: EventTopic):
        self.topic = topic

    async def _publish(
        self, appointment: Appointment, event_type: str, timestamp: str, correlation_id: str | None
    ) -> str:
        event = LifecycleEvent(
            id=appointment.id,
            insured_id=appointment.insured_id,
            schedule_id=appointment.schedule_id,
            country_iso=appointment.country_iso,
            timestamp=timestamp,
            event_type=event_type,
            status=appointment.status,
        )
        message_id = await self.topic.publish(event.to_record(), event.attributes())
        logger.info(
            "lifecycle_event_published",
            appointment_id=appointment.id,
            event_type=event_type,
            message_id=message_id,
            correlation_id=correlation_id,
        )
        return message_id

    async def publish_appointment_created(
        self, appointment: Appointment, correlation_id: str | None = None
    ) -> str:
        return await self._publish(
            appointment, APPOINTMENT_CREATED, appointment.created_at, correlation_id
        )

    async def publish_appointment_updated(
        self, appointment: Appointment, correlation_id: str | None = None
    ) -> str:
        return await self._publish(
            appointment,
            APPOINTMENT_UPDATED,
            appointment.updated_at or get_current_timestamp(),
            correlation_id,
        )
