"""Tests for the country enrichment workers."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from medsync.config import settings
from medsync.core.exceptions import InternalError
from medsync.messaging.consumer import QueueMessage
from medsync.models import enriched_appointments
from medsync.repositories.enriched_appointment_repository import EnrichedAppointmentRepository
from medsync.schemas.events import (
    LifecycleEvent,
    PutEventsResult,
    PutEventsResultEntry,
    TopicNotification,
)


def _created_message(appointment, message_id: str = "1-0") -> QueueMessage:
    """Queue message carrying a created event for an appointment."""
    event = LifecycleEvent(
        id=appointment.id,
        insured_id=appointment.insured_id,
        schedule_id=appointment.schedule_id,
        country_iso=appointment.country_iso,
        timestamp=appointment.created_at,
        event_type="AppointmentCreated",
    )
    notification = TopicNotification(
        message_id=f"msg-{message_id}",
        topic=settings.appointment_topic,
        message=event.to_record(),
        attributes=event.attributes(),
        timestamp=appointment.created_at,
    )
    return QueueMessage(
        message_id, notification.model_dump(by_alias=True), settings.queue_for("PE")
    )


async def _row_count(session_factory) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(enriched_appointments))


@pytest.mark.asyncio
async def test_pe_worker_enriches_and_signals_completion(
    appointment_repository, broker, session_factory, make_country_worker, make_appointment
):
    """A PE appointment is enriched, stored and announced as completed."""
    appointment = make_appointment(country_iso="PE")
    await appointment_repository.put_if_absent(appointment)
    worker = make_country_worker("PE")

    await worker.handle_batch([_created_message(appointment)])

    stored = await EnrichedAppointmentRepository("PE", session_factory).find_by_id(appointment.id)
    assert stored.status == "completed"
    assert stored.currency == "PEN"
    assert stored.tax_rate == Decimal("0.18")
    assert stored.center_name == "Centro Médico Rimac Lima"

    envelopes = broker.bodies(settings.completion_queue)
    assert len(envelopes) == 1
    assert envelopes[0]["detail"]["appointmentId"] == appointment.id
    assert envelopes[0]["detail"]["status"] == "completed"
    assert envelopes[0]["detail"]["processedBy"] == "processAppointmentPE"

    # Only the reconciler finalizes the appointment store
    assert (await appointment_repository.find_by_id(appointment.id)).status == "pending"


@pytest.mark.asyncio
async def test_cl_worker_uses_chile_schedule(
    appointment_repository, session_factory, make_country_worker, make_appointment
):
    """The CL worker applies the Chilean cost, currency and tax rate."""
    appointment = make_appointment(country_iso="CL")
    await appointment_repository.put_if_absent(appointment)

    await make_country_worker("CL").handle_batch([_created_message(appointment)])

    stored = await EnrichedAppointmentRepository("CL", session_factory).find_by_id(appointment.id)
    assert stored.currency == "CLP"
    assert stored.tax_rate == Decimal("0.19")
    assert stored.appointment_cost == Decimal("45000.00")
    assert stored.processing_lambda == "processAppointmentCL"


@pytest.mark.asyncio
async def test_misrouted_message_is_dropped(
    appointment_repository, broker, session_factory, make_country_worker, make_appointment
):
    """A CL event delivered to the PE worker changes nothing and raises nothing."""
    appointment = make_appointment(country_iso="CL")
    await appointment_repository.put_if_absent(appointment)
    before = await appointment_repository.find_by_id(appointment.id)

    await make_country_worker("PE").handle_batch([_created_message(appointment)])

    assert await _row_count(session_factory) == 0
    assert broker.bodies(settings.completion_queue) == []
    assert await appointment_repository.find_by_id(appointment.id) == before


@pytest.mark.asyncio
async def test_unsupported_country_is_dropped(broker, session_factory, make_country_worker):
    """An event for a country no worker serves is dropped, not retried."""
    message = QueueMessage(
        "1-0",
        {
            "MessageId": "msg-1",
            "Topic": settings.appointment_topic,
            "Message": {
                "id": "appt-br",
                "insuredId": "12345",
                "scheduleId": 7,
                "countryISO": "BR",
                "timestamp": "2026-01-01T00:00:00+00:00",
                "eventType": "AppointmentCreated",
            },
            "MessageAttributes": {"countryISO": "BR", "eventType": "AppointmentCreated"},
            "Timestamp": "2026-01-01T00:00:00+00:00",
        },
        settings.queue_for("PE"),
    )

    result = await make_country_worker("PE").handle_batch([message])

    assert result.failed_message_ids == []
    assert await _row_count(session_factory) == 0
    assert broker.bodies(settings.completion_queue) == []


@pytest.mark.asyncio
async def test_unknown_appointment_fails_record(make_country_worker, make_appointment):
    """An event for an appointment the store does not have fails that record."""
    missing = make_appointment(country_iso="PE")

    with pytest.raises(InternalError, match="Appointment not found"):
        await make_country_worker("PE").process_record(_created_message(missing))


@pytest.mark.asyncio
async def test_failed_record_does_not_block_batch(
    appointment_repository, broker, session_factory, make_country_worker, make_appointment
):
    """Only the failing record is reported; the rest of the batch is processed."""
    missing = make_appointment(country_iso="PE")
    stored = make_appointment(country_iso="PE")
    await appointment_repository.put_if_absent(stored)

    result = await make_country_worker("PE").handle_batch(
        [_created_message(missing, "1-0"), _created_message(stored, "2-0")]
    )

    assert result.failed_message_ids == ["1-0"]
    assert await _row_count(session_factory) == 1
    envelopes = broker.bodies(settings.completion_queue)
    assert [e["detail"]["appointmentId"] for e in envelopes] == [stored.id]


@pytest.mark.asyncio
async def test_reprocessing_is_idempotent(
    appointment_repository, session_factory, make_country_worker, make_appointment
):
    """Redelivering the same event keeps a single enriched row."""
    appointment = make_appointment(country_iso="PE")
    await appointment_repository.put_if_absent(appointment)
    worker = make_country_worker("PE")
    message = _created_message(appointment)

    await worker.handle_batch([message])
    await worker.handle_batch([message])

    assert await _row_count(session_factory) == 1


@pytest.mark.asyncio
async def test_failed_completion_entry_fails_record(
    appointment_repository, make_country_worker, make_appointment
):
    """A completion event rejected by the bus is a processing error."""
    appointment = make_appointment(country_iso="PE")
    await appointment_repository.put_if_absent(appointment)
    worker = make_country_worker("PE")
    worker.event_bus = AsyncMock()
    worker.event_bus.put_events.return_value = PutEventsResult(
        failed_entry_count=1,
        entries=[PutEventsResultEntry(error_code="DeliveryFailed", error_message="down")],
    )

    with pytest.raises(InternalError, match="Failed to send completion event"):
        await worker.process_record(_created_message(appointment))


@pytest.mark.asyncio
async def test_malformed_event_fails_record(make_country_worker):
    """Bodies that are not topic notifications are processing errors."""
    message = QueueMessage("1-0", {"unexpected": True}, settings.queue_for("PE"))

    with pytest.raises(InternalError, match="Malformed appointment event"):
        await make_country_worker("PE").process_record(message)
