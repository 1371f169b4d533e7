"""End-to-end tests of the appointment pipeline over in-memory transport."""

from decimal import Decimal

import pytest

from medsync.config import settings
from medsync.repositories.enriched_appointment_repository import EnrichedAppointmentRepository
from medsync.workers.completion_reconciler import CompletionReconciler


@pytest.mark.asyncio
async def test_pe_appointment_flows_to_completed(
    appointment_service, appointment_repository, broker, session_factory, make_country_worker
):
    """Create, enrich in PE, reconcile: the appointment ends completed."""
    created = await appointment_service.create(
        {"insuredId": "12345", "scheduleId": 7, "countryISO": "PE"}, "corr-e2e"
    )
    assert (await appointment_service.get_by_id(created.id)).status == "pending"

    pe_messages = broker.drain(settings.appointment_pe_queue)
    assert len(pe_messages) == 1
    assert pe_messages[0].body["MessageAttributes"]["countryISO"] == "PE"
    assert broker.bodies(settings.appointment_cl_queue) == []

    await make_country_worker("PE").handle_batch(pe_messages)

    enriched = await EnrichedAppointmentRepository("PE", session_factory).find_by_insured_id(
        "12345"
    )
    assert len(enriched) == 1
    assert enriched[0].id == created.id
    assert enriched[0].currency == "PEN"
    assert enriched[0].tax_rate == Decimal("0.18")

    completions = broker.drain(settings.completion_queue)
    assert len(completions) == 1

    await CompletionReconciler(appointment_repository).handle_batch(completions)

    final = await appointment_service.get_by_id(created.id)
    assert final.status == "completed"

    listed = await appointment_service.get_by_insured_id("12345")
    assert [a.status for a in listed.appointments] == ["completed"]


@pytest.mark.asyncio
async def test_countries_are_processed_independently(
    appointment_service, appointment_repository, broker, session_factory, make_country_worker
):
    """Each country worker only sees and stores its own appointments."""
    pe = await appointment_service.create({"insuredId": "1", "scheduleId": 1, "countryISO": "PE"})
    cl = await appointment_service.create({"insuredId": "2", "scheduleId": 2, "countryISO": "CL"})

    await make_country_worker("PE").handle_batch(broker.drain(settings.appointment_pe_queue))
    await make_country_worker("CL").handle_batch(broker.drain(settings.appointment_cl_queue))
    await CompletionReconciler(appointment_repository).handle_batch(
        broker.drain(settings.completion_queue)
    )

    pe_row = await EnrichedAppointmentRepository("PE", session_factory).find_by_id(pe.id)
    cl_row = await EnrichedAppointmentRepository("CL", session_factory).find_by_id(cl.id)
    assert pe_row.processing_lambda == "processAppointmentPE"
    assert cl_row.processing_lambda == "processAppointmentCL"

    listing = await appointment_service.get_all(status="completed")
    assert {a.id for a in listing.appointments} == {pe.id, cl.id}
