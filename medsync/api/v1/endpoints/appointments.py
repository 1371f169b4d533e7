"""Appointment endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Query, status

from medsync.constants import CREATED_MESSAGE
from medsync.dependencies import AppointmentServiceDep, CorrelationId
from medsync.schemas.appointments import ApiResponse, StatusUpdateRequest

router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Request a new appointment",
)
async def create_appointment(
    payload: Annotated[Any, Body()],
    service: AppointmentServiceDep,
    correlation_id: CorrelationId,
) -> ApiResponse:
    """
    Accept an appointment request for asynchronous processing.

    The appointment is stored as pending and routed to the worker of its country.

    Args:
        payload: ``{"insuredId", "scheduleId", "countryISO"}``
        service: Appointment service
        correlation_id: Request correlation ID

    Returns:
        Acknowledgement with the new appointment ID
    """
    result = await service.create(payload, correlation_id)
    return ApiResponse(data=result.to_record(), message=CREATED_MESSAGE)


@router.get(
    "",
    response_model=ApiResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    service: AppointmentServiceDep,
    correlation_id: CorrelationId,
    country_iso: str | None = Query(None, alias="countryISO"),
    status_filter: str | None = Query(None, alias="status"),
    limit: str | None = Query(None),
    offset: str | None = Query(None),
) -> ApiResponse:
    """
    List appointments newest first.

    Args:
        service: Appointment service
        correlation_id: Request correlation ID
        country_iso: Filter by country
        status_filter: Filter by status
        limit: Page size, 1..100
        offset: Records to skip

    Returns:
        Page of appointments with pagination metadata
    """
    result = await service.get_all(
        country_iso=country_iso,
        status=status_filter,
        limit=limit,
        offset=offset,
        correlation_id=correlation_id,
    )
    return ApiResponse(data=result.to_record())


@router.get(
    "/{insured_id}",
    response_model=ApiResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments of an insured party",
)
async def get_appointments_by_insured(
    insured_id: str,
    service: AppointmentServiceDep,
    correlation_id: CorrelationId,
) -> ApiResponse:
    """Get every appointment of an insured party, newest first."""
    result = await service.get_by_insured_id(insured_id, correlation_id)
    return ApiResponse(data=result.to_record())


@router.patch(
    "/{appointment_id}/status",
    response_model=ApiResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: str,
    data: StatusUpdateRequest,
    service: AppointmentServiceDep,
    correlation_id: CorrelationId,
) -> ApiResponse:
    """
    Update the status of an appointment.

    Args:
        appointment_id: Appointment ID
        data: New status
        service: Appointment service
        correlation_id: Request correlation ID

    Returns:
        Confirmation message
    """
    await service.update_status(appointment_id, data.status, correlation_id)
    return ApiResponse(
        data={"id": appointment_id, "status": data.status},
        message="Appointment status updated",
    )


@router.post(
    "/{appointment_id}/republish",
    response_model=ApiResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["Appointments"],
    summary="Announce a pending appointment again",
)
async def republish_appointment(
    appointment_id: str,
    service: AppointmentServiceDep,
    correlation_id: CorrelationId,
) -> ApiResponse:
    """Re-drive a pending appointment whose creation event was never delivered."""
    message_id = await service.republish(appointment_id, correlation_id)
    return ApiResponse(
        data={"id": appointment_id, "messageId": message_id},
        message="Appointment event republished",
    )
