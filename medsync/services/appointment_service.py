"""Appointment lifecycle service.

Owns the appointment state machine: creation of pending records, queries,
and status transitions. Created records are announced on the appointment
topic after they are persisted.
"""

import uuid
from collections.abc import Callable
from typing import Any

import structlog

from medsync.constants import CREATED_MESSAGE
from medsync.core.exceptions import ConflictError, NotFoundError
from medsync.messaging.publisher import AppointmentEventPublisher
from medsync.repositories.appointment_repository import AppointmentRepository
from medsync.schemas.appointments import (
    Appointment,
    AppointmentListResponse,
    AppointmentsByInsuredResponse,
    AppointmentStatus,
    CreateAppointmentResponse,
)
from medsync.services.validation import (
    parse_status,
    validate_appointment_request,
    validate_list_filters,
)
from medsync.utils.dates import get_current_timestamp, get_ttl
from medsync.utils.validators import is_valid_insured_id, sanitize_insured_id

logger = structlog.get_logger(__name__)


def generate_appointment_id() -> str:
    """Generate a new appointment ID."""
    return str(uuid.uuid4())


class AppointmentService:
    """Service for the appointment lifecycle."""

    def __init__(
        self,
        repository: AppointmentRepository,
        publisher: AppointmentEventPublisher,
        ttl_days: int = 30,
        id_factory: Callable[[], str] = generate_appointment_id,
    ):
        """
        Initialize service.

        Args:
            repository: Appointment store
            publisher: Lifecycle event publisher
            ttl_days: Days until a record becomes eligible for expiry
            id_factory: Appointment ID generator
        """
        self.repository = repository
        self.publisher = publisher
        self.ttl_days = ttl_days
        self.id_factory = id_factory

    async def create(
        self, data: Any, correlation_id: str | None = None
    ) -> CreateAppointmentResponse:
        """
        Create a pending appointment and announce it.

        If publishing fails after the record is stored, the error propagates and
        the record stays pending until it is republished.

        Args:
            data: Raw request with insuredId, scheduleId and countryISO
            correlation_id: Request correlation ID

        Returns:
            Acknowledgement with the new appointment ID

        Raises:
            ValidationError: If any request field is invalid
            ConflictError: If the generated ID already exists
            InternalError: If the store or the topic fails
        """
        log = logger.bind(correlation_id=correlation_id)
        log.info("creating_appointment", request=data)

        try:
            request = validate_appointment_request(data)

            appointment = Appointment(
                id=self.id_factory(),
                insured_id=request.insured_id,
                schedule_id=request.schedule_id,
                country_iso=request.country_iso,
                status=AppointmentStatus.PENDING,
                created_at=get_current_timestamp(),
                ttl=get_ttl(self.ttl_days),
            )

            if await self.repository.exists(appointment.id):
                raise ConflictError("Appointment already exists")

            await self.repository.put_if_absent(appointment)
            log.info("appointment_persisted", appointment_id=appointment.id)

            await self.publisher.publish_appointment_created(appointment, correlation_id)
        except Exception as e:
            log.error("create_appointment_failed", error=str(e), error_type=type(e).__name__)
            raise

        log.info("appointment_created", appointment_id=appointment.id)
        return CreateAppointmentResponse(
            id=appointment.id,
            message=CREATED_MESSAGE,
            status=AppointmentStatus.PENDING,
        )

    async def republish(self, appointment_id: str, correlation_id: str | None = None) -> str:
        """
        Announce a pending appointment again.

        Re-drives records whose original announcement failed. The stored record
        is never modified.

        Returns:
            Message ID of the new announcement

        Raises:
            NotFoundError: If the appointment does not exist
            ConflictError: If the appointment is no longer pending
        """
        log = logger.bind(correlation_id=correlation_id, appointment_id=appointment_id)

        appointment = await self.get_by_id(appointment_id)
        if not appointment.is_pending():
            log.warning("republish_rejected", status=appointment.status)
            raise ConflictError(f"Appointment is already {appointment.status}")

        message_id = await self.publisher.publish_appointment_created(appointment, correlation_id)
        log.info("appointment_republished", message_id=message_id)
        return message_id

    async def get_by_id(self, appointment_id: str) -> Appointment:
        """
        Get an appointment by ID.

        Raises:
            NotFoundError: If the appointment does not exist
        """
        appointment = await self.repository.find_by_id(appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment not found")
        return appointment

    async def get_by_insured_id(
        self, insured_id: str, correlation_id: str | None = None
    ) -> AppointmentsByInsuredResponse:
        """
        Get every appointment of an insured party, newest first.

        Args:
            insured_id: Insured ID, zero-padded to five digits
            correlation_id: Request correlation ID

        Raises:
            NotFoundError: If the insured ID is not five digits after padding
        """
        log = logger.bind(correlation_id=correlation_id)
        log.info("getting_appointments_by_insured", insured_id=insured_id)

        sanitized = sanitize_insured_id(insured_id)
        if not is_valid_insured_id(sanitized):
            log.warning("invalid_insured_id", insured_id=insured_id, sanitized=sanitized)
            raise NotFoundError("Invalid insured ID format")

        try:
            appointments = await self.repository.find_by_insured_id(sanitized)
        except Exception as e:
            log.error("get_by_insured_failed", insured_id=sanitized, error=str(e))
            raise

        log.info("appointments_retrieved", insured_id=sanitized, total=len(appointments))
        return AppointmentsByInsuredResponse(appointments=appointments, total=len(appointments))

    async def get_all(
        self,
        country_iso: str | None = None,
        status: str | None = None,
        limit: Any = None,
        offset: Any = None,
        correlation_id: str | None = None,
    ) -> AppointmentListResponse:
        """
        List appointments newest first with filtering and pagination.

        Returns:
            Page of appointments; ``hasMore`` is set when further matches exist

        Raises:
            ValidationError: If any filter is out of range
        """
        log = logger.bind(correlation_id=correlation_id)
        filters = validate_list_filters(country_iso, status, limit, offset)
        log.info("listing_appointments", filters=filters.to_record())

        try:
            found = await self.repository.find_all(
                country_iso=filters.country_iso,
                status=filters.status,
                limit=filters.limit,
                offset=filters.offset,
            )
        except Exception as e:
            log.error("list_appointments_failed", error=str(e))
            raise

        has_more = len(found) > filters.limit
        page = found[: filters.limit]

        log.info("appointments_listed", returned=len(page), has_more=has_more)
        return AppointmentListResponse(
            appointments=page,
            total=len(page),
            limit=filters.limit,
            offset=filters.offset,
            has_more=has_more,
        )

    async def update_status(
        self, appointment_id: str, status: Any, correlation_id: str | None = None
    ) -> None:
        """
        Update the status of an existing appointment.

        Args:
            appointment_id: Appointment ID
            status: One of pending, completed, failed
            correlation_id: Request correlation ID

        Raises:
            ValidationError: If the status is not valid
            NotFoundError: If the appointment does not exist
            ConflictError: If a terminal appointment would change status
        """
        log = logger.bind(correlation_id=correlation_id, appointment_id=appointment_id)
        log.info("updating_appointment_status", status=status)

        try:
            new_status = parse_status(status)

            if not await self.repository.exists(appointment_id):
                raise NotFoundError("Appointment not found")

            await self.repository.update_status(appointment_id, new_status)

            appointment = await self.repository.find_by_id(appointment_id)
            if appointment is not None:
                await self.publisher.publish_appointment_updated(appointment, correlation_id)
        except Exception as e:
            log.error("update_status_failed", error=str(e), error_type=type(e).__name__)
            raise

        log.info("appointment_status_updated", status=new_status.value)
