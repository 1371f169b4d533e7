"""Appointment schemas for request/response validation."""

from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from medsync.utils.validators import INSURED_ID_PATTERN, sanitize_insured_id


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Terminal statuses never transition again."""
        return self is not AppointmentStatus.PENDING


class CountryCode(str, Enum):
    """Supported countries."""

    PE = "PE"
    CL = "CL"


class CamelModel(BaseModel):
    """Base schema serialized with the public camelCase field names."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    def to_record(self) -> dict[str, Any]:
        """Dump using the public field names."""
        return self.model_dump(by_alias=True, mode="json")


class AppointmentRequest(CamelModel):
    """Schema for creating a new appointment."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, extra="ignore")

    insured_id: str = Field(..., alias="insuredId")
    schedule_id: int = Field(..., alias="scheduleId", gt=0)
    country_iso: CountryCode = Field(..., alias="countryISO")

    @field_validator("insured_id", mode="before")
    @classmethod
    def normalize_insured_id(cls, v: Any) -> Any:
        """Zero-pad the insured ID and require exactly five digits."""
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if not isinstance(v, str):
            return v
        padded = sanitize_insured_id(v)
        if not v or not INSURED_ID_PATTERN.fullmatch(padded):
            raise ValueError("insuredId must be exactly 5 digits")
        return padded

    @field_validator("schedule_id", mode="before")
    @classmethod
    def reject_boolean_schedule(cls, v: Any) -> Any:
        """Booleans are not schedule identifiers."""
        if isinstance(v, bool):
            raise ValueError("scheduleId must be a positive integer")
        return v


class Appointment(CamelModel):
    """Appointment record as stored in the appointment store."""

    id: str
    insured_id: str = Field(..., alias="insuredId")
    schedule_id: int = Field(..., alias="scheduleId")
    country_iso: CountryCode = Field(..., alias="countryISO")
    status: AppointmentStatus = AppointmentStatus.PENDING
    created_at: str = Field(..., alias="createdAt")
    updated_at: str | None = Field(None, alias="updatedAt")
    ttl: int | None = None

    def can_transition_to(self, status: AppointmentStatus | str) -> bool:
        """
        Check the status DAG pending -> {completed, failed}.

        Re-applying the current status is allowed so redelivered updates stay idempotent.

        Args:
            status: Target status

        Returns:
            True if the transition is allowed
        """
        target = AppointmentStatus(status)
        current = AppointmentStatus(self.status)
        return current == target or not current.is_terminal

    def is_pending(self) -> bool:
        """Check whether the appointment still awaits processing."""
        return not AppointmentStatus(self.status).is_terminal

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Appointment":
        """Build an appointment from a stored record."""
        return cls.model_validate(record)


class EnrichedAppointment(Appointment):
    """Appointment enriched with country-specific medical-center data."""

    doctor_id: int | None = Field(None, alias="doctorId")
    doctor_name: str | None = Field(None, alias="doctorName")
    specialty_id: int | None = Field(None, alias="specialtyId")
    specialty_name: str | None = Field(None, alias="specialtyName")
    medical_center_id: int | None = Field(None, alias="medicalCenterId")
    center_name: str | None = Field(None, alias="centerName")
    center_address: str | None = Field(None, alias="centerAddress")
    appointment_cost: Decimal | None = Field(None, alias="appointmentCost")
    currency: str | None = None
    tax_rate: Decimal | None = Field(None, alias="taxRate")
    processed_at: str | None = Field(None, alias="processedAt")
    processing_lambda: str | None = Field(None, alias="processingLambda")


class AppointmentFilters(CamelModel):
    """Validated filters for listing appointments."""

    country_iso: CountryCode | None = Field(None, alias="countryISO")
    status: AppointmentStatus | None = None
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class StatusUpdateRequest(BaseModel):
    """Schema for updating appointment status."""

    status: str


class CreateAppointmentResponse(CamelModel):
    """Acknowledgement returned when an appointment is accepted."""

    id: str
    message: str
    status: AppointmentStatus


class AppointmentsByInsuredResponse(CamelModel):
    """Appointments of a single insured party."""

    appointments: list[Appointment]
    total: int


class AppointmentListResponse(CamelModel):
    """Schema for paginated appointment list response."""

    appointments: list[Appointment]
    total: int
    limit: int
    offset: int
    has_more: bool = Field(..., alias="hasMore")


class ApiResponse(BaseModel):
    """Envelope for successful API responses."""

    success: bool = True
    data: Any = None
    message: str | None = None
