"""Event schemas carried by the event transport."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from medsync.schemas.appointments import AppointmentStatus, CamelModel, CountryCode


class LifecycleEvent(CamelModel):
    """Appointment created/updated event published on the appointment topic."""

    id: str
    insured_id: str = Field(..., alias="insuredId")
    schedule_id: int = Field(..., alias="scheduleId")
    country_iso: CountryCode = Field(..., alias="countryISO")
    timestamp: str
    event_type: str = Field(..., alias="eventType")
    status: AppointmentStatus | None = None

    def attributes(self) -> dict[str, str]:
        """Routable attributes used by subscription filter policies."""
        return {"countryISO": str(self.country_iso), "eventType": self.event_type}


class TopicNotification(BaseModel):
    """Envelope delivered to topic subscribers."""

    model_config = ConfigDict(populate_by_name=True)

    message_id: str = Field(..., alias="MessageId")
    topic: str = Field(..., alias="Topic")
    message: dict[str, Any] = Field(..., alias="Message")
    attributes: dict[str, str] = Field(default_factory=dict, alias="MessageAttributes")
    timestamp: str = Field(..., alias="Timestamp")


class CompletionDetail(CamelModel):
    """Payload of the appointment completion event."""

    appointment_id: str = Field(..., alias="appointmentId")
    country_iso: CountryCode = Field(..., alias="countryISO")
    status: AppointmentStatus
    timestamp: str
    processed_by: str = Field(..., alias="processedBy")


class BusEntry(BaseModel):
    """A single event submitted to the routed bus."""

    source: str
    detail_type: str
    detail: dict[str, Any]


class BusEnvelope(BaseModel):
    """Envelope delivered to routed bus targets."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = "0"
    id: str
    detail_type: str = Field(..., alias="detail-type")
    source: str
    bus: str
    time: str
    resources: list[str] = Field(default_factory=list)
    detail: dict[str, Any]


class PutEventsResultEntry(BaseModel):
    """Outcome of one submitted bus entry."""

    event_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None


class PutEventsResult(BaseModel):
    """Per-entry outcome of a bus submission."""

    failed_entry_count: int = 0
    entries: list[PutEventsResultEntry] = Field(default_factory=list)
