"""Enrichment of appointments with country medical-center data."""

import asyncio
from abc import ABC, abstractmethod

import structlog

from medsync.constants import get_country_profile
from medsync.schemas.appointments import Appointment, AppointmentStatus, EnrichedAppointment
from medsync.utils.dates import get_current_timestamp, get_ttl

logger = structlog.get_logger(__name__)

# Enriched rows without an inherited expiry are kept for a year
ENRICHED_TTL_DAYS = 365


class EnrichmentProvider(ABC):
    """Attaches medical-center detail to an appointment."""

    @abstractmethod
    async def enrich(self, appointment: Appointment, worker_name: str) -> EnrichedAppointment:
        """
        Produce the enriched, completed form of an appointment.

        Args:
            appointment: Stored appointment
            worker_name: Identity of the worker performing the enrichment

        Returns:
            Enriched appointment with status completed
        """


class SimulatedEnrichmentProvider(EnrichmentProvider):
    """
    Enrichment from the fixed country profile.

    Stands in for the medical-center integration: waits ``delay_seconds`` and
    attaches the country's doctor, specialty, center and cost schedule.
    """

    def __init__(self, country: str, delay_seconds: float = 1.0):
        self.profile = get_country_profile(country)
        self.delay_seconds = delay_seconds

    async def enrich(self, appointment: Appointment, worker_name: str) -> EnrichedAppointment:
        logger.info(
            "enrichment_started", appointment_id=appointment.id, country=self.profile.code
        )

        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        center = self.profile.medical_center
        now = get_current_timestamp()
        enriched = EnrichedAppointment(
            id=appointment.id,
            insured_id=appointment.insured_id,
            schedule_id=appointment.schedule_id,
            country_iso=appointment.country_iso,
            status=AppointmentStatus.COMPLETED,
            created_at=appointment.created_at,
            updated_at=appointment.updated_at or now,
            ttl=appointment.ttl or get_ttl(ENRICHED_TTL_DAYS),
            processed_at=now,
            processing_lambda=worker_name,
            doctor_id=center.doctor_id,
            doctor_name=center.doctor_name,
            specialty_id=center.specialty_id,
            specialty_name=center.specialty_name,
            medical_center_id=center.medical_center_id,
            center_name=center.center_name,
            center_address=center.center_address,
            appointment_cost=center.appointment_cost,
            currency=self.profile.currency,
            tax_rate=self.profile.tax_rate,
        )

        logger.info(
            "enrichment_completed",
            appointment_id=appointment.id,
            currency=enriched.currency,
            estimated_cost=str(enriched.appointment_cost),
            doctor=enriched.doctor_name,
            center=enriched.center_name,
        )
        return enriched
