"""Enriched appointment store, one database per country."""

from typing import Any

import structlog
from sqlalchemy import and_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from medsync.core.exceptions import InternalError
from medsync.models.enriched_appointments import enriched_appointments
from medsync.schemas.appointments import EnrichedAppointment
from medsync.utils.dates import parse_iso, to_iso

logger = structlog.get_logger(__name__)

# Columns left untouched when an existing row is re-processed
IMMUTABLE_COLUMNS = {"id", "insured_id", "schedule_id", "country_iso", "created_at"}

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _to_row(appointment: EnrichedAppointment) -> dict[str, Any]:
    """Map an enriched appointment to table columns."""
    return {
        "id": appointment.id,
        "insured_id": appointment.insured_id,
        "schedule_id": appointment.schedule_id,
        "country_iso": appointment.country_iso,
        "status": appointment.status,
        "created_at": parse_iso(appointment.created_at),
        "updated_at": parse_iso(appointment.updated_at or appointment.created_at),
        "processed_at": parse_iso(appointment.processed_at) if appointment.processed_at else None,
        "processing_lambda": appointment.processing_lambda,
        "doctor_id": appointment.doctor_id,
        "doctor_name": appointment.doctor_name,
        "specialty_id": appointment.specialty_id,
        "specialty_name": appointment.specialty_name,
        "medical_center_id": appointment.medical_center_id,
        "center_name": appointment.center_name,
        "center_address": appointment.center_address,
        "appointment_cost": appointment.appointment_cost,
        "currency": appointment.currency,
        "tax_rate": appointment.tax_rate,
        "ttl": appointment.ttl,
    }


def _from_row(row: Any) -> EnrichedAppointment:
    """Map a table row to an enriched appointment."""
    data = dict(row._mapping)
    return EnrichedAppointment(
        id=data["id"],
        insured_id=data["insured_id"],
        schedule_id=data["schedule_id"],
        country_iso=data["country_iso"],
        status=data["status"],
        created_at=to_iso(data["created_at"]),
        updated_at=to_iso(data["updated_at"]),
        processed_at=to_iso(data["processed_at"]),
        processing_lambda=data["processing_lambda"],
        doctor_id=data["doctor_id"],
        doctor_name=data["doctor_name"],
        specialty_id=data["specialty_id"],
        specialty_name=data["specialty_name"],
        medical_center_id=data["medical_center_id"],
        center_name=data["center_name"],
        center_address=data["center_address"],
        appointment_cost=data["appointment_cost"],
        currency=data["currency"],
        tax_rate=data["tax_rate"],
        ttl=data["ttl"],
    )


class EnrichedAppointmentRepository:
    """Repository for a single country's enriched appointments."""

    def __init__(self, country: str, session_factory: async_sessionmaker[AsyncSession]):
        """
        Initialize repository.

        Args:
            country: Country ISO code the database belongs to
            session_factory: Session factory bound to that country's engine
        """
        self.country = country
        self.session_factory = session_factory

    def _upsert_statement(self, dialect_name: str, values: dict[str, Any]) -> Any:
        insert = _INSERT_BY_DIALECT.get(dialect_name)
        if insert is None:
            raise InternalError(f"Unsupported database dialect: {dialect_name}")

        stmt = insert(enriched_appointments).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=[enriched_appointments.c.id],
            set_={
                column: stmt.excluded[column]
                for column in values
                if column not in IMMUTABLE_COLUMNS
            },
        )

    async def upsert(self, appointment: EnrichedAppointment) -> None:
        """
        Insert an enriched appointment or update it if the id already exists.

        Args:
            appointment: Enriched appointment

        Raises:
            InternalError: If the database write fails
        """
        logger.info(
            "upserting_enriched_appointment", country=self.country, appointment_id=appointment.id
        )

        try:
            async with self.session_factory() as session:
                dialect = session.get_bind().dialect.name
                stmt = self._upsert_statement(dialect, _to_row(appointment))
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "upsert_enriched_appointment_failed",
                country=self.country,
                appointment_id=appointment.id,
                error=str(e),
            )
            raise InternalError(
                f"Failed to insert appointment to {self.country} database"
            ) from e

        logger.info(
            "enriched_appointment_upserted", country=self.country, appointment_id=appointment.id
        )

    async def find_by_id(self, appointment_id: str) -> EnrichedAppointment | None:
        """Get an enriched appointment by id."""
        stmt = select(enriched_appointments).where(
            and_(
                enriched_appointments.c.id == appointment_id,
                enriched_appointments.c.country_iso == self.country,
            )
        )

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                row = result.fetchone()
        except SQLAlchemyError as e:
            logger.error("find_enriched_failed", country=self.country, error=str(e))
            raise InternalError(
                f"Failed to retrieve appointment from {self.country} database"
            ) from e

        return _from_row(row) if row else None

    async def find_by_insured_id(self, insured_id: str) -> list[EnrichedAppointment]:
        """Get all enriched appointments of an insured party, newest first."""
        stmt = (
            select(enriched_appointments)
            .where(
                and_(
                    enriched_appointments.c.insured_id == insured_id,
                    enriched_appointments.c.country_iso == self.country,
                )
            )
            .order_by(enriched_appointments.c.created_at.desc())
        )

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                rows = result.fetchall()
        except SQLAlchemyError as e:
            logger.error("find_enriched_by_insured_failed", country=self.country, error=str(e))
            raise InternalError(
                f"Failed to retrieve appointments from {self.country} database"
            ) from e

        return [_from_row(row) for row in rows]
