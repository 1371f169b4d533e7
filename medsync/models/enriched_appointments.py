"""Enriched appointments table model using SQLAlchemy Core.

The same table exists in every country database; each country worker writes
to and reads from its own database only.
"""

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    func,
)

# Metadata for all tables
metadata = MetaData()

enriched_appointments = Table(
    "enriched_appointments",
    metadata,
    Column("id", String(36), primary_key=True),
    # Appointment identity
    Column("insured_id", String(5), nullable=False),
    Column("schedule_id", Integer, nullable=False),
    Column("country_iso", String(2), nullable=False),
    Column("status", String(20), nullable=False, server_default="completed"),
    # Timestamps
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("processed_at", DateTime(timezone=True), nullable=True),
    Column("processing_lambda", String(100), nullable=True),
    # Simulated medical-center data
    Column("doctor_id", Integer, nullable=True),
    Column("doctor_name", String(255), nullable=True),
    Column("specialty_id", Integer, nullable=True),
    Column("specialty_name", String(255), nullable=True),
    Column("medical_center_id", Integer, nullable=True),
    Column("center_name", String(255), nullable=True),
    Column("center_address", Text, nullable=True),
    # Billing
    Column("appointment_cost", Numeric(12, 2), nullable=True),
    Column("currency", String(3), nullable=True),
    Column("tax_rate", Numeric(5, 4), nullable=True),
    # Expiry hint carried over from the appointment store
    Column("ttl", BigInteger, nullable=True),
    CheckConstraint(
        "status IN ('pending', 'completed', 'failed')",
        name="enriched_appointments_status_check",
    ),
    CheckConstraint(
        "country_iso IN ('PE', 'CL')",
        name="enriched_appointments_country_check",
    ),
    Index("idx_enriched_appointments_insured", "insured_id", "created_at"),
)
