"""Create enriched_appointments table.

Applied to every country database.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        "enriched_appointments",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("insured_id", sa.String(length=5), nullable=False),
        sa.Column("schedule_id", sa.Integer(), nullable=False),
        sa.Column("country_iso", sa.String(length=2), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="completed", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_lambda", sa.String(length=100), nullable=True),
        sa.Column("doctor_id", sa.Integer(), nullable=True),
        sa.Column("doctor_name", sa.String(length=255), nullable=True),
        sa.Column("specialty_id", sa.Integer(), nullable=True),
        sa.Column("specialty_name", sa.String(length=255), nullable=True),
        sa.Column("medical_center_id", sa.Integer(), nullable=True),
        sa.Column("center_name", sa.String(length=255), nullable=True),
        sa.Column("center_address", sa.Text(), nullable=True),
        sa.Column("appointment_cost", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=True),
        sa.Column("tax_rate", sa.Numeric(precision=5, scale=4), nullable=True),
        sa.Column("ttl", sa.BigInteger(), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'failed')",
            name="enriched_appointments_status_check",
        ),
        sa.CheckConstraint(
            "country_iso IN ('PE', 'CL')",
            name="enriched_appointments_country_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index(
        "idx_enriched_appointments_insured",
        "enriched_appointments",
        ["insured_id", "created_at"],
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("idx_enriched_appointments_insured", table_name="enriched_appointments")
    op.drop_table("enriched_appointments")
