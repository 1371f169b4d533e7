"""Database models."""

from medsync.models.enriched_appointments import enriched_appointments, metadata

__all__ = [
    "enriched_appointments",
    "metadata",
]
