"""Completion reconciler.

Moves appointments to their terminal status once a country worker reports
completion. Events come from the completion queue wrapped in the bus
envelope.
"""

import pydantic
import structlog
from structlog.contextvars import bound_contextvars

from medsync.core.exceptions import InternalError
from medsync.messaging.consumer import BatchResult, QueueMessage
from medsync.repositories.appointment_repository import AppointmentRepository
from medsync.schemas.appointments import AppointmentStatus
from medsync.schemas.events import BusEnvelope, CompletionDetail

logger = structlog.get_logger(__name__)


class CompletionReconciler:
    """Applies completion events to the appointment store."""

    def __init__(self, repository: AppointmentRepository):
        self.repository = repository

    async def handle_batch(self, messages: list[QueueMessage]) -> BatchResult:
        """Apply every completion in the batch; failed ones are returned for redelivery."""
        logger.info("completion_batch_received", count=len(messages))

        result = BatchResult()
        for message in messages:
            try:
                await self.process_record(message)
            except Exception:
                result.failed_message_ids.append(message.message_id)

        logger.info("completion_batch_completed", failed=len(result.failed_message_ids))
        return result

    async def process_record(self, message: QueueMessage) -> None:
        """
        Mark the referenced appointment as completed.

        Raises:
            InternalError: If the envelope is malformed
            NotFoundError: If the appointment no longer exists
        """
        with bound_contextvars(message_id=message.message_id):
            try:
                try:
                    envelope = BusEnvelope.model_validate(message.body)
                    detail = CompletionDetail.model_validate(envelope.detail)
                except pydantic.ValidationError as e:
                    raise InternalError("Malformed completion event") from e

                logger.info(
                    "completion_event_parsed",
                    appointment_id=detail.appointment_id,
                    country_iso=detail.country_iso,
                    source=envelope.source,
                    detail_type=envelope.detail_type,
                )

                await self.repository.update_status(
                    detail.appointment_id, AppointmentStatus.COMPLETED
                )
            except Exception as e:
                logger.error(
                    "completion_record_failed", error=str(e), error_type=type(e).__name__
                )
                raise

            logger.info(
                "appointment_completion_processed",
                appointment_id=detail.appointment_id,
                country_iso=detail.country_iso,
            )
