"""Country enrichment worker.

Consumes created-appointment notifications from a country queue, enriches
each appointment, stores the enriched row in the country database and
signals completion on the event bus. A record that fails is reported back
to the consumer for redelivery while the rest of its batch proceeds; the
only dropped messages are those that belong to another country.
"""

from typing import Any

import pydantic
import structlog
from structlog.contextvars import bound_contextvars

from medsync.constants import COMPLETION_DETAIL_TYPE, get_country_profile
from medsync.core.exceptions import InternalError
from medsync.messaging.consumer import BatchResult, QueueMessage
from medsync.messaging.event_bus import EventBus
from medsync.repositories.appointment_repository import AppointmentRepository
from medsync.repositories.enriched_appointment_repository import EnrichedAppointmentRepository
from medsync.schemas.appointments import AppointmentStatus
from medsync.schemas.events import BusEntry, CompletionDetail, LifecycleEvent, TopicNotification
from medsync.services.enrichment_service import EnrichmentProvider
from medsync.utils.dates import get_current_timestamp

logger = structlog.get_logger(__name__)


def announced_country(body: dict) -> Any:
    """Read ``countryISO`` from a topic notification without validating it."""
    payload = body.get("Message") if isinstance(body, dict) else None
    if not isinstance(payload, dict):
        return None
    return payload.get("countryISO")


def parse_lifecycle_event(body: dict) -> LifecycleEvent:
    """
    Extract the lifecycle event from a topic notification.

    Raises:
        InternalError: If the notification or the event is malformed
    """
    try:
        notification = TopicNotification.model_validate(body)
        return LifecycleEvent.model_validate(notification.message)
    except pydantic.ValidationError as e:
        raise InternalError("Malformed appointment event") from e


class CountryAppointmentWorker:
    """Processes created appointments of a single country."""

    def __init__(
        self,
        country: str,
        repository: AppointmentRepository,
        enriched_repository: EnrichedAppointmentRepository,
        event_bus: EventBus,
        provider: EnrichmentProvider,
        event_source: str,
    ):
        """
        Initialize worker.

        Args:
            country: Country ISO code this worker serves
            repository: Appointment store
            enriched_repository: The country's enriched appointment store
            event_bus: Bus receiving completion events
            provider: Enrichment provider
            event_source: Source name stamped on completion events
        """
        self.country = country
        self.worker_name = get_country_profile(country).worker_name
        self.repository = repository
        self.enriched_repository = enriched_repository
        self.event_bus = event_bus
        self.provider = provider
        self.event_source = event_source
        self._log_prefix = country.lower()

    async def handle_batch(self, messages: list[QueueMessage]) -> BatchResult:
        """
        Process every message of a batch in order.

        Args:
            messages: Messages delivered from the country queue

        Returns:
            The ids of the messages that failed and must be redelivered
        """
        logger.info(
            f"{self._log_prefix}_batch_received", worker=self.worker_name, count=len(messages)
        )

        result = BatchResult()
        for message in messages:
            try:
                await self.process_record(message)
            except Exception:
                # Already logged by process_record
                result.failed_message_ids.append(message.message_id)

        logger.info(
            f"{self._log_prefix}_batch_completed",
            worker=self.worker_name,
            failed=len(result.failed_message_ids),
        )
        return result

    async def process_record(self, message: QueueMessage) -> None:
        """
        Enrich and store one appointment, then signal its completion.

        Raises:
            InternalError: If the appointment is unknown, the event is malformed, or the
                completion event is rejected by the bus
        """
        with bound_contextvars(message_id=message.message_id, worker=self.worker_name):
            # Any other country, supported or not, is dropped before validation
            country_iso = announced_country(message.body)
            if country_iso is not None and country_iso != self.country:
                logger.warning(
                    "misrouted_appointment_dropped",
                    appointment_id=message.body["Message"].get("id"),
                    country_iso=country_iso,
                    expected=self.country,
                )
                return

            try:
                event = parse_lifecycle_event(message.body)

                appointment = await self.repository.find_by_id(event.id)
                if appointment is None:
                    logger.error("appointment_not_found", appointment_id=event.id)
                    raise InternalError("Appointment not found")

                enriched = await self.provider.enrich(appointment, self.worker_name)
                await self.enriched_repository.upsert(enriched)
                await self._send_completion(enriched.id)
            except Exception as e:
                logger.error(
                    f"{self._log_prefix}_record_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    receive_count=message.receive_count,
                )
                raise

            logger.info(f"{self._log_prefix}_record_processed", appointment_id=enriched.id)

    async def _send_completion(self, appointment_id: str) -> None:
        detail = CompletionDetail(
            appointment_id=appointment_id,
            country_iso=self.country,
            status=AppointmentStatus.COMPLETED,
            timestamp=get_current_timestamp(),
            processed_by=self.worker_name,
        )
        entry = BusEntry(
            source=self.event_source,
            detail_type=COMPLETION_DETAIL_TYPE,
            detail=detail.to_record(),
        )

        result = await self.event_bus.put_events([entry])
        if result.failed_entry_count > 0:
            logger.error(
                "completion_event_failed",
                appointment_id=appointment_id,
                failed_entries=[e.model_dump() for e in result.entries if e.error_code],
            )
            raise InternalError("Failed to send completion event")

        logger.info(
            "completion_event_sent",
            appointment_id=appointment_id,
            event_id=result.entries[0].event_id if result.entries else None,
        )
