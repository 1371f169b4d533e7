import json
from collections import defaultdict
from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

from medsync.config import settings
from medsync.core.exceptions import ConflictError, NotFoundError
from medsync.dependencies import get_appointment_service
from medsync.main import app
from medsync.messaging.consumer import QueueMessage
from medsync.messaging.publisher import TopicAppointmentEventPublisher
from medsync.messaging.routing import build_appointment_topic, build_event_bus
from medsync.models import metadata
from medsync.repositories.appointment_repository import AppointmentRepository
from medsync.repositories.enriched_appointment_repository import EnrichedAppointmentRepository
from medsync.schemas.appointments import Appointment, AppointmentStatus
from medsync.services.appointment_service import AppointmentService
from medsync.services.enrichment_service import SimulatedEnrichmentProvider
from medsync.utils.dates import get_current_timestamp, get_ttl, sort_score
from medsync.workers.country_worker import CountryAppointmentWorker


class InMemoryBroker:
    """Stream broker keeping published bodies in memory."""

    def __init__(self):
        self.streams: dict[str, list[tuple[str, dict[str, Any]]]] = defaultdict(list)
        self._sequence = 0

    async def publish(self, stream_key: str, body: dict[str, Any]) -> str:
        self._sequence += 1
        entry_id = f"{self._sequence}-0"
        # Same encoding as the Redis broker
        self.streams[stream_key].append((entry_id, json.loads(json.dumps(body, default=str))))
        return entry_id

    def bodies(self, stream_key: str) -> list[dict[str, Any]]:
        return [body for _, body in self.streams[stream_key]]

    def drain(self, stream_key: str) -> list[QueueMessage]:
        """Take every pending message of a stream as queue messages."""
        messages = [
            QueueMessage(entry_id, body, stream_key) for entry_id, body in self.streams[stream_key]
        ]
        self.streams[stream_key] = []
        return messages


class InMemoryAppointmentRepository(AppointmentRepository):
    """Appointment store with the same contract as the Redis store."""

    def __init__(self):
        self.items: dict[str, Appointment] = {}

    def _newest_first(self) -> list[Appointment]:
        return sorted(self.items.values(), key=lambda a: sort_score(a.created_at), reverse=True)

    async def put_if_absent(self, appointment: Appointment) -> None:
        if appointment.id in self.items:
            raise ConflictError("Appointment already exists")
        self.items[appointment.id] = appointment.model_copy()

    async def find_by_id(self, appointment_id: str) -> Appointment | None:
        appointment = self.items.get(appointment_id)
        return appointment.model_copy() if appointment else None

    async def find_by_insured_id(self, insured_id: str) -> list[Appointment]:
        return [a.model_copy() for a in self._newest_first() if a.insured_id == insured_id]

    async def find_all(
        self,
        country_iso: str | None = None,
        status: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Appointment]:
        matches = [
            a
            for a in self._newest_first()
            if (not country_iso or a.country_iso == country_iso)
            and (not status or a.status == status)
        ]
        return [a.model_copy() for a in matches[offset : offset + limit + 1]]

    async def update_status(self, appointment_id: str, status: AppointmentStatus) -> None:
        status = AppointmentStatus(status)
        appointment = self.items.get(appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment not found")
        if not appointment.can_transition_to(status):
            raise ConflictError(
                f"Appointment is already in a terminal status, cannot set {status.value}"
            )
        appointment.status = status.value
        appointment.updated_at = get_current_timestamp()


@pytest.fixture
def broker() -> InMemoryBroker:
    """In-memory event transport."""
    return InMemoryBroker()


@pytest.fixture
def appointment_repository() -> InMemoryAppointmentRepository:
    """In-memory appointment store."""
    return InMemoryAppointmentRepository()


@pytest.fixture
def appointment_service(
    appointment_repository: InMemoryAppointmentRepository, broker: InMemoryBroker
) -> AppointmentService:
    """Appointment service publishing to the in-memory topic."""
    topic = build_appointment_topic(broker, settings)
    return AppointmentService(
        repository=appointment_repository,
        publisher=TopicAppointmentEventPublisher(topic),
        ttl_days=settings.appointment_ttl_days,
    )


@pytest.fixture
def make_appointment() -> Callable[..., Appointment]:
    """Factory for stored appointments."""
    counter = {"n": 0}

    def _make(**overrides: Any) -> Appointment:
        counter["n"] += 1
        data: dict[str, Any] = {
            "id": f"appt-{counter['n']}",
            "insured_id": "12345",
            "schedule_id": 7,
            "country_iso": "PE",
            "status": AppointmentStatus.PENDING,
            # Increasing creation times keep the ordering deterministic
            "created_at": f"2026-01-01T00:00:{counter['n']:02d}+00:00",
            "ttl": get_ttl(30),
        }
        data.update(overrides)
        return Appointment(**data)

    return _make


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory over a throwaway SQLite enrichment database."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'enriched.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def make_country_worker(
    appointment_repository: InMemoryAppointmentRepository,
    broker: InMemoryBroker,
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[str], CountryAppointmentWorker]:
    """Factory for country workers wired to the in-memory transport and SQLite."""

    def _make(country: str) -> CountryAppointmentWorker:
        return CountryAppointmentWorker(
            country=country,
            repository=appointment_repository,
            enriched_repository=EnrichedAppointmentRepository(country, session_factory),
            event_bus=build_event_bus(broker, settings),
            provider=SimulatedEnrichmentProvider(country, delay_seconds=0),
            event_source=settings.event_source,
        )

    return _make


@pytest_asyncio.fixture
async def client(appointment_service: AppointmentService) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""
    app.dependency_overrides[get_appointment_service] = lambda: appointment_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def sample_appointment_data() -> dict:
    """Sample appointment request for testing."""
    return {"insuredId": "12345", "scheduleId": 7, "countryISO": "PE"}
