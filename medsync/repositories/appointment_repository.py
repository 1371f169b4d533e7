"""Appointment store backed by Redis.

Each appointment is a hash keyed by id. Two sorted sets scored by creation
time index the records: one global (newest-first listing) and one per insured
party. Insert-if-absent and the guarded status update run as Lua scripts so
each is atomic per id. Record expiry is delegated to Redis via EXPIREAT;
index entries pointing at expired records are pruned lazily on read.
"""

from abc import ABC, abstractmethod
from typing import Any

import redis.asyncio as redis
import structlog

from medsync.core.exceptions import ConflictError, InternalError, NotFoundError
from medsync.schemas.appointments import Appointment, AppointmentStatus
from medsync.utils.dates import get_current_timestamp, sort_score

logger = structlog.get_logger(__name__)

PUT_IF_ABSENT_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 1 then
  return 0
end
redis.call('HSET', KEYS[1], unpack(ARGV, 4))
if tonumber(ARGV[3]) > 0 then
  redis.call('EXPIREAT', KEYS[1], ARGV[3])
end
redis.call('ZADD', KEYS[2], ARGV[2], ARGV[1])
redis.call('ZADD', KEYS[3], ARGV[2], ARGV[1])
return 1
"""

# -1: missing, 0: terminal status would change, 1: updated
UPDATE_STATUS_SCRIPT = """
local current = redis.call('HGET', KEYS[1], 'status')
if not current then
  return -1
end
if current ~= 'pending' and current ~= ARGV[1] then
  return 0
end
redis.call('HSET', KEYS[1], 'status', ARGV[1], 'updatedAt', ARGV[2])
return 1
"""

SCAN_CHUNK_SIZE = 100


class AppointmentRepository(ABC):
    """Key-value appointment store contract."""

    @abstractmethod
    async def put_if_absent(self, appointment: Appointment) -> None:
        """Insert a new appointment; raise ConflictError if the id exists."""

    @abstractmethod
    async def find_by_id(self, appointment_id: str) -> Appointment | None:
        """Get an appointment by id."""

    @abstractmethod
    async def find_by_insured_id(self, insured_id: str) -> list[Appointment]:
        """Get all appointments of an insured party, newest first."""

    @abstractmethod
    async def find_all(
        self,
        country_iso: str | None = None,
        status: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Appointment]:
        """
        Get matching appointments newest first.

        Returns up to ``limit + 1`` records after skipping ``offset`` matches, so the
        caller can detect further results without a second round trip.
        """

    @abstractmethod
    async def update_status(self, appointment_id: str, status: AppointmentStatus) -> None:
        """Set the status of an existing appointment; raise NotFoundError if absent."""

    async def exists(self, appointment_id: str) -> bool:
        """Check whether an appointment exists."""
        return await self.find_by_id(appointment_id) is not None


class RedisAppointmentRepository(AppointmentRepository):
    """Redis implementation of the appointment store."""

    def __init__(self, redis_client: redis.Redis, key_prefix: str = "medsync"):
        """Initialize repository with Redis client."""
        self.redis = redis_client
        self.key_prefix = key_prefix
        self._put_if_absent = redis_client.register_script(PUT_IF_ABSENT_SCRIPT)
        self._update_status = redis_client.register_script(UPDATE_STATUS_SCRIPT)

    def _item_key(self, appointment_id: str) -> str:
        return f"{self.key_prefix}:appointment:{appointment_id}"

    def _created_index_key(self) -> str:
        return f"{self.key_prefix}:appointments:by-created"

    def _insured_index_key(self, insured_id: str) -> str:
        return f"{self.key_prefix}:appointments:insured:{insured_id}"

    @staticmethod
    def _serialize(appointment: Appointment) -> list[str]:
        fields: list[str] = []
        for name, value in appointment.to_record().items():
            if value is None:
                continue
            fields.extend([name, str(value)])
        return fields

    @staticmethod
    def _deserialize(data: dict[str, Any]) -> Appointment:
        record: dict[str, Any] = dict(data)
        record["scheduleId"] = int(record["scheduleId"])
        if record.get("ttl") is not None:
            record["ttl"] = int(record["ttl"])
        return Appointment.from_record(record)

    async def put_if_absent(self, appointment: Appointment) -> None:
        """
        Insert an appointment unless its id is already present.

        Args:
            appointment: Appointment to persist

        Raises:
            ConflictError: If an appointment with the same id exists
            InternalError: If Redis fails
        """
        logger.info("saving_appointment", appointment_id=appointment.id)

        try:
            created = await self._put_if_absent(
                keys=[
                    self._item_key(appointment.id),
                    self._created_index_key(),
                    self._insured_index_key(appointment.insured_id),
                ],
                args=[
                    appointment.id,
                    sort_score(appointment.created_at),
                    appointment.ttl or 0,
                    *self._serialize(appointment),
                ],
            )
        except redis.RedisError as e:
            logger.error("save_appointment_failed", appointment_id=appointment.id, error=str(e))
            raise InternalError("Failed to save appointment to database") from e

        if not created:
            logger.warning("appointment_already_exists", appointment_id=appointment.id)
            raise ConflictError("Appointment already exists")

        logger.info("appointment_saved", appointment_id=appointment.id)

    async def find_by_id(self, appointment_id: str) -> Appointment | None:
        """Get an appointment by id, or None if absent or expired."""
        try:
            data = await self.redis.hgetall(self._item_key(appointment_id))
        except redis.RedisError as e:
            logger.error("find_appointment_failed", appointment_id=appointment_id, error=str(e))
            raise InternalError("Failed to retrieve appointment from database") from e

        if not data:
            logger.info("appointment_not_found", appointment_id=appointment_id)
            return None
        return self._deserialize(data)

    async def _load_many(self, index_key: str, ids: list[str]) -> list[Appointment | None]:
        pipe = self.redis.pipeline(transaction=False)
        for appointment_id in ids:
            pipe.hgetall(self._item_key(appointment_id))
        rows = await pipe.execute()

        stale = [appointment_id for appointment_id, row in zip(ids, rows) if not row]
        if stale:
            await self.redis.zrem(index_key, *stale)
        return [self._deserialize(row) if row else None for row in rows]

    async def find_by_insured_id(self, insured_id: str) -> list[Appointment]:
        """Get all appointments of an insured party, newest first."""
        index_key = self._insured_index_key(insured_id)
        try:
            ids = await self.redis.zrevrange(index_key, 0, -1)
            if not ids:
                logger.info("no_appointments_for_insured", insured_id=insured_id)
                return []
            appointments = [a for a in await self._load_many(index_key, ids) if a is not None]
        except redis.RedisError as e:
            logger.error("find_by_insured_failed", insured_id=insured_id, error=str(e))
            raise InternalError("Failed to retrieve appointments from database") from e

        logger.info("appointments_found", insured_id=insured_id, count=len(appointments))
        return appointments

    async def find_all(
        self,
        country_iso: str | None = None,
        status: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Appointment]:
        """
        Scan the creation index newest first applying the filters.

        The scan pages by score, so records inserted or pruned while it runs
        never shift the pages still to be read. Ids already returned at the
        boundary score are remembered to break ties.
        """
        index_key = self._created_index_key()
        wanted = limit + 1
        skipped = 0
        matches: list[Appointment] = []
        max_score: float | str = "+inf"
        seen_at_max: set[str] = set()

        try:
            while len(matches) < wanted:
                page = await self.redis.zrevrangebyscore(
                    index_key,
                    max_score,
                    "-inf",
                    start=0,
                    num=SCAN_CHUNK_SIZE + len(seen_at_max),
                    withscores=True,
                )
                page = [
                    (appointment_id, score)
                    for appointment_id, score in page
                    if not (score == max_score and appointment_id in seen_at_max)
                ]
                if not page:
                    break

                last_score = page[-1][1]
                if last_score != max_score:
                    seen_at_max = set()
                max_score = last_score
                seen_at_max.update(a_id for a_id, score in page if score == last_score)

                ids = [appointment_id for appointment_id, _ in page]
                loaded = await self._load_many(index_key, ids)

                for appointment in loaded:
                    if appointment is None:
                        continue
                    if country_iso and appointment.country_iso != country_iso:
                        continue
                    if status and appointment.status != status:
                        continue
                    if skipped < offset:
                        skipped += 1
                        continue
                    matches.append(appointment)
                    if len(matches) == wanted:
                        break
        except redis.RedisError as e:
            logger.error("find_all_appointments_failed", error=str(e))
            raise InternalError("Failed to retrieve all appointments from database") from e

        return matches

    async def update_status(self, appointment_id: str, status: AppointmentStatus) -> None:
        """
        Set the status of an existing appointment.

        Raises:
            NotFoundError: If the appointment does not exist
            ConflictError: If the appointment is already in a different terminal status
            InternalError: If Redis fails
        """
        status = AppointmentStatus(status)
        logger.info(
            "updating_appointment_status", appointment_id=appointment_id, status=status.value
        )

        try:
            result = await self._update_status(
                keys=[self._item_key(appointment_id)],
                args=[status.value, get_current_timestamp()],
            )
        except redis.RedisError as e:
            logger.error("update_status_failed", appointment_id=appointment_id, error=str(e))
            raise InternalError("Failed to update appointment status in database") from e

        if result == -1:
            raise NotFoundError("Appointment not found")
        if result == 0:
            raise ConflictError(
                f"Appointment is already in a terminal status, cannot set {status.value}"
            )

        logger.info(
            "appointment_status_updated", appointment_id=appointment_id, status=status.value
        )

    async def exists(self, appointment_id: str) -> bool:
        """Check whether an appointment exists."""
        try:
            return bool(await self.redis.exists(self._item_key(appointment_id)))
        except redis.RedisError as e:
            logger.error("exists_check_failed", appointment_id=appointment_id, error=str(e))
            raise InternalError("Failed to check appointment existence") from e
