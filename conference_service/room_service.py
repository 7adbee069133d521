import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List

from common.cache import (
    ROOMS_ALL_KEY,
    availability_key,
    bump_availability_generation,
    delete_keys,
    get_availability_generation,
    get_cached_json,
    room_key,
    set_cached_json,
)

from . import models, schemas, settings
from .booking_repository import BookingRepository
from .errors import BusinessRuleError, NotFoundError, ValidationError
from .intervals import to_utc_naive, utcnow
from .locking import room_guard
from .room_repository import RoomRepository

logger = logging.getLogger(__name__)


class RoomService:
    """
    Orchestrates the room lifecycle and availability search.

    Every check runs before the repository is asked to persist anything,
    so a rejected request never leaves partial changes behind.

    Parameters
    ----------
    rooms : RoomRepository
        Room persistence.
    bookings : BookingRepository
        Used to look for future bookings before destructive changes.
    allowed_equipment : Iterable[str]
        Equipment names a room may list.
    past_tolerance : timedelta
        How far in the past an availability search may start.
    """

    def __init__(
        self,
        rooms: RoomRepository,
        bookings: BookingRepository,
        allowed_equipment: Iterable[str] = settings.ALLOWED_EQUIPMENT,
        past_tolerance: timedelta = settings.AVAILABILITY_PAST_TOLERANCE,
    ):
        self.rooms = rooms
        self.bookings = bookings
        self.allowed_equipment = frozenset(allowed_equipment)
        self.past_tolerance = past_tolerance

    # ---------- Reads ----------

    def get_all_rooms(self) -> List[schemas.RoomRead]:
        cached = get_cached_json(ROOMS_ALL_KEY)
        if cached is not None:
            return [schemas.RoomRead.model_validate(r) for r in cached]

        rooms = [schemas.RoomRead.model_validate(r) for r in self.rooms.get_all()]
        set_cached_json(ROOMS_ALL_KEY, [r.model_dump(mode="json") for r in rooms])
        return rooms

    def get_room(self, room_id: int) -> schemas.RoomRead:
        cached = get_cached_json(room_key(room_id))
        if cached is not None:
            return schemas.RoomRead.model_validate(cached)

        room = self.rooms.get_by_id(room_id)
        if room is None:
            raise NotFoundError("Room not found")
        data = schemas.RoomRead.model_validate(room)
        set_cached_json(room_key(room_id), data.model_dump(mode="json"), ttl_seconds=300)
        return data

    def get_available_rooms(
        self, start: datetime, end: datetime
    ) -> List[schemas.RoomRead]:
        """
        List rooms with no booking overlapping ``[start, end)``.

        Raises
        ------
        ValidationError
            If start is after end, or start lies further in the past than
            the clock-skew tolerance.
        """
        start, end = to_utc_naive(start), to_utc_naive(end)
        self._validate_time_range(start, end)

        # read before querying so a change committed meanwhile retires the key
        key = availability_key(get_availability_generation(), start, end)
        cached = get_cached_json(key)
        if cached is not None:
            return [schemas.RoomRead.model_validate(r) for r in cached]

        rooms = [
            schemas.RoomRead.model_validate(r)
            for r in self.rooms.get_available(start, end)
        ]
        set_cached_json(key, [r.model_dump(mode="json") for r in rooms], ttl_seconds=30)
        return rooms

    # ---------- Mutations ----------

    def create_room(self, data: schemas.RoomCreate) -> schemas.RoomRead:
        equipment = self._validate_equipment(data.equipment)
        if self.rooms.get_by_name(data.name) is not None:
            raise ValidationError("Room with this name already exists")

        room = self.rooms.create(
            models.Room(
                name=data.name,
                capacity=data.capacity,
                equipment=",".join(equipment),
            )
        )
        self._invalidate(room.id)
        return schemas.RoomRead.model_validate(room)

    def update_room(self, room_id: int, data: schemas.RoomUpdate) -> schemas.RoomRead:
        """
        Apply a partial update to a room.

        Blank names are ignored. A capacity change is refused while the room
        has bookings starting now or later.

        Raises
        ------
        NotFoundError
            If the room does not exist.
        ValidationError
            If the name is taken, the capacity is negative or the equipment
            is not allowed.
        BusinessRuleError
            If the capacity changes while future bookings exist.
        """
        room = self.rooms.get_by_id(room_id)
        if room is None:
            raise NotFoundError(f"Room with id {room_id} not found")

        changes: Dict[str, Any] = {}

        if data.name is not None and data.name.strip():
            name = data.name.strip()
            if name != room.name:
                existing = self.rooms.get_by_name(name)
                if existing is not None and existing.id != room.id:
                    raise ValidationError("Room with this name already exists")
                changes["name"] = name

        if data.equipment is not None:
            changes["equipment"] = ",".join(self._validate_equipment(data.equipment))

        if data.capacity is not None and data.capacity != room.capacity:
            if data.capacity < 0:
                raise ValidationError("Capacity cannot be negative")
            changes["capacity"] = data.capacity
            # same guard and row lock as booking creation
            with room_guard(room_id):
                self._lock_room(room_id)
                try:
                    if self.bookings.has_future_bookings(room_id, utcnow()):
                        raise BusinessRuleError("Cannot change capacity with future bookings")
                except Exception:
                    self.rooms.db.rollback()
                    raise
                room = self.rooms.update(room_id, changes)
        elif changes:
            room = self.rooms.update(room_id, changes)
        self._invalidate(room_id)
        return schemas.RoomRead.model_validate(room)

    def delete_room(self, room_id: int) -> None:
        """
        Delete a room and its past bookings.

        Raises
        ------
        NotFoundError
            If the room does not exist.
        BusinessRuleError
            If the room has any booking starting now or later.
        """
        if self.rooms.get_by_id(room_id) is None:
            raise NotFoundError("Room not found")

        with room_guard(room_id):
            self._lock_room(room_id)
            try:
                if self.bookings.has_future_bookings(room_id, utcnow()):
                    raise BusinessRuleError("Room has future bookings")
            except Exception:
                self.rooms.db.rollback()
                raise
            if not self.rooms.delete(room_id):
                raise NotFoundError("Room not found")
        self._invalidate(room_id)

    # ---------- Validation helpers ----------

    def _validate_time_range(self, start: datetime, end: datetime) -> None:
        if start > end:
            raise ValidationError("Start date cannot be greater than end date")
        if start < utcnow() - self.past_tolerance:
            raise ValidationError("Start date cannot be in the past")

    def _validate_equipment(self, equipment: Iterable[str]) -> List[str]:
        """Return ``equipment`` without duplicates, first occurrence first."""
        unique = list(dict.fromkeys(equipment))
        invalid = [item for item in unique if item not in self.allowed_equipment]
        if invalid:
            raise ValidationError(f"Invalid equipment: {', '.join(invalid)}")
        return unique

    def _lock_room(self, room_id: int) -> None:
        """Take the room row lock that booking creation also waits on."""
        if not self.bookings.lock_room(room_id):
            self.rooms.db.rollback()
            raise NotFoundError("Room not found")

    def _invalidate(self, room_id: int) -> None:
        delete_keys(ROOMS_ALL_KEY, room_key(room_id))
        bump_availability_generation()
