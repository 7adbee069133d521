import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from common.cache import bump_availability_generation

from . import models, schemas
from .booking_repository import BookingRepository, CancelOutcome
from .errors import (
    BookingConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .intervals import to_utc_naive
from .locking import room_guard
from .user_repository import UserRepository

logger = logging.getLogger(__name__)


def is_admin(caller: Dict[str, Any]) -> bool:
    return caller.get("role") == models.UserRole.ADMIN.value


class BookingService:
    """
    Orchestrates booking creation, cancellation and lookups.

    ``caller`` arguments are the decoded token claims of the authenticated
    user (at least ``user_id`` and ``role``).
    """

    def __init__(self, bookings: BookingRepository, users: UserRepository):
        self.bookings = bookings
        self.users = users

    def create_booking(
        self, data: schemas.BookingCreate, caller: Dict[str, Any]
    ) -> schemas.BookingRead:
        """
        Reserve a room for a time range.

        The existence checks, the conflict check and the insert run in one
        transaction while holding both the in-process room lock and the
        database row lock on the room, so two overlapping requests for the
        same room cannot both succeed.

        Raises
        ------
        ValidationError
            If ``start_date`` is not strictly before ``end_date``.
        PermissionDeniedError
            If a non-admin books on behalf of another user.
        NotFoundError
            If the room or the user does not exist.
        BookingConflictError
            If another booking overlaps the requested range.
        """
        start = to_utc_naive(data.start_date)
        end = to_utc_naive(data.end_date)
        if start >= end:
            raise ValidationError("Start date must be before end date")

        if data.user_id != caller["user_id"] and not is_admin(caller):
            raise PermissionDeniedError("Cannot create bookings for another user")

        with room_guard(data.room_id):
            try:
                if not self.bookings.lock_room(data.room_id):
                    raise NotFoundError(f"Room with id {data.room_id} not found")
                if self.users.get_by_id(data.user_id) is None:
                    raise NotFoundError(f"User with id {data.user_id} not found")
                if self.bookings.exists_conflict(data.room_id, start, end):
                    raise BookingConflictError(
                        "Room is already booked for this time range"
                    )
            except Exception:
                # release the row lock before reporting
                self.bookings.db.rollback()
                raise

            booking = self.bookings.create(
                models.Booking(
                    room_id=data.room_id,
                    user_id=data.user_id,
                    start_date=start,
                    end_date=end,
                    status=models.BookingStatus.CONFIRMED,
                )
            )

        logger.info(
            "Booking %s created for room %s by user %s (%s - %s)",
            booking.id,
            booking.room_id,
            booking.user_id,
            start,
            end,
        )
        bump_availability_generation()
        return schemas.BookingRead.model_validate(booking)

    def cancel_booking(self, booking_id: int, caller: Dict[str, Any]) -> None:
        """
        Cancel (delete) a booking owned by the caller, or any booking for
        admins.

        Raises
        ------
        NotFoundError
            If the booking does not exist, including when it disappears
            between the lookup and the delete.
        PermissionDeniedError
            If the caller neither owns the booking nor is an admin.
        """
        booking = self.bookings.get_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")

        if booking.user_id != caller["user_id"] and not is_admin(caller):
            raise PermissionDeniedError("Not allowed to cancel this booking")

        outcome = self.bookings.cancel(booking_id)
        if outcome is CancelOutcome.NOT_FOUND:
            raise NotFoundError("Booking not found")

        bump_availability_generation()

    def get_booking(
        self, booking_id: int, caller: Dict[str, Any]
    ) -> schemas.BookingRead:
        booking = self.bookings.get_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        if booking.user_id != caller["user_id"] and not is_admin(caller):
            # do not reveal other users' bookings
            raise NotFoundError("Booking not found")
        return schemas.BookingRead.model_validate(booking)

    def get_all_bookings(
        self, room_id: Optional[int] = None, user_id: Optional[int] = None
    ) -> List[schemas.BookingRead]:
        return [
            schemas.BookingRead.model_validate(b)
            for b in self.bookings.get_all(room_id=room_id, user_id=user_id)
        ]

    def get_bookings_for_user(self, user_id: int) -> List[schemas.BookingRead]:
        return [
            schemas.BookingRead.model_validate(b)
            for b in self.bookings.get_all_for_user(user_id)
        ]

    def exists_conflict(self, room_id: int, start: datetime, end: datetime) -> bool:
        start, end = to_utc_naive(start), to_utc_naive(end)
        if start >= end:
            raise ValidationError("Start date must be before end date")
        return self.bookings.exists_conflict(room_id, start, end)
