import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .intervals import overlap_clause

logger = logging.getLogger(__name__)


class CancelOutcome(str, Enum):
    """Result of :meth:`BookingRepository.cancel`."""
    DELETED = "deleted"
    NOT_FOUND = "not_found"


class BookingRepository:
    """
    Persistence boundary for bookings.

    Writes commit the session they are given and roll it back on failure.
    Unexpected database errors are logged with the ids involved and
    re-raised for the service layer to map.

    Parameters
    ----------
    db : Session
        Request-scoped SQLAlchemy session.
    """

    def __init__(self, db: Session):
        self.db = db

    def exists_conflict(
        self,
        room_id: int,
        start: datetime,
        end: datetime,
        ignore_booking_id: Optional[int] = None,
    ) -> bool:
        """
        Check if there is any overlapping booking on the same room.

        Canceled bookings never block the room.

        Parameters
        ----------
        room_id : int
            Room identifier.
        start : datetime
            Proposed start (naive UTC).
        end : datetime
            Proposed end (naive UTC).
        ignore_booking_id : Optional[int]
            If provided, ignore this booking.

        Returns
        -------
        bool
            True if at least one booking overlaps ``[start, end)``.
        """
        try:
            q = (
                self.db.query(models.Booking)
                .filter(models.Booking.room_id == room_id)
                .filter(models.Booking.status != models.BookingStatus.CANCELED)
                .filter(
                    overlap_clause(
                        models.Booking.start_date, models.Booking.end_date, start, end
                    )
                )
            )
            if ignore_booking_id is not None:
                q = q.filter(models.Booking.id != ignore_booking_id)

            return self.db.query(q.exists()).scalar()
        except SQLAlchemyError:
            logger.exception(
                "Error checking conflicts for room %s between %s and %s",
                room_id,
                start,
                end,
            )
            raise

    def lock_room(self, room_id: int) -> bool:
        """
        Take a row lock on a room for the rest of the current transaction.

        Concurrent writers locking the same room wait until this session
        commits or rolls back. SQLite ignores ``FOR UPDATE``.

        Returns
        -------
        bool
            False if the room does not exist.
        """
        try:
            row = (
                self.db.query(models.Room.id)
                .filter(models.Room.id == room_id)
                .with_for_update()
                .first()
            )
            return row is not None
        except SQLAlchemyError:
            logger.exception("Error locking room %s", room_id)
            raise

    def create(self, booking: models.Booking) -> models.Booking:
        """
        Persist a new booking.

        No conflict check happens here; callers must hold the room lock and
        call :meth:`exists_conflict` in the same transaction.
        """
        try:
            self.db.add(booking)
            self.db.commit()
            self.db.refresh(booking)
            return booking
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                "Error creating booking for room %s by user %s",
                booking.room_id,
                booking.user_id,
            )
            raise

    def cancel(self, booking_id: int) -> CancelOutcome:
        """
        Delete a booking.

        Returns
        -------
        CancelOutcome
            ``DELETED`` when a row was removed, ``NOT_FOUND`` when no booking
            has this id.
        """
        try:
            booking = self.db.get(models.Booking, booking_id)
            if booking is None:
                logger.warning("Booking %s was not found", booking_id)
                return CancelOutcome.NOT_FOUND

            self.db.delete(booking)
            self.db.commit()
            logger.info("Booking %s was deleted", booking_id)
            return CancelOutcome.DELETED
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Error canceling booking %s", booking_id)
            raise

    def get_by_id(self, booking_id: int) -> Optional[models.Booking]:
        try:
            return (
                self.db.query(models.Booking)
                .filter(models.Booking.id == booking_id)
                .first()
            )
        except SQLAlchemyError:
            logger.exception("Error getting booking %s", booking_id)
            raise

    def get_all_for_user(self, user_id: int) -> List[models.Booking]:
        return self.get_all(user_id=user_id)

    def get_all(
        self, room_id: Optional[int] = None, user_id: Optional[int] = None
    ) -> List[models.Booking]:
        """List bookings, optionally filtered by room and/or user, by start date."""
        try:
            q = self.db.query(models.Booking)
            if room_id is not None:
                q = q.filter(models.Booking.room_id == room_id)
            if user_id is not None:
                q = q.filter(models.Booking.user_id == user_id)
            return q.order_by(models.Booking.start_date, models.Booking.id).all()
        except SQLAlchemyError:
            logger.exception(
                "Error listing bookings (room=%s, user=%s)", room_id, user_id
            )
            raise

    def has_future_bookings(self, room_id: int, reference_time: datetime) -> bool:
        """
        Return True if any booking on the room starts at or after
        ``reference_time``.
        """
        try:
            q = (
                self.db.query(models.Booking)
                .filter(models.Booking.room_id == room_id)
                .filter(models.Booking.start_date >= reference_time)
            )
            return self.db.query(q.exists()).scalar()
        except SQLAlchemyError:
            logger.exception("Error checking future bookings for room %s", room_id)
            raise
