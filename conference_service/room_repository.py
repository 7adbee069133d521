import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import exists
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .errors import NotFoundError, ValidationError
from .intervals import overlap_clause

logger = logging.getLogger(__name__)


class RoomRepository:
    """
    Persistence boundary for rooms.

    Update and delete run as a single transaction: the session is committed
    after the mutation and rolled back on any exception, so a failure leaves
    the previously committed state intact.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_all(self) -> List[models.Room]:
        try:
            return self.db.query(models.Room).order_by(models.Room.id).all()
        except SQLAlchemyError:
            logger.exception("Error getting rooms")
            raise

    def get_by_id(self, room_id: int) -> Optional[models.Room]:
        try:
            return self.db.query(models.Room).filter(models.Room.id == room_id).first()
        except SQLAlchemyError:
            logger.exception("Error getting room %s", room_id)
            raise

    def get_by_name(self, name: str) -> Optional[models.Room]:
        try:
            return self.db.query(models.Room).filter(models.Room.name == name).first()
        except SQLAlchemyError:
            logger.exception("Error getting room named %r", name)
            raise

    def get_available(self, start: datetime, end: datetime) -> List[models.Room]:
        """
        Return every room with no booking overlapping ``[start, end)``.

        Parameters
        ----------
        start : datetime
            Start of the requested interval (naive UTC).
        end : datetime
            End of the requested interval (naive UTC).

        Returns
        -------
        List[Room]
            Free rooms ordered by id.
        """
        busy = exists().where(
            models.Booking.room_id == models.Room.id,
            models.Booking.status != models.BookingStatus.CANCELED,
            overlap_clause(models.Booking.start_date, models.Booking.end_date, start, end),
        )
        try:
            return (
                self.db.query(models.Room)
                .filter(~busy)
                .order_by(models.Room.id)
                .all()
            )
        except SQLAlchemyError:
            logger.exception("Error getting rooms available between %s and %s", start, end)
            raise

    def create(self, room: models.Room) -> models.Room:
        try:
            self.db.add(room)
            self.db.commit()
            self.db.refresh(room)
            return room
        except IntegrityError:
            self.db.rollback()
            logger.warning("Duplicate room name %r", room.name)
            raise ValidationError("Room with this name already exists")
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Error adding room %r", room.name)
            raise

    def update(self, room_id: int, changes: Dict[str, Any]) -> models.Room:
        """
        Overwrite the given fields of an existing room and commit.

        Raises
        ------
        NotFoundError
            If no room has this id.
        ValidationError
            If the change collides with a unique column.
        """
        try:
            room = self.db.get(models.Room, room_id)
            if room is None:
                raise NotFoundError(f"Room with id {room_id} not found")

            for field, value in changes.items():
                setattr(room, field, value)

            self.db.commit()
            self.db.refresh(room)
            return room
        except IntegrityError:
            self.db.rollback()
            logger.warning("Duplicate room name while updating room %s", room_id)
            raise ValidationError("Room with this name already exists")
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Error updating room %s with %s", room_id, changes)
            raise

    def delete(self, room_id: int) -> bool:
        """
        Delete a room together with all of its bookings.

        Returns
        -------
        bool
            False if the room does not exist.
        """
        try:
            room = self.db.get(models.Room, room_id)
            if room is None:
                return False

            removed = (
                self.db.query(models.Booking)
                .filter(models.Booking.room_id == room_id)
                .delete(synchronize_session=False)
            )
            self.db.delete(room)
            self.db.commit()
            logger.info("Room %s deleted along with %s booking(s)", room_id, removed)
            return True
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Error deleting room %s", room_id)
            raise
