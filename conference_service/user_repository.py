import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class UserRepository:
    """Persistence boundary for users."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_email(self, email: str) -> Optional[models.User]:
        try:
            return self.db.query(models.User).filter(models.User.email == email).first()
        except SQLAlchemyError:
            logger.exception("Error searching user by email %s", email)
            raise

    def get_by_id(self, user_id: int) -> Optional[models.User]:
        try:
            return self.db.query(models.User).filter(models.User.id == user_id).first()
        except SQLAlchemyError:
            logger.exception("Error searching user %s", user_id)
            raise

    def get_all(self) -> List[models.User]:
        try:
            return self.db.query(models.User).order_by(models.User.id).all()
        except SQLAlchemyError:
            logger.exception("Error listing users")
            raise

    def count(self) -> int:
        try:
            return self.db.query(models.User).count()
        except SQLAlchemyError:
            logger.exception("Error counting users")
            raise

    def create(self, user: models.User) -> models.User:
        try:
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
            return user
        except IntegrityError:
            self.db.rollback()
            logger.warning("Duplicate email %s", user.email)
            raise ValidationError("Email already exists")
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Error adding user %s", user.email)
            raise

    def update(self, user_id: int, changes: Dict[str, Any]) -> models.User:
        """
        Overwrite the given fields of an existing user and commit.

        Raises
        ------
        NotFoundError
            If no user has this id.
        ValidationError
            If the change collides with a unique column.
        """
        try:
            user = self.db.get(models.User, user_id)
            if user is None:
                raise NotFoundError(f"User with id {user_id} not found")

            for field, value in changes.items():
                setattr(user, field, value)

            self.db.commit()
            self.db.refresh(user)
            return user
        except IntegrityError:
            self.db.rollback()
            logger.warning("Duplicate email while updating user %s", user_id)
            raise ValidationError("Email already exists")
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Error updating user %s", user_id)
            raise

    def delete(self, user_id: int) -> bool:
        """Delete a user and their bookings in one transaction."""
        try:
            user = self.db.get(models.User, user_id)
            if user is None:
                return False

            self.db.query(models.Booking).filter(
                models.Booking.user_id == user_id
            ).delete(synchronize_session=False)
            self.db.delete(user)
            self.db.commit()
            logger.info("User %s deleted", user_id)
            return True
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Error deleting user %s", user_id)
            raise
