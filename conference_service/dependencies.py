from fastapi import Depends
from sqlalchemy.orm import Session

from . import settings
from .auth_service import AuthService
from .booking_repository import BookingRepository
from .booking_service import BookingService
from .database import get_db
from .room_repository import RoomRepository
from .room_service import RoomService
from .user_repository import UserRepository


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    return BookingService(BookingRepository(db), UserRepository(db))


def get_room_service(db: Session = Depends(get_db)) -> RoomService:
    return RoomService(
        RoomRepository(db),
        BookingRepository(db),
        allowed_equipment=settings.ALLOWED_EQUIPMENT,
        past_tolerance=settings.AVAILABILITY_PAST_TOLERANCE,
    )


def get_auth_service(db: Session = Depends(get_db)) -> AuthService:
    return AuthService(UserRepository(db))
