from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, String

from .database import Base


class UserRole(str, PyEnum):
    """
    Roles a user can hold.

    Values
    ------
    Admin
        Manages rooms and users and can see or cancel any booking.
    User
        Books rooms for themselves.
    """
    ADMIN = "Admin"
    USER = "User"


class BookingStatus(str, PyEnum):
    """
    Enumeration of possible booking statuses.

    Values
    ------
    Confirmed
        Booking is active and holds the room for the given time range.
    Canceled
        Booking no longer holds the room. Canceled bookings are deleted,
        so this value only shows up transiently.
    """
    CONFIRMED = "Confirmed"
    CANCELED = "Canceled"


class User(Base):
    """
    SQLAlchemy model for application users.

    Attributes
    ----------
    id : int
        Primary key.
    name : str
        Display name (at most 50 characters).
    email : str
        Login identifier.
    password_hash : str
        Bcrypt-hashed password.
    role : UserRole
        Role controlling access privileges.
    refresh_token : str
        Current refresh token; rotated on every token issue.
    refresh_token_expiry_time : datetime
        UTC expiry of ``refresh_token``.
    created_at : datetime
        Timestamp of user creation.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.USER)
    refresh_token = Column(String(255), nullable=True)
    refresh_token_expiry_time = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Room(Base):
    """
    SQLAlchemy model representing a conference room.

    Bookings reference rooms by foreign key only; use the repositories to
    query them.

    Attributes
    ----------
    id : int
        Primary key.
    name : str
        Unique room name (at most 50 characters).
    capacity : int
        Number of seats, between 0 and 100.
    equipment : str
        Comma-separated list drawn from the equipment allow-list
        (e.g. 'Projector,Whiteboard').
    is_used : bool
        Usage flag.
    created_at : datetime
        Timestamp recording when the room was created.
    """
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False, index=True)
    capacity = Column(Integer, nullable=False)
    equipment = Column(String(255), nullable=False, default="")  # comma-separated list
    is_used = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Booking(Base):
    """
    SQLAlchemy model representing a room booking.

    Attributes
    ----------
    id : int
        Primary key.
    room_id : int
        Booked room; bookings are removed with their room.
    user_id : int
        Owner of the booking; bookings are removed with their user.
    start_date : datetime
        Start of the reserved interval (naive UTC).
    end_date : datetime
        End of the reserved interval (naive UTC, exclusive).
    status : BookingStatus
        Current status of the booking.
    created_at : datetime
        Timestamp when the booking was created.
    """
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(
        Integer, ForeignKey("rooms.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    status = Column(Enum(BookingStatus), nullable=False, default=BookingStatus.CONFIRMED)
    created_at = Column(DateTime, default=datetime.utcnow)
