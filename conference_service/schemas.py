from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import UserRole


class ApiModel(BaseModel):
    """
    Base schema for the public API.

    Fields are exposed in camelCase (``roomId``, ``startDate``) while
    snake_case names are still accepted on input.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------- Rooms ----------

class RoomCreate(ApiModel):
    """
    Schema for creating a new room.

    Equipment names are checked against the allow-list by the room
    service, not here.
    """
    name: str = Field(..., min_length=1, max_length=50)
    capacity: int = Field(..., ge=0, le=100)
    equipment: List[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value


class RoomUpdate(ApiModel):
    """
    Schema for partial updates to a room.

    All fields are optional and only provided values will be updated.
    """
    name: Optional[str] = Field(default=None, max_length=50)
    capacity: Optional[int] = Field(default=None, ge=0, le=100)
    equipment: Optional[List[str]] = None


class RoomRead(ApiModel):
    """
    Schema returned when reading room data.
    """
    id: int
    name: str
    capacity: int
    equipment: List[str]
    is_used: bool = False

    @field_validator("equipment", mode="before")
    @classmethod
    def split_equipment(cls, value):
        # rooms store equipment as a comma-separated string
        if isinstance(value, str):
            return [item for item in value.split(",") if item]
        return value


# ---------- Bookings ----------

class BookingCreate(ApiModel):
    """
    Schema for creating a new booking.
    """
    room_id: int = Field(..., ge=1)
    user_id: int = Field(..., ge=1)
    start_date: datetime
    end_date: datetime


class BookingRead(ApiModel):
    """
    Schema returned when reading booking information.

    Internal fields (status, creation timestamp) are not exposed.
    """
    id: int
    room_id: int
    user_id: int
    start_date: datetime
    end_date: datetime


class ConflictCheck(ApiModel):
    room_id: int
    conflict: bool


# ---------- Users / auth ----------

class RegisterRequest(ApiModel):
    """
    Schema for user registration input.

    Public registration does not accept a role; it is assigned internally.
    """
    name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginRequest(ApiModel):
    email: EmailStr
    password: str


class RefreshTokenRequest(ApiModel):
    """
    Schema for rotating a token pair.

    Attributes
    ----------
    access_token : str
        Last access token issued to the client; it may be expired.
    refresh_token : str
        Refresh token issued together with it.
    """
    access_token: str
    refresh_token: str


class TokenPair(ApiModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class UserRead(ApiModel):
    """
    Schema returned when reading user information.

    Exposes safe fields only; password hash and refresh token are hidden.
    """
    id: int
    name: str
    email: EmailStr
    role: UserRole


class UserUpdate(ApiModel):
    """
    Schema used by admins to edit a user. All fields are optional.
    """
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
