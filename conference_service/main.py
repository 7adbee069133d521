import logging
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import schemas
from .auth import get_current_user_claims, require_roles
from .auth_service import AuthService
from .booking_service import BookingService
from .database import Base, engine
from .dependencies import get_auth_service, get_booking_service, get_room_service
from .errors import DomainError
from .models import UserRole
from .rate_limiter import booking_rate_limiter, ip_rate_limiter
from .room_service import RoomService
from .settings import LOG_LEVEL

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Conference Room Booking Service", version="1.0.0")
router = APIRouter(prefix="/api")

SERVICE_NAME = "conference-rooms"


def error_response(request: Request, status_code: int, detail) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "service": SERVICE_NAME,
            "path": request.url.path,
            "method": request.method,
            "status_code": status_code,
            "detail": detail,
        },
    )


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    return error_response(request, exc.status_code, exc.detail)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    response = error_response(request, exc.status_code, exc.detail)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response(
        request, status.HTTP_400_BAD_REQUEST, jsonable_encoder(exc.errors())
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(request, 500, "Internal server error")


@app.get("/")
def root():
    """
    Health-check endpoint.

    Returns
    -------
    dict
        A small JSON payload indicating that the service is running.
    """
    return {"service": SERVICE_NAME, "status": "running"}


admin_only = require_roles(UserRole.ADMIN)


# ---------- Auth ----------


@router.post(
    "/auth/register",
    response_model=schemas.TokenPair,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(ip_rate_limiter)],
)
def register(
    data: schemas.RegisterRequest,
    service: AuthService = Depends(get_auth_service),
):
    """
    Register a new user and return a token pair.

    The first registered account becomes Admin; later ones become User.
    """
    return service.register(data)


@router.post(
    "/auth/login",
    response_model=schemas.TokenPair,
    dependencies=[Depends(ip_rate_limiter)],
)
def login(
    data: schemas.LoginRequest,
    service: AuthService = Depends(get_auth_service),
):
    return service.login(data)


@router.post(
    "/auth/refresh-token",
    response_model=schemas.TokenPair,
    dependencies=[Depends(ip_rate_limiter)],
)
def refresh_token(
    data: schemas.RefreshTokenRequest,
    service: AuthService = Depends(get_auth_service),
):
    """
    Rotate a token pair.

    The access token may be expired but must be validly signed; the refresh
    token must be the latest one issued to that user.
    """
    return service.refresh(data)


# ---------- Bookings ----------


@router.post(
    "/booking",
    response_model=schemas.BookingRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(booking_rate_limiter)],
)
def create_booking(
    data: schemas.BookingCreate,
    service: BookingService = Depends(get_booking_service),
    claims: Dict = Depends(get_current_user_claims),
):
    """
    Create a new booking.

    Access
    ------
    - Any authenticated user for themselves.
    - Admin on behalf of any user.

    Raises
    ------
    HTTPException
        400 for an inverted range or an overlapping booking, 403 when
        booking for someone else, 404 for an unknown room or user.
    """
    return service.create_booking(data, claims)


@router.get("/booking", response_model=List[schemas.BookingRead])
def list_all_bookings(
    room_id: Optional[int] = Query(default=None, ge=1),
    user_id: Optional[int] = Query(default=None, ge=1),
    service: BookingService = Depends(get_booking_service),
    _: Dict = Depends(admin_only),
):
    """
    Admin: view all bookings with optional room/user filters.
    """
    return service.get_all_bookings(room_id=room_id, user_id=user_id)


@router.get("/booking/me", response_model=List[schemas.BookingRead])
def list_my_bookings(
    service: BookingService = Depends(get_booking_service),
    claims: Dict = Depends(get_current_user_claims),
):
    return service.get_bookings_for_user(claims["user_id"])


@router.get("/booking/conflict", response_model=schemas.ConflictCheck)
def check_conflict(
    room_id: int = Query(..., ge=1),
    start: datetime = Query(...),
    end: datetime = Query(...),
    service: BookingService = Depends(get_booking_service),
    _: Dict = Depends(get_current_user_claims),
):
    """
    Report whether a room already has a booking overlapping ``[start, end)``.
    """
    return schemas.ConflictCheck(
        room_id=room_id, conflict=service.exists_conflict(room_id, start, end)
    )


@router.get("/booking/{booking_id}", response_model=schemas.BookingRead)
def get_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    claims: Dict = Depends(get_current_user_claims),
):
    return service.get_booking(booking_id, claims)


@router.delete(
    "/booking/{booking_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(booking_rate_limiter)],
)
def cancel_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    claims: Dict = Depends(get_current_user_claims),
):
    """
    Cancel a booking. The booking row is deleted.

    Access
    ------
    - Owner of the booking.
    - Admin for any booking.

    Raises
    ------
    HTTPException
        404 if the booking does not exist, 403 if the caller may not
        cancel it.
    """
    service.cancel_booking(booking_id, claims)
    return


# ---------- Rooms ----------


@router.get("/room/get-all", response_model=List[schemas.RoomRead])
def list_rooms(
    service: RoomService = Depends(get_room_service),
    _: Dict = Depends(get_current_user_claims),
):
    return service.get_all_rooms()


@router.get("/room/available", response_model=List[schemas.RoomRead])
def available_rooms(
    start: datetime = Query(...),
    end: datetime = Query(...),
    service: RoomService = Depends(get_room_service),
    _: Dict = Depends(get_current_user_claims),
):
    """
    List rooms with no booking overlapping ``[start, end)``.

    A range ending exactly when a booking starts (or starting when one
    ends) does not count as overlapping.
    """
    return service.get_available_rooms(start, end)


@router.get("/room/{room_id}", response_model=schemas.RoomRead)
def get_room(
    room_id: int,
    service: RoomService = Depends(get_room_service),
    _: Dict = Depends(get_current_user_claims),
):
    return service.get_room(room_id)


@router.post(
    "/room/create",
    response_model=schemas.RoomRead,
    status_code=status.HTTP_201_CREATED,
)
def create_room(
    data: schemas.RoomCreate,
    service: RoomService = Depends(get_room_service),
    _: Dict = Depends(admin_only),
):
    """
    Admin: create a room.

    Equipment must come from the allow-list (Projector, Whiteboard,
    VideoConference); duplicates are collapsed.
    """
    return service.create_room(data)


@router.put("/room/{room_id}", response_model=schemas.RoomRead)
def update_room(
    room_id: int,
    data: schemas.RoomUpdate,
    service: RoomService = Depends(get_room_service),
    _: Dict = Depends(admin_only),
):
    """
    Admin: partially update a room.

    Changing capacity returns 409 while the room has future bookings.
    """
    return service.update_room(room_id, data)


@router.delete("/room/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_room(
    room_id: int,
    service: RoomService = Depends(get_room_service),
    _: Dict = Depends(admin_only),
):
    """
    Admin: delete a room and its past bookings.

    Returns 409 while the room has future bookings.
    """
    service.delete_room(room_id)
    return


# ---------- Admin: users ----------


@router.get("/admin/users", response_model=List[schemas.UserRead])
def list_users(
    service: AuthService = Depends(get_auth_service),
    _: Dict = Depends(admin_only),
):
    return service.list_users()


@router.get("/admin/users/{user_id}", response_model=schemas.UserRead)
def get_user(
    user_id: int,
    service: AuthService = Depends(get_auth_service),
    _: Dict = Depends(admin_only),
):
    return service.get_user(user_id)


@router.put("/admin/users/{user_id}", response_model=schemas.UserRead)
def update_user(
    user_id: int,
    data: schemas.UserUpdate,
    service: AuthService = Depends(get_auth_service),
    _: Dict = Depends(admin_only),
):
    return service.update_user(user_id, data)


@router.delete("/admin/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    service: AuthService = Depends(get_auth_service),
    _: Dict = Depends(admin_only),
):
    """
    Admin: delete a user together with their bookings.
    """
    service.delete_user(user_id)
    return


app.include_router(router)
