import logging
import secrets
from datetime import timedelta
from typing import List

from jose import JWTError

from common.cache import bump_availability_generation

from . import models, schemas
from .auth import (
    create_access_token,
    decode_access_token,
    generate_refresh_token,
    get_password_hash,
    verify_password,
)
from .errors import AuthenticationError, NotFoundError, ValidationError
from .intervals import utcnow
from .settings import REFRESH_TOKEN_EXPIRE_DAYS
from .user_repository import UserRepository

logger = logging.getLogger(__name__)


class AuthService:
    """
    Registration, login and token rotation.

    Every successful call issues a fresh access token and a fresh refresh
    token; the refresh token and its expiry are stored on the user, so the
    previous one stops working.
    """

    def __init__(self, users: UserRepository):
        self.users = users

    def register(self, data: schemas.RegisterRequest) -> schemas.TokenPair:
        """
        Register a new user and log them in.

        The first account ever created becomes Admin; all later public
        registrations become User.

        Raises
        ------
        ValidationError
            If the email is already registered.
        """
        if self.users.get_by_email(data.email) is not None:
            logger.warning("Registration attempt with existing email: %s", data.email)
            raise ValidationError("Email already exists")

        role = models.UserRole.ADMIN if self.users.count() == 0 else models.UserRole.USER
        user = self.users.create(
            models.User(
                name=data.name,
                email=data.email,
                password_hash=get_password_hash(data.password),
                role=role,
            )
        )
        logger.info("Registration successful: %s (%s)", user.email, role.value)
        return self._issue_tokens(user)

    def login(self, data: schemas.LoginRequest) -> schemas.TokenPair:
        user = self.users.get_by_email(data.email)
        if user is None or not verify_password(data.password, user.password_hash):
            logger.warning("Failed login for %s", data.email)
            raise AuthenticationError("Invalid credentials")

        logger.info("Successful login for %s", data.email)
        return self._issue_tokens(user)

    def refresh(self, data: schemas.RefreshTokenRequest) -> schemas.TokenPair:
        """
        Exchange an (expired) access token and its refresh token for a new
        pair.

        Raises
        ------
        AuthenticationError
            If the access token is not validly signed, or the refresh token
            does not match the stored one or has expired.
        """
        try:
            payload = decode_access_token(data.access_token, verify_exp=False)
            user_id = int(payload["user_id"])
        except (JWTError, KeyError, TypeError, ValueError):
            logger.warning("Refresh attempt with an invalid access token")
            raise AuthenticationError("Invalid access token")

        user = self.users.get_by_id(user_id)
        if (
            user is None
            or user.refresh_token is None
            or not secrets.compare_digest(
                user.refresh_token.encode(), data.refresh_token.encode()
            )
            or user.refresh_token_expiry_time is None
            or user.refresh_token_expiry_time < utcnow()
        ):
            logger.warning("Refresh attempt with invalid refresh token for user %s", user_id)
            raise AuthenticationError("Invalid refresh token")

        return self._issue_tokens(user)

    def _issue_tokens(self, user: models.User) -> schemas.TokenPair:
        refresh_token = generate_refresh_token()
        user = self.users.update(
            user.id,
            {
                "refresh_token": refresh_token,
                "refresh_token_expiry_time": utcnow()
                + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
            },
        )
        return schemas.TokenPair(
            access_token=create_access_token(user),
            refresh_token=refresh_token,
        )

    # ---------- Admin user management ----------

    def list_users(self) -> List[schemas.UserRead]:
        return [schemas.UserRead.model_validate(u) for u in self.users.get_all()]

    def get_user(self, user_id: int) -> schemas.UserRead:
        user = self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return schemas.UserRead.model_validate(user)

    def update_user(self, user_id: int, data: schemas.UserUpdate) -> schemas.UserRead:
        changes = data.model_dump(exclude_none=True)
        if "email" in changes:
            existing = self.users.get_by_email(changes["email"])
            if existing is not None and existing.id != user_id:
                raise ValidationError("Email already exists")
        return schemas.UserRead.model_validate(self.users.update(user_id, changes))

    def delete_user(self, user_id: int) -> None:
        if not self.users.delete(user_id):
            raise NotFoundError("User not found")
        # their bookings went with them
        bump_availability_generation()
