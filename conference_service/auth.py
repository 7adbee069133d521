import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from . import models
from .settings import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY

# --- Password hashing ---
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

security = HTTPBearer()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plaintext password against a bcrypt hash.

    Parameters
    ----------
    plain_password : str
        Raw password provided by the user.
    hashed_password : str
        Previously stored bcrypt hash.

    Returns
    -------
    bool
        True if the password matches, False otherwise.
    """
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# ---------- JWT helpers ----------

def create_access_token(user: models.User, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT access token for a user.

    The token carries the user's id (``sub`` and ``user_id``), name, email
    and role.

    Parameters
    ----------
    user : User
        Token subject.
    expires_delta : Optional[timedelta]
        Optional custom expiration interval.

    Returns
    -------
    str
        Encoded JWT string.
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {
        "sub": str(user.id),
        "user_id": user.id,
        "name": user.name,
        "email": user.email,
        "role": models.UserRole(user.role).value,
        "exp": expire,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str, verify_exp: bool = True) -> Dict[str, Any]:
    """
    Decode and verify an access token.

    Parameters
    ----------
    token : str
        Encoded JWT.
    verify_exp : bool
        Set to False to accept an expired but correctly signed token, as
        done when rotating a refresh token.

    Raises
    ------
    JWTError
        If the signature or claims are invalid.
    """
    return jwt.decode(
        token,
        SECRET_KEY,
        algorithms=[ALGORITHM],
        options={"verify_exp": verify_exp},
    )


def generate_refresh_token() -> str:
    return secrets.token_urlsafe(64)


# ---------- FastAPI dependencies ----------

async def get_current_user_claims(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Dict[str, Any]:
    """
    Decode a JWT bearer token and extract user claims.

    Returns
    -------
    Dict[str, Any]
        A dictionary containing 'user_id', 'name', 'email' and 'role'.

    Raises
    ------
    HTTPException
        If the token is invalid, expired, or misses required claims.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(credentials.credentials)
        user_id = payload.get("user_id")
        role = payload.get("role")
        if user_id is None or role is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    return {
        "user_id": int(user_id),
        "name": payload.get("name"),
        "email": payload.get("email"),
        "role": role,
    }


def require_roles(*allowed_roles: models.UserRole) -> Callable:
    """
    Build a dependency that enforces a set of allowed roles.

    Parameters
    ----------
    allowed_roles : UserRole
        One or more roles permitted to access a route.

    Returns
    -------
    Callable
        A FastAPI dependency returning the caller's claims, or raising
        HTTP 403 if the role is not allowed.
    """
    allowed = {models.UserRole(r).value for r in allowed_roles}

    async def dependency(claims: Dict[str, Any] = Depends(get_current_user_claims)) -> Dict[str, Any]:
        if claims["role"] not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions",
            )
        return claims

    return dependency
