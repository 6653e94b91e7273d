# storefront_api/utils.py

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlmodel import Session

from storefront_api import settings
from storefront_api.db import get_session
from storefront_api.models import Role, User


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# JWT Configuration
SECRET_KEY = str(settings.SECRET_KEY)
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=settings.TOKEN_URL)


def create_access_token(data: dict, expires_delta: timedelta|None = None) -> str:
    """
    Create a JWT access token with optional expiration.

    Args:
        data (dict): The data payload to include in the token. ``sub`` must hold the user id.
        expires_delta (timedelta, optional): The time delta after which the token expires.

    Returns:
        str: The encoded JWT token as a string.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta if expires_delta else timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def parse_id(raw: str|None) -> uuid.UUID|None:
    """Return the UUID for ``raw``, or None when it is not a well-formed id."""
    if raw is None:
        return None
    try:
        return uuid.UUID(str(raw).strip())
    except ValueError:
        return None


def require_id(raw: str) -> uuid.UUID:
    """Like parse_id, but a malformed id is a 400."""
    parsed = parse_id(raw)
    if parsed is None:
        raise HTTPException(status_code=400, detail=f"Invalid ID format: {raw}")
    return parsed


# Dependency to get current user
async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    session: Annotated[Session, Depends(get_session)],
) -> User:
    """
    Retrieve the user behind the bearer token.

    Raises:
        HTTPException: 401 if the token is invalid, expired, or names an unknown user.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials.",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id = parse_id(payload.get("sub"))
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = session.get(User, user_id)
    if user is None:
        raise credentials_exception
    logger.debug(f"Decoded token for user ID: {user_id}, Role: {user.role}")
    return user


# Dependency to get current admin user
async def get_current_admin_user(
    current_user: Annotated[User, Depends(get_current_user)]
) -> User:
    """
    Ensure that the current user is a store admin.

    Raises:
        HTTPException: 403 if the user does not own a store.
    """
    if current_user.role != Role.ADMIN:
        raise HTTPException(status_code=403, detail="Insufficient permissions.")
    return current_user
