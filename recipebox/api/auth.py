# api/auth.py
# Verifies bearer tokens issued by the identity provider and exposes the current user.

import logging
from datetime import timedelta, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

# Import local modules
from recipebox import schemas
from recipebox import models
from recipebox.core.config import settings
from recipebox.storage import DatabaseStorage, get_storage

# Bearer scheme; missing credentials are reported by get_current_user itself
bearer_scheme = HTTPBearer(auto_error=False)

# Create an API router
router = APIRouter()

# Get a logger instance
logger = logging.getLogger(__name__)

# Profile claims copied onto the stored user
PROFILE_CLAIMS = ("email", "first_name", "last_name", "profile_image_url")


# --- Utility Functions for JWT ---

def create_access_token(data: dict, expires_delta: timedelta | None = None):
    """
    Creates a new JWT access token.
    Used by tooling and tests; production tokens come from the identity provider.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def _needs_upsert(user: Optional[models.User], claims: schemas.UserUpsert) -> bool:
    if user is None:
        return True
    return any(getattr(user, field) != getattr(claims, field) for field in PROFILE_CLAIMS)


# --- Dependency for Getting Current User ---

def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    storage: DatabaseStorage = Depends(get_storage),
) -> models.User:
    """
    Decodes the JWT to identify the caller and keeps the stored profile in
    sync with the token claims. Protects every recipe endpoint.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        logger.debug("Request without bearer token")
        raise credentials_exception
    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        logger.error("Invalid Auth Token")
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id or not isinstance(user_id, str):
        logger.error("Token has no subject")
        raise credentials_exception

    claims = schemas.UserUpsert(id=user_id, **{key: payload.get(key) for key in PROFILE_CLAIMS})
    user = storage.get_user(user_id)
    if _needs_upsert(user, claims):
        user = storage.upsert_user(claims)

    # Picked up by the structured logging middleware
    request.state.user = user
    logger.debug(f"Authenticated user: {user.id}")
    return user


# --- Authentication Endpoints ---

@router.get("/user", response_model=schemas.User)
def read_current_user(current_user: models.User = Depends(get_current_user)):
    """
    Return the profile of the authenticated user.
    """
    return current_user
