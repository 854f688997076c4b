from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader
from jose import jwt, JWTError
from sqlalchemy.orm import Session

from . import crud, models
from .config import settings
from .database import get_db

api_key_header = APIKeyHeader(name="Authorization")


def decode_subject(token: str) -> str:
    """
    Returns the `sub` claim of a 'Bearer <jwt>' header value.
    Raises ValueError for anything that is not a valid bearer token.
    """
    scheme, jwt_token = token.split()
    if scheme.lower() != "bearer":
        raise ValueError("Unsupported authorization scheme")
    payload = jwt.decode(jwt_token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    subject = payload.get("sub")
    if not subject:
        raise ValueError("Token has no subject")
    return str(subject)


async def get_key_by_user_id_or_ip(request: Request) -> str:
    """
    Rate limit key: the user ID from the JWT, or the client's IP when the
    token is missing or invalid.
    """
    try:
        return decode_subject(request.headers.get("Authorization"))
    except (JWTError, ValueError, AttributeError, TypeError):
        return request.client.host


async def get_current_user_id(token: Annotated[str, Depends(api_key_header)]) -> str:
    """
    Decodes the JWT from the 'Authorization: Bearer ...' header to get the user ID.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        return decode_subject(token)
    except (JWTError, ValueError, AttributeError):
        raise credentials_exception


def is_admin(db: Session, user_id: str) -> bool:
    profile = crud.get_user_profile(db, user_id)
    return profile is not None and profile.role in models.ADMIN_ROLES


async def get_current_admin_id(
        user_id: Annotated[str, Depends(get_current_user_id)],
        db: Session = Depends(get_db)
) -> str:
    if not is_admin(db, user_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator privileges required"
        )
    return user_id
