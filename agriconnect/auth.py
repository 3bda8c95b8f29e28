"""Principals and bearer tokens.

A principal is created on first OTP login (see ``otp``); its id is the ``sub`` of an HS256 JWT
and is the identity every access policy compares against.
"""
import datetime as dt
import uuid
from typing import Tuple

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .access import RequestContext
from .config import settings
from .database import get_db
from .models import User


bearer_scheme = HTTPBearer(auto_error=False)

JWT_ALGORITHM = "HS256"


def create_access_token(user_id: str, phone: str) -> str:
    issued = dt.datetime.now(dt.timezone.utc)
    claims = {
        "sub": user_id,
        "phone": phone,
        "iat": int(issued.timestamp()),
        "exp": int((issued + settings.jwt_expires_delta).timestamp()),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=JWT_ALGORITHM)


def ensure_user(db: Session, phone: str) -> Tuple[User, bool]:
    """Return the principal for ``phone``, creating it on first login."""
    user = db.query(User).filter(User.phone == phone).one_or_none()
    if user is not None:
        return user, False
    user = User(phone=phone)
    db.add(user)
    db.flush()
    return user, True


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _principal_id(token: str) -> uuid.UUID:
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token expired")
    except jwt.InvalidTokenError:
        raise _unauthorized("Invalid token")
    try:
        return uuid.UUID(str(claims.get("sub")))
    except ValueError:
        raise _unauthorized("Invalid token")


def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if creds is None:
        raise _unauthorized("Missing token")
    user = db.get(User, _principal_id(creds.credentials))
    if user is None:
        raise _unauthorized("Unknown user")
    return user


def get_context(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> RequestContext:
    return RequestContext(user.id, db)
