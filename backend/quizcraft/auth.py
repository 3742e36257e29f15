"""Authentication FastAPI dependency.

`get_current_user` reads the token from the `Authorization` header,
verifies it and returns the corresponding `User` model instance from the
database. Clients send the raw token; the conventional `Bearer <token>`
form is accepted as well.

Failures raise `AuthenticationError` so the application's exception
handler answers with 401.
"""

import logging
from typing import Optional

from fastapi import Depends, Request, Security
from fastapi.security import APIKeyHeader
from sqlmodel import Session

from . import models
from .database import get_session
from .errors import AuthenticationError
from .services import AuthService

logger = logging.getLogger("quizcraft.auth")

authorization_header = APIKeyHeader(name="Authorization", auto_error=False)


def extract_token(header_value: Optional[str]) -> Optional[str]:
    """Return the token carried by an `Authorization` header value."""
    if not header_value:
        return None
    value = header_value.strip()
    scheme, _, rest = value.partition(" ")
    if rest and scheme.lower() == "bearer":
        value = rest.strip()
    return value or None


def get_current_user(
    request: Request,
    header_value: Optional[str] = Security(authorization_header),
    db: Session = Depends(get_session),
) -> models.User:
    """FastAPI dependency that returns the authenticated user."""
    client = request.client.host if request.client else "unknown"
    logger.debug("Authenticating request from %s", client)
    token = extract_token(header_value)
    if token is None:
        logger.debug("No token provided by %s", client)
        raise AuthenticationError("missing token")
    user = AuthService(db).resolve_token(token)
    request.state.user = user
    return user
