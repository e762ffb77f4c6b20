"""Identity resolution for tool and usage routes.

A valid bearer token resolves to the signed-in user. Without one, the
anonymous identity cookie is used, and a new anonymous key is issued when
the cookie is missing or malformed. A bearer token that fails verification
is rejected rather than silently treated as anonymous.
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from genealogy_buddy.api.dependencies.database import get_db
from genealogy_buddy.core.config import get_settings
from genealogy_buddy.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    InvalidTokenError,
    StorageError,
)
from genealogy_buddy.core.logging import bind_contextvars, get_logger
from genealogy_buddy.core.security import decode_token, verify_token_type
from genealogy_buddy.entitlements.identity import Identity, is_valid_anon_key, new_anon_key
from genealogy_buddy.models.user import User

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def _load_user(db: AsyncSession, token: str) -> User:
    payload = decode_token(token)
    if payload is None or not verify_token_type(payload, "access"):
        raise InvalidTokenError()

    subject = payload.get("sub")
    try:
        user_id = UUID(str(subject))
    except ValueError:
        raise InvalidTokenError() from None

    try:
        result = await db.execute(select(User).where(User.id == user_id))
    except SQLAlchemyError as exc:
        logger.error("identity_lookup_failed", error=str(exc))
        raise StorageError() from exc

    user = result.scalar_one_or_none()
    if user is None:
        raise InvalidTokenError()
    if not user.is_active:
        raise AuthorizationError("User account is disabled", user_message="Your account is disabled.")
    return user


async def get_identity(
    request: Request,
    response: Response,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Identity:
    """Resolve who the request is metered against."""
    if credentials is not None:
        user = await _load_user(db, credentials.credentials)
        identity = Identity.for_user(user.id, is_admin=user.is_admin)
        bind_contextvars(identity_id=identity.identity_id, authenticated=True)
        return identity

    settings = get_settings()
    anon_key = request.cookies.get(settings.anon_cookie_name)
    if not is_valid_anon_key(anon_key):
        anon_key = new_anon_key()
        response.set_cookie(
            key=settings.anon_cookie_name,
            value=anon_key,
            max_age=settings.anon_cookie_max_age_seconds,
            httponly=True,
            samesite="lax",
            secure=settings.is_production,
        )
        logger.debug("anonymous_identity_issued")

    identity = Identity.anonymous(anon_key)
    bind_contextvars(identity_id=identity.identity_id, authenticated=False)
    return identity


async def require_user(
    identity: Annotated[Identity, Depends(get_identity)],
) -> Identity:
    """Identity of a signed-in user, 401 otherwise."""
    if not identity.is_authenticated:
        raise AuthenticationError()
    return identity


CurrentIdentity = Annotated[Identity, Depends(get_identity)]
SignedInIdentity = Annotated[Identity, Depends(require_user)]
