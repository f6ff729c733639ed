from __future__ import annotations

import logging
from typing import AsyncGenerator
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from regalerts.apps.api.errors import backend_error
from regalerts.core.config import Settings
from regalerts.core.errors import SessionVerificationError
from regalerts.domain.models import Profile
from regalerts.persistence.repos import profiles as profiles_repo
from regalerts.persistence.rpc import RpcClient
from regalerts.services.auth.sessions import SessionVerifier
from regalerts.services.search_cache import SearchCache


logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    # One AsyncSession per request; context manager ensures close on success/error.
    async with request.app.state.database.session() as session:
        yield session


def get_session_verifier(request: Request) -> SessionVerifier:
    return request.app.state.session_verifier


def get_rpc_client(db: AsyncSession = Depends(get_db)) -> RpcClient:
    return RpcClient(db)


def get_search_cache(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> SearchCache:
    return SearchCache.from_settings(db, settings)


class CurrentUser(BaseModel):
    # Identity resolved from the caller's session plus their profile row.
    id: str
    email: str | None
    is_admin: bool


class AdminProfile(BaseModel):
    # Only produced for callers whose profile carries admin privilege.
    id: str
    email: str | None
    is_admin: bool = True


def _auth_error() -> HTTPException:
    # One generic message for every auth failure; reasons go to the log only.
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "AUTH_UNAUTHORIZED", "message": "Unauthorized"},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _forbidden_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={"code": "AUTH_FORBIDDEN", "message": "Admin access required"},
    )


def _parse_bearer_token(header_value: str | None) -> str | None:
    if not header_value:
        return None
    parts = header_value.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def has_admin_privilege(profile: Profile, admin_roles: set[str]) -> bool:
    if profile.is_admin:
        return True
    return bool(profile.role) and profile.role.lower() in admin_roles


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    verifier: SessionVerifier = Depends(get_session_verifier),
    settings: Settings = Depends(get_app_settings),
) -> CurrentUser:
    token = _parse_bearer_token(request.headers.get("Authorization"))
    if token is None:
        logger.info("auth_rejected reason=missing_token path=%s", request.url.path)
        raise _auth_error()
    try:
        identity = await verifier.verify(token)
    except SessionVerificationError as exc:
        logger.info("auth_rejected reason=%s path=%s", type(exc).__name__, request.url.path)
        raise _auth_error() from exc

    try:
        UUID(identity.user_id)
    except ValueError as exc:
        # Profile ids are UUIDs; any other subject cannot name a profile.
        logger.info("auth_rejected reason=invalid_subject path=%s", request.url.path)
        raise _auth_error() from exc

    try:
        profile = await profiles_repo.get_profile(db, identity.user_id)
    except SQLAlchemyError as exc:
        logger.error("auth_profile_lookup_failed user_id=%s", identity.user_id, exc_info=exc)
        raise backend_error() from exc
    if profile is None:
        logger.info("auth_rejected reason=missing_profile user_id=%s", identity.user_id)
        raise _auth_error()

    return CurrentUser(
        id=str(profile.id),
        email=profile.email or identity.email,
        is_admin=has_admin_privilege(profile, settings.admin_role_set()),
    )


async def require_admin(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
) -> AdminProfile:
    if not user.is_admin:
        logger.warning("admin_access_denied user_id=%s path=%s", user.id, request.url.path)
        raise _forbidden_error()
    return AdminProfile(id=user.id, email=user.email)
