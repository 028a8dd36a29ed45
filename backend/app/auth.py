from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.app.models import UserRole
from backend.app.settings import Settings

security = HTTPBearer(auto_error=False)

WRITER_ROLES = frozenset({UserRole.admin, UserRole.user})


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    role: UserRole

    @property
    def can_write(self) -> bool:
        return self.role in WRITER_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _developer_context() -> AuthContext:
    return AuthContext(user_id="dev-local", role=UserRole.admin)


def _guest_context() -> AuthContext:
    return AuthContext(user_id="guest", role=UserRole.guest)


def get_auth_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthContext:
    settings = get_settings(request)
    if not settings.auth_enabled:
        return _developer_context()

    # Anonymous visitors browse the tree read-only, like the app's guest mode.
    if not credentials:
        return _guest_context()
    if credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="unsupported auth scheme",
        )

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.InvalidTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid auth token",
        ) from exc

    subject = payload.get("sub")
    raw_role = payload.get("role", UserRole.user.value)
    if not isinstance(subject, str) or not subject.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="token missing subject",
        )
    try:
        role = UserRole(str(raw_role).strip().lower())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"unknown role: {raw_role}",
        ) from exc
    return AuthContext(user_id=subject.strip(), role=role)
