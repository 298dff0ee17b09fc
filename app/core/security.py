# app/core/security.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from app.core.config import get_settings
from app.models.enums import UserRole
from app.policies.rbac import CurrentUser


class InvalidToken(Exception):
    """Bearer token is unreadable, expired, or does not name a known role."""


def issue_token(user: CurrentUser, expires_minutes: Optional[int] = None) -> str:
    """
    Bearer token for `user`. Identity lives in `sub`, the workflow role in
    `role` and the name shown in audit views in `name`.
    """
    settings = get_settings()
    issued = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or settings.jwt_access_token_minutes)
    claims = {
        "sub": user.id,
        "role": user.role.value,
        "name": user.display_name,
        "iat": int(issued.timestamp()),
        "exp": int((issued + lifetime).timestamp()),
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def read_token(token: str) -> CurrentUser:
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise InvalidToken("Invalid or expired token.") from e

    subject, role = claims.get("sub"), claims.get("role")
    if not subject or not role:
        raise InvalidToken("Token missing required claims.")
    try:
        parsed_role = UserRole(role)
    except ValueError:
        raise InvalidToken(f"Unknown role in token: {role!r}.")

    return CurrentUser(id=str(subject), role=parsed_role, display_name=str(claims.get("name") or "Unknown"))
