#app/core/auth_deps.py
from __future__ import annotations

from typing import Callable

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.security import InvalidToken, read_token
from app.models.enums import UserRole
from app.policies.rbac import CurrentUser, require_roles

bearer = HTTPBearer(auto_error=True)


def get_current_user(
    request: Request,
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> CurrentUser:
    """Resolves the bearer token to a CurrentUser or answers 401."""
    try:
        user = read_token(creds.credentials)
    except InvalidToken as e:
        raise HTTPException(status_code=401, detail=str(e))

    # audit records and access logs read it from here
    request.state.user = user
    return user


def require_role(*roles: UserRole) -> Callable[..., CurrentUser]:
    """
    Dependency factory: `user = Depends(require_role(UserRole.ENGINEER))`.
    ADMIN and SUPER_ADMIN always pass; `require_role()` admits only them.
    """

    def _dep(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        try:
            require_roles(user, roles)
        except PermissionError as e:
            raise HTTPException(status_code=403, detail=str(e))
        return user

    return _dep
