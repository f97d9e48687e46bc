from collections.abc import Callable
from enum import Enum
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer


class Role(str, Enum):
    """Department roles checked by the HTTP layer."""

    ADMIN = "admin"
    FRONT_DESK = "front_desk"
    GIS = "gis"
    VIEWER = "viewer"


class User:
    """Authenticated staff member; ``user_id`` is recorded as the acting staff id."""

    def __init__(self, user_id: str, username: str, roles: tuple[Role, ...]):
        self.user_id = user_id
        self.username = username
        self.roles = roles

    def has_role(self, role: Role) -> bool:
        return role in self.roles or Role.ADMIN in self.roles


TOKEN_USER_MAP: dict[str, tuple[str, str, tuple[Role, ...]]] = {
    "admin-token": ("admin", "admin", (Role.ADMIN, Role.VIEWER)),
    "front-desk-token": ("front-desk", "front desk", (Role.FRONT_DESK, Role.VIEWER)),
    "gis-token": ("gis", "gis", (Role.GIS, Role.VIEWER)),
    "viewer-token": ("viewer", "viewer", (Role.VIEWER,)),
}

bearer_scheme = HTTPBearer(auto_error=False)


def resolve_user_from_token(token: str | None) -> User:
    """Return the user associated with the provided bearer token."""

    if token is None:
        return User(user_id="anonymous", username="anonymous", roles=(Role.VIEWER,))

    if token not in TOKEN_USER_MAP:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")

    user_id, username, roles = TOKEN_USER_MAP[token]
    return User(user_id=user_id, username=username, roles=roles)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    request: Request,
) -> User:
    """Static-token authentication stub.

    Staff identity and departments come from the external auth provider in
    production; the token map stands in for it here.
    """

    cached = getattr(request.state, "user", None)
    if isinstance(cached, User):
        return cached

    token = credentials.credentials if credentials is not None else None
    user = resolve_user_from_token(token)
    request.state.user = user
    return user


def role_required(*roles: Role) -> Callable[[User], User]:
    """Dependency factory ensuring the current user holds one of ``roles``."""

    async def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if not any(user.has_role(role) for role in roles):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


CurrentUser = Annotated[User, Depends(get_current_user)]
