from dataclasses import dataclass
from enum import Enum

from fastapi import Depends, HTTPException, Request, status


ANONYMOUS_USER_ID = 'anonymous'


class Role(str, Enum):
    ADMIN = "ADMIN"
    DRIVER = "DRIVER"
    USER = "USER"
    BUSINESS = "BUSINESS"


@dataclass
class Principal:
    id: int
    username: str
    role: Role
    display_name: str | None
    email: str | None
    active: bool


def get_current_principal(request: Request) -> Principal:
    principal = getattr(request.state, "principal", None)
    if not principal:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    if not principal.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    return principal


def current_user_id(principal: Principal | None) -> str:
    if principal is None:
        return ANONYMOUS_USER_ID
    return str(principal.id)


def home_path_for(role: Role) -> str:
    if role == Role.ADMIN:
        return "/admin/dashboard"
    if role == Role.DRIVER:
        return "/driver/dashboard"
    return "/me"


def require_role(*allowed: Role):
    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
        return principal

    return _dep
