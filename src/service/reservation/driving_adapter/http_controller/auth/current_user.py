from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import Cookie, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.platform.config.di import Container
from src.service.reservation.driving_adapter.http_controller.auth.jwt_auth import (
    AuthenticatedUser,
    JwtAuth,
)


AUTH_COOKIE_NAME = 'fastapiusersauth'

_bearer_scheme = HTTPBearer(auto_error=False)


@inject
async def get_current_user(
    jwt_auth: JwtAuth = Depends(Provide[Container.jwt_auth]),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    token: Optional[str] = Cookie(None, alias=AUTH_COOKIE_NAME),
) -> AuthenticatedUser:
    """
    Get current user from JWT token (stateless, no DB query)

    The bearer header wins over the session cookie.
    """
    if credentials is not None:
        return jwt_auth.get_user_from_jwt(credentials.credentials)
    return jwt_auth.get_user_from_jwt(token)


async def get_current_user_id(
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> int:
    return current_user.id
