from fastapi import Depends
from opentelemetry import trace

from src.platform.exception.exceptions import ForbiddenError
from src.service.reservation.domain.enum import UserRole
from src.service.reservation.driving_adapter.http_controller.auth.current_user import (
    get_current_user,
)
from src.service.reservation.driving_adapter.http_controller.auth.jwt_auth import (
    AuthenticatedUser,
)


class RoleAuthStrategy:
    @staticmethod
    def can_manage_showtimes(user: AuthenticatedUser) -> bool:
        return user.role == UserRole.ADMIN


async def require_admin(
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> AuthenticatedUser:
    tracer = trace.get_tracer(__name__)
    with tracer.start_as_current_span(
        'auth.require_admin',
        attributes={'user.id': current_user.id, 'user.role': current_user.role.value},
    ):
        if not RoleAuthStrategy.can_manage_showtimes(current_user):
            raise ForbiddenError('Only admins can perform this action')
        return current_user
