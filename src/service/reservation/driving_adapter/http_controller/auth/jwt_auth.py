"""
Identity from an upstream-issued JWT

Accounts live in the user service; this service only needs the `user_id`
and `role` claims of a token signed with the shared SECRET_KEY. Tokens
without a role claim belong to customers.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import attrs
from fastapi import HTTPException, status
import jwt

from src.platform.config.core_setting import settings
from src.service.reservation.domain.enum import UserRole


@attrs.define(frozen=True)
class AuthenticatedUser:
    id: int
    role: UserRole = UserRole.CUSTOMER


class JwtAuth:
    def __init__(self) -> None:
        self.secret = settings.SECRET_KEY.get_secret_value()
        self.algorithm = settings.ALGORITHM
        self.token_expire_minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES

    def create_jwt_token(
        self,
        *,
        user_id: int,
        role: UserRole = UserRole.CUSTOMER,
        email: Optional[str] = None,
    ) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            'sub': str(user_id),
            'exp': now + timedelta(minutes=self.token_expire_minutes),
            'iat': now,
            'user_id': user_id,
            'role': role.value,
        }
        if email:
            payload['email'] = email

        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode_jwt_token(self, token: str) -> Dict:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
            return payload
        except jwt.PyJWTError:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid token')

    def get_user_from_jwt(self, token: Optional[str]) -> AuthenticatedUser:
        if not token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail='Not authenticated'
            )

        payload = self.decode_jwt_token(token)
        user_id = payload.get('user_id')
        if not isinstance(user_id, int) or isinstance(user_id, bool) or user_id <= 0:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid token')

        try:
            role = UserRole(payload.get('role', UserRole.CUSTOMER))
        except ValueError:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid token')

        return AuthenticatedUser(id=user_id, role=role)

    def get_user_id_from_jwt(self, token: Optional[str]) -> int:
        return self.get_user_from_jwt(token).id
