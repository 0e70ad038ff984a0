from typing import Any, Optional


class CustomBaseError(Exception):
    """
    Base class for client-facing errors.

    @Logger.io logs these without a traceback, and the HTTP
    layer turns them into `{'detail': message, **extra}` with `status_code`.
    """

    def __init__(
        self, message: str, status_code: int, *, extra: Optional[dict[str, Any]] = None
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.extra: dict[str, Any] = extra or {}
        super().__init__(message)

    def to_response_body(self) -> dict[str, Any]:
        return {'detail': self.message, **self.extra}


class DomainError(CustomBaseError):
    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message, status_code)


class AuthenticationError(CustomBaseError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 401)


class PaymentRequiredError(CustomBaseError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 402)


class ForbiddenError(CustomBaseError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 403)


class NotFoundError(CustomBaseError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 404)


class ConflictError(CustomBaseError):
    def __init__(self, message: str, *, extra: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, 409, extra=extra)


class GoneError(CustomBaseError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 410)
