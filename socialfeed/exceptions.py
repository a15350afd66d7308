class ServiceError(Exception):
    """Base for errors raised by the service layer and rendered by ``main``."""

    status_code = 500
    default_message = "service error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(ServiceError):
    # Same message for unknown username and wrong password.
    status_code = 401
    default_message = "invalid credentials"


class AuthorizationError(ServiceError):
    status_code = 401
    default_message = "not authenticated"


class ConflictError(ServiceError):
    status_code = 409
    default_message = "already authenticated"
