from typing import Any


class LMSError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class Unauthenticated(LMSError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(LMSError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(LMSError):
    status_code = 404
    default_message = "Not found"


class ValidationError(LMSError):
    status_code = 400
    default_message = "Validation error"


class Conflict(LMSError):
    status_code = 409
    default_message = "Conflict"


class Internal(LMSError):
    pass
