"""Application error taxonomy, rendered to JSON by the handlers in main.py"""

from typing import Any


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None, **context: Any):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"detail": self.message, **self.context}


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class UnauthorizedError(AppError):
    status_code = 401
    default_message = "Unauthorized"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict"


class UnprocessableEntityError(AppError):
    status_code = 422
    default_message = "Unprocessable entity"
