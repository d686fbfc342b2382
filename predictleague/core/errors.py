"""Error taxonomy shared by services and routers.

Services raise these; ``predictleague.main`` turns them into the
``{"success": false, "message": ..., "detail": ...}`` envelope.
"""
from __future__ import annotations

from fastapi import status


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "server_error"
    default_message = "Server error"

    def __init__(self, code: str | None = None, message: str | None = None) -> None:
        self.code = code or self.default_code
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "validation_error"
    default_message = "Invalid or missing input"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"
    default_message = "Resource not found"


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "forbidden"
    default_message = "Access denied"


class StateConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "state_conflict"
    default_message = "Operation not allowed in the current state"


class StoreError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "store_error"
    default_message = "Server error"
