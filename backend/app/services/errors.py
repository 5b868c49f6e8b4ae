from __future__ import annotations


class ServiceError(Exception):
    error_code = "service_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    """Missing assessment, attempt or user. Foreign ownership is reported the same way."""

    error_code = "not_found"


class ValidationError(ServiceError):
    error_code = "validation_error"

    def __init__(self, message: str, *, question_ids: list[str] | None = None):
        super().__init__(message)
        self.question_ids = list(question_ids or [])


class ConflictError(ServiceError):
    error_code = "conflict"
