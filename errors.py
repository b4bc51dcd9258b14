"""
Error taxonomy shared by the services. main.py turns these into HTTP responses.
"""

from typing import Optional


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """Malformed or missing input, rejected before anything is written."""
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class UpstreamError(AppError):
    """A third-party gateway answered with something other than success."""
    status_code = 502


class ConfigurationError(AppError):
    status_code = 500
