from __future__ import annotations

from typing import Any, Optional


class CourseMapError(Exception):
    status_code = 400

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(CourseMapError):
    status_code = 404


class ValidationError(CourseMapError):
    """Rejected input or a plan edit that breaks a placement rule."""

    status_code = 422
