"""Domain errors raised by the service layer.

Each error carries the HTTP status it maps to; the API layer renders them
through a single exception handler, so services stay free of FastAPI.
"""

from fastapi import status


class SkillPathError(Exception):
    """Base class for recoverable, caller-facing errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(SkillPathError):
    """A roadmap, step, aggregate or step progress row does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(SkillPathError):
    """The request collides with current state (already started, already reviewed)."""

    status_code = status.HTTP_409_CONFLICT


class PreconditionFailedError(SkillPathError):
    """The step is not in the state the requested transition needs."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(SkillPathError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(SkillPathError):
    status_code = status.HTTP_403_FORBIDDEN


class InvalidRequestError(SkillPathError):
    """Malformed input that passed (or bypassed) schema validation."""

    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
