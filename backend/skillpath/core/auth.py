"""Caller identity.

Token verification lives in the platform's auth gateway. By the time a
request reaches this service the gateway has resolved the bearer token and
forwarded the caller as two headers:

- ``X-User-Id``: the authenticated user's id
- ``X-User-Role``: one of ``student``, ``teacher``, ``admin``, ``alumni``, ``company``

Everything below the route layer receives an explicit :class:`Caller`
instead of reading request state.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Annotated

from fastapi import Depends, Header

from skillpath.core.exceptions import ForbiddenError, UnauthorizedError


class Role(str, Enum):
    """Platform roles."""

    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"
    ALUMNI = "alumni"
    COMPANY = "company"


@dataclass(frozen=True)
class Caller:
    """The authenticated user a core operation runs on behalf of."""

    user_id: int
    role: Role


def get_caller(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Caller:
    """Build the caller from the gateway headers.

    Raises:
        UnauthorizedError: if either header is missing or malformed
    """
    if not x_user_id or not x_user_role:
        raise UnauthorizedError("Missing caller identity")

    try:
        user_id = int(x_user_id)
    except ValueError as e:
        raise UnauthorizedError("Invalid user id") from e

    try:
        role = Role(x_user_role.lower())
    except ValueError as e:
        raise UnauthorizedError(f"Unknown role: {x_user_role}") from e

    return Caller(user_id=user_id, role=role)


def require_role(*roles: Role) -> Callable[..., Caller]:
    """Dependency factory that only admits callers holding one of ``roles``.

    Example:
        @router.get("/submissions")
        async def list_submissions(caller: Annotated[Caller, Depends(require_role(Role.TEACHER))]):
            ...
    """

    def _dependency(caller: Annotated[Caller, Depends(get_caller)]) -> Caller:
        if caller.role not in roles:
            raise ForbiddenError("Insufficient role for this operation")
        return caller

    return _dependency


# Type aliases for FastAPI dependencies
CurrentCaller = Annotated[Caller, Depends(get_caller)]
StudentCaller = Annotated[Caller, Depends(require_role(Role.STUDENT))]
TeacherCaller = Annotated[Caller, Depends(require_role(Role.TEACHER))]
AdminCaller = Annotated[Caller, Depends(require_role(Role.ADMIN))]
