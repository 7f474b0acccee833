"""Authorization gate.

Each check is independent; ``require`` runs them in order and the first
failure ends the request.
"""
from typing import Mapping

from ..domain.entities import Class, Role, User
from ..domain.errors import AuthError, AuthorizationError


class Check:
    def check(self, user: User | None, params: Mapping) -> None: ...


class Authenticated(Check):
    def check(self, user, params):
        if user is None:
            raise AuthError("Authentication required")


class HasRole(Check):
    def __init__(self, *roles: Role):
        self.roles = frozenset(roles)

    def check(self, user, params):
        Authenticated().check(user, params)
        if user.role not in self.roles:
            raise AuthorizationError("Insufficient permissions")


class OwnsResourceOrIsAdmin(Check):
    """Passes for admins, or when ``params[field]`` is the caller's own user id."""

    def __init__(self, field: str = "user_id"):
        self.field = field

    def check(self, user, params):
        Authenticated().check(user, params)
        if user.role == Role.ADMIN:
            return
        if str(params.get(self.field)) == str(user.id):
            return
        raise AuthorizationError("You can only access your own resources")


def require(user: User | None, params: Mapping, *checks: Check) -> User:
    for c in checks:
        c.check(user, params)
    return user


def ensure_class_owner_or_admin(klass: Class, user: User, message: str) -> None:
    if user.role == Role.ADMIN:
        return
    teacher = user.teacher
    if teacher is None or teacher.id != klass.teacher_id:
        raise AuthorizationError(message)
