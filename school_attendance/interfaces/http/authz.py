from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session

from ...application import gate
from ...application.gate import HasRole, OwnsResourceOrIsAdmin
from ...domain.entities import Role, User
from ...domain.errors import AuthError
from ...infrastructure.db import get_db
from ...infrastructure.repositories import UserRepository
from ...infrastructure.security import decode_token

# missing header is reported as 401 by get_current_user, not 403 by HTTPBearer
bearer = HTTPBearer(auto_error=False)

def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    if creds is None:
        raise AuthError("No token provided")
    try:
        user_id = decode_token(creds.credentials)
    except JWTError:
        raise AuthError("Invalid token")
    user = UserRepository(db).get(user_id)
    if user is None:
        raise AuthError("Invalid token")
    return user

def require(*checks: gate.Check):
    """Dependency that runs the gate checks against the caller and path params."""
    def dependency(request: Request, user: User = Depends(get_current_user)) -> User:
        return gate.require(user, request.path_params, gate.Authenticated(), *checks)
    return dependency

require_admin = require(HasRole(Role.ADMIN))
require_teacher = require(HasRole(Role.TEACHER))
require_student = require(HasRole(Role.STUDENT))
require_staff = require(HasRole(Role.TEACHER, Role.ADMIN))
require_self_or_admin = require(OwnsResourceOrIsAdmin("user_id"))
