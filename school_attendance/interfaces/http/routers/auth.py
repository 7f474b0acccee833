from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ....domain.entities import User
from ....domain.errors import AuthError
from ....infrastructure.db import get_db
from ....infrastructure.repositories import UserRepository
from ....infrastructure.security import PasswordHasher, create_access_token
from ..authz import get_current_user
from ..limits import limiter, LOGIN_LIMIT
from ..schemas import LoginReq, TokenResp, UserOut, user_out

router = APIRouter(prefix="/api/auth", tags=["auth"])

@router.post("/login", response_model=TokenResp)
@limiter.limit(LOGIN_LIMIT)
def login(request: Request, payload: LoginReq, db: Session = Depends(get_db)):
    found = UserRepository(db).get_credentials(payload.email)
    if not found or not PasswordHasher().verify(payload.password, found[1]):
        raise AuthError("Invalid credentials")
    user = found[0]
    return TokenResp(access_token=create_access_token(user.id, user.role.value))

@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user_out(user)
