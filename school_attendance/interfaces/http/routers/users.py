from fastapi import APIRouter, Depends, status

from ....application.use_cases.registry import UserRegistry
from ..authz import require_admin, require_self_or_admin, require_staff
from ..deps import get_user_registry
from ..schemas import RoleChange, UserCreate, UserOut, UserUpdate, user_out

router = APIRouter(prefix="/api/users", tags=["users"])

PROFILE_FIELDS = {"student_code", "grade", "section", "subject"}

@router.get("", response_model=list[UserOut], dependencies=[Depends(require_admin)])
def list_users(registry: UserRegistry = Depends(get_user_registry)):
    return [user_out(u) for u in registry.users.list_all()]

@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_admin)])
def create_user(payload: UserCreate, registry: UserRegistry = Depends(get_user_registry)):
    user = registry.create(
        payload.name, payload.email, payload.password, payload.role,
        payload.model_dump(include=PROFILE_FIELDS),
    )
    return user_out(user)

@router.get("/teachers/list", response_model=list[UserOut], dependencies=[Depends(require_admin)])
def list_teachers(registry: UserRegistry = Depends(get_user_registry)):
    return [user_out(u) for u in registry.users.teachers()]

@router.get("/students/list", response_model=list[UserOut], dependencies=[Depends(require_staff)])
def list_students(registry: UserRegistry = Depends(get_user_registry)):
    return [user_out(u) for u in registry.users.students()]

@router.get("/{user_id}", response_model=UserOut, dependencies=[Depends(require_self_or_admin)])
def get_user(user_id: int, registry: UserRegistry = Depends(get_user_registry)):
    return user_out(registry.get(user_id))

@router.put("/{user_id}", response_model=UserOut, dependencies=[Depends(require_self_or_admin)])
def update_user(user_id: int, payload: UserUpdate, registry: UserRegistry = Depends(get_user_registry)):
    # role and password are not editable here
    return user_out(registry.update(user_id, payload.model_dump(exclude_none=True)))

@router.patch("/{user_id}/role", response_model=UserOut, dependencies=[Depends(require_admin)])
def change_role(user_id: int, payload: RoleChange, registry: UserRegistry = Depends(get_user_registry)):
    return user_out(registry.change_role(user_id, payload.role, payload.model_dump(include=PROFILE_FIELDS)))

@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
def delete_user(user_id: int, registry: UserRegistry = Depends(get_user_registry)):
    registry.delete(user_id)
