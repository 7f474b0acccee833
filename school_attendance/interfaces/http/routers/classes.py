from fastapi import APIRouter, Depends, status

from ....application.use_cases.registry import ClassRegistry
from ....domain.entities import Role, User
from ....infrastructure.cache import delete_cache, schedule_key
from ..authz import get_current_user, require_admin, require_staff
from ..deps import get_class_registry
from ..schemas import (
    ClassCreate,
    ClassDetail,
    ClassOut,
    ClassUpdate,
    EnrollmentOut,
    EnrollReq,
    StudentOut,
    class_out,
)

router = APIRouter(prefix="/api/classes", tags=["classes"])

@router.get("", response_model=list[ClassOut])
def list_classes(user: User = Depends(get_current_user), registry: ClassRegistry = Depends(get_class_registry)):
    return [class_out(k) for k in registry.visible_to(user)]

@router.post("", response_model=ClassOut, status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_admin)])
def create_class(payload: ClassCreate, registry: ClassRegistry = Depends(get_class_registry)):
    return class_out(registry.create(payload.model_dump()))

@router.get("/{class_id}", response_model=ClassDetail)
def get_class(class_id: int, user: User = Depends(get_current_user),
              registry: ClassRegistry = Depends(get_class_registry)):
    klass = registry.get(class_id, user)
    detail = ClassDetail.model_validate(klass)
    if user.role != Role.STUDENT:
        detail.students = [StudentOut.model_validate(s) for s in registry.enrollments.students_of(class_id)]
    return detail

@router.put("/{class_id}", response_model=ClassOut, dependencies=[Depends(require_admin)])
def update_class(class_id: int, payload: ClassUpdate, registry: ClassRegistry = Depends(get_class_registry)):
    klass = registry.update(class_id, payload.model_dump(exclude_none=True))
    delete_cache(schedule_key(class_id))
    return class_out(klass)

@router.delete("/{class_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
def delete_class(class_id: int, registry: ClassRegistry = Depends(get_class_registry)):
    registry.delete(class_id)
    delete_cache(schedule_key(class_id))

@router.post("/{class_id}/enroll", response_model=EnrollmentOut, status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(require_staff)])
def enroll(class_id: int, payload: EnrollReq, registry: ClassRegistry = Depends(get_class_registry)):
    return EnrollmentOut.model_validate(registry.enroll(class_id, payload.student_id))

@router.delete("/{class_id}/enroll/{student_id}", status_code=status.HTTP_204_NO_CONTENT,
               dependencies=[Depends(require_staff)])
def unenroll(class_id: int, student_id: int, registry: ClassRegistry = Depends(get_class_registry)):
    registry.unenroll(class_id, student_id)
