import json
import secrets

import structlog

from ..gate import ensure_class_owner_or_admin
from ..ports import IClassRepository, IEnrollmentRepository, IUserRepository
from ...domain.entities import (
    AdminProfile,
    Class,
    Enrollment,
    Profile,
    Role,
    StudentProfile,
    TeacherProfile,
    User,
)
from ...domain.errors import (
    AuthorizationError,
    EmailTaken,
    NotFoundError,
    StudentCodeTaken,
    ValidationError,
)

logger = structlog.get_logger()


class IPasswordHasher:
    def hash(self, plain: str) -> str: ...


def build_profile(role: Role, fields: dict | None = None) -> Profile:
    """New profile for ``role``; missing fields fall back to school defaults."""
    fields = fields or {}
    if role == Role.STUDENT:
        return StudentProfile(
            id=None,
            student_code=fields.get("student_code") or f"STU{secrets.token_hex(4).upper()}",
            grade=fields.get("grade") or "10",
            section=fields.get("section") or "A",
        )
    if role == Role.TEACHER:
        return TeacherProfile(id=None, subject=fields.get("subject") or "General")
    return AdminProfile(id=None)


class UserRegistry:
    def __init__(self, users: IUserRepository, hasher: IPasswordHasher | None = None):
        self.users = users
        self.hasher = hasher

    def get(self, user_id: int) -> User:
        user = self.users.get(user_id)
        if user is None:
            raise NotFoundError("The specified user does not exist")
        return user

    def _check_student_code(self, role: Role, profile_fields: dict | None) -> None:
        code = (profile_fields or {}).get("student_code")
        if role == Role.STUDENT and code and self.users.student_code_exists(code):
            raise StudentCodeTaken()

    def create(self, name: str, email: str, password: str, role: Role, profile_fields: dict | None = None) -> User:
        if self.users.get_by_email(email):
            raise EmailTaken()
        self._check_student_code(role, profile_fields)
        user = self.users.create(name, email, self.hasher.hash(password), build_profile(role, profile_fields))
        logger.info("user_created", user_id=user.id, role=user.role.value)
        return user

    def update(self, user_id: int, changes: dict) -> User:
        self.get(user_id)
        email = changes.get("email")
        if email is not None:
            other = self.users.get_by_email(email)
            if other is not None and other.id != user_id:
                raise EmailTaken()
        return self.users.update(user_id, changes)

    def change_role(self, user_id: int, role: Role, profile_fields: dict | None = None) -> User:
        user = self.get(user_id)
        if user.role == role:
            return user
        self._check_student_code(role, profile_fields)
        updated = self.users.replace_profile(user_id, build_profile(role, profile_fields))
        logger.info("user_role_changed", user_id=user_id, old_role=user.role.value, new_role=role.value)
        return updated

    def delete(self, user_id: int) -> None:
        if not self.users.delete(user_id):
            raise NotFoundError("The specified user does not exist")
        logger.info("user_deleted", user_id=user_id)


CLASS_FIELDS = ("name", "subject", "grade", "section", "teacher_id", "schedule")


def dump_schedule(schedule) -> str:
    if isinstance(schedule, str):
        return schedule
    return json.dumps(schedule)


class ClassRegistry:
    def __init__(self, classes: IClassRepository, enrollments: IEnrollmentRepository, users: IUserRepository):
        self.classes = classes
        self.enrollments = enrollments
        self.users = users

    def get_raw(self, class_id: int) -> Class:
        klass = self.classes.get(class_id)
        if klass is None:
            raise NotFoundError("The specified class does not exist")
        return klass

    def visible_to(self, user: User) -> list[Class]:
        if user.role == Role.STUDENT:
            return self.classes.list_for_student(user.student.id)
        if user.role == Role.TEACHER:
            return self.classes.list_for_teacher(user.teacher.id)
        return self.classes.list_all()

    def get(self, class_id: int, user: User) -> Class:
        klass = self.get_raw(class_id)
        if user.role == Role.STUDENT:
            if not self.enrollments.exists(user.student.id, class_id):
                raise AuthorizationError("You are not enrolled in this class")
        elif user.role == Role.TEACHER:
            ensure_class_owner_or_admin(klass, user, "You can only access your own classes")
        return klass

    def _require_teacher(self, teacher_id: int) -> None:
        if not self.users.teacher_exists(teacher_id):
            raise NotFoundError("The specified teacher does not exist")

    def create(self, data: dict) -> Class:
        missing = [f for f in CLASS_FIELDS if data.get(f) in (None, "")]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        self._require_teacher(data["teacher_id"])
        payload = {f: data[f] for f in CLASS_FIELDS}
        payload["schedule"] = dump_schedule(payload["schedule"])
        klass = self.classes.create(payload)
        logger.info("class_created", class_id=klass.id, teacher_id=klass.teacher_id)
        return klass

    def update(self, class_id: int, changes: dict) -> Class:
        self.get_raw(class_id)
        changes = {f: v for f, v in changes.items() if f in CLASS_FIELDS and v is not None}
        if "teacher_id" in changes:
            # existing enrollments are kept as they are
            self._require_teacher(changes["teacher_id"])
        if "schedule" in changes:
            changes["schedule"] = dump_schedule(changes["schedule"])
        return self.classes.update(class_id, changes)

    def delete(self, class_id: int) -> None:
        if not self.classes.delete(class_id):
            raise NotFoundError("The specified class does not exist")
        logger.info("class_deleted", class_id=class_id)

    def enroll(self, class_id: int, student_id: int) -> Enrollment:
        self.get_raw(class_id)
        if not self.users.student_exists(student_id):
            raise NotFoundError("The specified student does not exist")
        # AlreadyEnrolled comes from the repository's unique key
        enrollment = self.enrollments.add(student_id, class_id)
        logger.info("student_enrolled", class_id=class_id, student_id=student_id)
        return enrollment

    def unenroll(self, class_id: int, student_id: int) -> None:
        if not self.enrollments.remove(student_id, class_id):
            raise NotFoundError("Enrollment not found")
        logger.info("student_unenrolled", class_id=class_id, student_id=student_id)
