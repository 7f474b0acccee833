"""Storage contracts handed to the use cases.

The SQLAlchemy implementations live in ``infrastructure.repositories``;
tests may substitute in-memory doubles.
"""
from datetime import date

from ..domain.entities import (
    AttendanceRecord,
    CheckinToken,
    Class,
    Enrollment,
    Profile,
    Role,
    StudentRef,
    User,
)


class IUserRepository:
    def get(self, user_id: int) -> User | None: ...
    def get_by_email(self, email: str) -> User | None: ...
    def get_credentials(self, email: str) -> tuple[User, str] | None: ...
    def list_all(self) -> list[User]: ...
    def recent(self, limit: int) -> list[User]: ...
    def count(self, role: Role | None = None) -> int: ...
    def create(self, name: str, email: str, password_hash: str, profile: Profile) -> User: ...
    def update(self, user_id: int, changes: dict) -> User | None: ...
    def replace_profile(self, user_id: int, profile: Profile) -> User | None: ...
    def delete(self, user_id: int) -> bool: ...
    def teachers(self) -> list[User]: ...
    def students(self) -> list[User]: ...
    def teacher_exists(self, teacher_id: int) -> bool: ...
    def student_exists(self, student_id: int) -> bool: ...
    def student_code_exists(self, student_code: str) -> bool: ...


class IClassRepository:
    def get(self, class_id: int) -> Class | None: ...
    def list_all(self) -> list[Class]: ...
    def list_for_teacher(self, teacher_id: int) -> list[Class]: ...
    def list_for_student(self, student_id: int) -> list[Class]: ...
    def count(self) -> int: ...
    def create(self, data: dict) -> Class: ...
    def update(self, class_id: int, changes: dict) -> Class | None: ...
    def delete(self, class_id: int) -> bool: ...


class IEnrollmentRepository:
    def exists(self, student_id: int, class_id: int) -> bool: ...
    def add(self, student_id: int, class_id: int) -> Enrollment: ...
    def remove(self, student_id: int, class_id: int) -> bool: ...
    def students_of(self, class_id: int) -> list[StudentRef]: ...
    def count_for_class(self, class_id: int) -> int: ...


class ICheckinTokenRepository:
    def add(self, token: CheckinToken) -> CheckinToken: ...
    def get_by_code(self, code: str) -> CheckinToken | None: ...


class IAttendanceRepository:
    def get_for_day(self, student_id: int, class_id: int, day: date) -> AttendanceRecord | None: ...
    def add(self, record: AttendanceRecord) -> AttendanceRecord: ...
    def list_for_class_day(self, class_id: int, day: date) -> list[AttendanceRecord]: ...
    def list_for_student(self, student_id: int, limit: int | None = None) -> list[AttendanceRecord]: ...
    def list_for_day(self, day: date) -> list[AttendanceRecord]: ...
    def list_for_teacher_since(self, teacher_id: int, since: date) -> list[AttendanceRecord]: ...
