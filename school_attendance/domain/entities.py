from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime


class Role(str, enum.Enum):
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    ADMIN = "ADMIN"


class AttendanceStatus(str, enum.Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"


@dataclass(frozen=True)
class StudentProfile:
    id: int | None
    student_code: str
    grade: str
    section: str

    role = Role.STUDENT


@dataclass(frozen=True)
class TeacherProfile:
    id: int | None
    subject: str

    role = Role.TEACHER


@dataclass(frozen=True)
class AdminProfile:
    id: int | None

    role = Role.ADMIN


# A user owns exactly one of these; the variant decides the role.
Profile = StudentProfile | TeacherProfile | AdminProfile


@dataclass(frozen=True)
class User:
    id: int | None
    name: str
    email: str
    profile: Profile
    created_at: datetime | None = None

    @property
    def role(self) -> Role:
        return self.profile.role

    @property
    def student(self) -> StudentProfile | None:
        return self.profile if isinstance(self.profile, StudentProfile) else None

    @property
    def teacher(self) -> TeacherProfile | None:
        return self.profile if isinstance(self.profile, TeacherProfile) else None


@dataclass(frozen=True)
class Class:
    id: int | None
    name: str
    subject: str
    grade: str
    section: str
    teacher_id: int
    schedule: str = "{}"
    teacher_name: str | None = None


@dataclass(frozen=True)
class StudentRef:
    """Enrolled student as shown in listings."""
    student_id: int
    user_id: int
    name: str
    email: str


@dataclass(frozen=True)
class Enrollment:
    id: int | None
    student_id: int
    class_id: int
    created_at: datetime | None = None


@dataclass(frozen=True)
class CheckinToken:
    id: int | None
    class_id: int
    code: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class AttendanceRecord:
    id: int | None
    student_id: int
    class_id: int
    day: date
    marked_at: datetime
    status: AttendanceStatus = AttendanceStatus.PRESENT
    token: str | None = None
    class_name: str | None = None
    subject: str | None = None


@dataclass
class ClassAttendanceSummary:
    klass: Class
    day: date
    rows: list[dict] = field(default_factory=list)

    def count(self, status: AttendanceStatus) -> int:
        return sum(1 for r in self.rows if r["status"] == status)

    @property
    def totals(self) -> dict:
        return {
            "total": len(self.rows),
            "present": self.count(AttendanceStatus.PRESENT),
            "absent": self.count(AttendanceStatus.ABSENT),
            "late": self.count(AttendanceStatus.LATE),
        }


def percentage(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole > 0 else 0
