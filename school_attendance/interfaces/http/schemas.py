from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from ...domain.entities import (
    AttendanceRecord,
    AttendanceStatus,
    Class,
    Role,
    StudentProfile,
    TeacherProfile,
    User,
)


class ApiModel(BaseModel):
    # camelCase on the wire, snake_case accepted too
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ErrorResp(ApiModel):
    error: str
    message: str


# --- auth

class LoginReq(ApiModel):
    email: EmailStr
    password: str

class TokenResp(ApiModel):
    access_token: str
    token_type: str = "bearer"


# --- users

class ProfileOut(ApiModel):
    id: int
    kind: Role
    student_code: str | None = None
    grade: str | None = None
    section: str | None = None
    subject: str | None = None

class UserOut(ApiModel):
    id: int
    name: str
    email: EmailStr
    role: Role
    created_at: datetime | None = None
    profile: ProfileOut

class ProfileFields(ApiModel):
    student_code: str | None = Field(default=None, min_length=1)
    grade: str | None = Field(default=None, min_length=1)
    section: str | None = Field(default=None, min_length=1)
    subject: str | None = Field(default=None, min_length=1)

class UserCreate(ProfileFields):
    name: str = Field(min_length=2)
    email: EmailStr
    password: str = Field(min_length=6)
    role: Role = Role.STUDENT

class UserUpdate(ApiModel):
    name: str | None = Field(default=None, min_length=2)
    email: EmailStr | None = None

class RoleChange(ProfileFields):
    role: Role


def user_out(user: User) -> UserOut:
    p = user.profile
    profile = ProfileOut(
        id=p.id,
        kind=p.role,
        student_code=p.student_code if isinstance(p, StudentProfile) else None,
        grade=p.grade if isinstance(p, StudentProfile) else None,
        section=p.section if isinstance(p, StudentProfile) else None,
        subject=p.subject if isinstance(p, TeacherProfile) else None,
    )
    return UserOut(id=user.id, name=user.name, email=user.email, role=user.role,
                   created_at=user.created_at, profile=profile)


# --- classes

class ClassCreate(ApiModel):
    name: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    grade: str = Field(min_length=1)
    section: str = Field(min_length=1)
    teacher_id: int
    schedule: dict[str, Any] | str

class ClassUpdate(ApiModel):
    name: str | None = Field(default=None, min_length=1)
    subject: str | None = Field(default=None, min_length=1)
    grade: str | None = Field(default=None, min_length=1)
    section: str | None = Field(default=None, min_length=1)
    teacher_id: int | None = None
    schedule: dict[str, Any] | str | None = None

class ClassOut(ApiModel):
    id: int
    name: str
    subject: str
    grade: str
    section: str
    teacher_id: int
    teacher_name: str | None = None
    schedule: str

class StudentOut(ApiModel):
    student_id: int
    user_id: int
    name: str
    email: str

class ClassDetail(ClassOut):
    students: list[StudentOut] = []

class EnrollReq(ApiModel):
    student_id: int

class EnrollmentOut(ApiModel):
    id: int
    student_id: int
    class_id: int
    created_at: datetime | None = None


def class_out(klass: Class) -> ClassOut:
    return ClassOut.model_validate(klass)


# --- attendance

class GenerateQrReq(ApiModel):
    class_id: int

class QrCodeOut(ApiModel):
    id: int
    code: str
    class_id: int
    expires_at: datetime
    image: str

class GenerateQrResp(ApiModel):
    message: str = "QR code generated successfully"
    qr_code: QrCodeOut

class ScanReq(ApiModel):
    qr_code: str = Field(min_length=1)

class AttendanceOut(ApiModel):
    id: int
    class_id: int
    class_name: str | None = None
    subject: str | None = None
    day: date
    marked_at: datetime
    status: AttendanceStatus

class ScanResp(ApiModel):
    message: str = "Attendance marked successfully"
    attendance: AttendanceOut

class ClassBrief(ApiModel):
    id: int
    name: str
    subject: str
    grade: str
    section: str

class StudentDayStatus(ApiModel):
    student_id: int
    student_name: str
    student_email: str
    status: AttendanceStatus
    marked_at: datetime | None = None

class AttendanceTotals(ApiModel):
    total: int
    present: int
    absent: int
    late: int

class ClassAttendanceResp(ApiModel):
    klass: ClassBrief = Field(alias="class")
    day: date = Field(alias="date")
    attendance: list[StudentDayStatus]
    summary: AttendanceTotals

class StudentTotals(ApiModel):
    total: int
    present: int
    absent: int
    percentage: float

class StudentAttendanceResp(ApiModel):
    records: list[AttendanceOut]
    summary: StudentTotals


def attendance_out(record: AttendanceRecord) -> AttendanceOut:
    return AttendanceOut.model_validate(record)


# --- schedule

class ScheduleOut(ApiModel):
    class_id: int
    class_name: str
    subject: str
    grade: str
    section: str
    teacher_name: str | None = None
    schedule: Any

class ScheduleUpdate(ApiModel):
    class_id: int
    schedule: dict[str, Any] | str


# --- dashboards

class AttendanceRate(ApiModel):
    total: int
    present: int
    absent: int
    percentage: float

class StudentClassRate(ApiModel):
    class_id: int
    class_name: str
    subject: str
    teacher_name: str | None = None
    total_classes: int
    present_classes: int
    attendance_percentage: float

class StudentProfileOut(ApiModel):
    name: str
    grade: str
    section: str
    student_code: str

class StudentDashboard(ApiModel):
    overall_attendance: AttendanceRate
    class_attendance: list[StudentClassRate]
    recent_attendance: list[AttendanceOut]
    profile: StudentProfileOut

class ClassDayRate(ApiModel):
    class_id: int
    class_name: str
    subject: str
    grade: str
    section: str
    total_students: int
    present_students: int
    absent_students: int
    attendance_percentage: float

class TeacherProfileOut(ApiModel):
    name: str
    subject: str

class TeacherDashboard(ApiModel):
    total_classes: int
    total_students: int
    class_attendance_summary: list[ClassDayRate]
    # date -> class name -> marks
    weekly_attendance: dict[str, dict[str, int]]
    profile: TeacherProfileOut

class Overview(ApiModel):
    total_users: int
    total_students: int
    total_teachers: int
    total_classes: int

class AdminDashboard(ApiModel):
    overview: Overview
    today_attendance: AttendanceRate
    class_attendance_summary: list[ClassDayRate]
    recent_users: list[UserOut]
