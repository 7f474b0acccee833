# school_attendance/infrastructure/models.py
from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import Date, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserORM(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    profile: Mapped["ProfileORM"] = relationship(
        "ProfileORM",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="joined",
    )

    def __repr__(self) -> str:
        return f"UserORM(id={self.id!r}, email={self.email!r}, role={self.role!r})"


class ProfileORM(Base):
    """One row per user; ``kind`` selects the variant."""

    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    # student columns
    student_code: Mapped[str | None] = mapped_column(String(32), unique=True, nullable=True)
    grade: Mapped[str | None] = mapped_column(String(16), nullable=True)
    section: Mapped[str | None] = mapped_column(String(16), nullable=True)
    # teacher columns
    subject: Mapped[str | None] = mapped_column(String(128), nullable=True)

    user: Mapped["UserORM"] = relationship("UserORM", back_populates="profile")

    __mapper_args__ = {"polymorphic_on": "kind"}


class StudentProfileORM(ProfileORM):
    enrollments: Mapped[list["EnrollmentORM"]] = relationship(
        "EnrollmentORM",
        back_populates="student",
        cascade="all, delete-orphan",
    )
    attendances: Mapped[list["AttendanceORM"]] = relationship(
        "AttendanceORM",
        back_populates="student",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"polymorphic_identity": "STUDENT"}


class TeacherProfileORM(ProfileORM):
    classes: Mapped[list["ClassORM"]] = relationship(
        "ClassORM",
        back_populates="teacher",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"polymorphic_identity": "TEACHER"}


class AdminProfileORM(ProfileORM):
    __mapper_args__ = {"polymorphic_identity": "ADMIN"}


class ClassORM(Base):
    __tablename__ = "classes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    subject: Mapped[str] = mapped_column(String(128), nullable=False)
    grade: Mapped[str] = mapped_column(String(16), nullable=False)
    section: Mapped[str] = mapped_column(String(16), nullable=False)
    teacher_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # weekly time-slot map as JSON text
    schedule: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    teacher: Mapped["TeacherProfileORM"] = relationship("TeacherProfileORM", back_populates="classes")
    enrollments: Mapped[list["EnrollmentORM"]] = relationship(
        "EnrollmentORM",
        back_populates="klass",
        cascade="all, delete-orphan",
    )
    attendances: Mapped[list["AttendanceORM"]] = relationship(
        "AttendanceORM",
        back_populates="klass",
        cascade="all, delete-orphan",
    )
    tokens: Mapped[list["CheckinTokenORM"]] = relationship(
        "CheckinTokenORM",
        back_populates="klass",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"ClassORM(id={self.id!r}, name={self.name!r})"


class EnrollmentORM(Base):
    __tablename__ = "enrollments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    class_id: Mapped[int] = mapped_column(
        ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    student: Mapped["StudentProfileORM"] = relationship("StudentProfileORM", back_populates="enrollments")
    klass: Mapped["ClassORM"] = relationship("ClassORM", back_populates="enrollments")

    __table_args__ = (UniqueConstraint("student_id", "class_id", name="uq_enrollment_student_class"),)


class CheckinTokenORM(Base):
    __tablename__ = "checkin_tokens"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    class_id: Mapped[int] = mapped_column(
        ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    code: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    klass: Mapped["ClassORM"] = relationship("ClassORM", back_populates="tokens")


class AttendanceORM(Base):
    __tablename__ = "attendance"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    class_id: Mapped[int] = mapped_column(
        ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    marked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PRESENT")
    token: Mapped[str | None] = mapped_column(String(128), nullable=True)

    student: Mapped["StudentProfileORM"] = relationship("StudentProfileORM", back_populates="attendances")
    klass: Mapped["ClassORM"] = relationship("ClassORM", back_populates="attendances")

    # at most one mark per student, class and calendar day
    __table_args__ = (UniqueConstraint("student_id", "class_id", "day", name="uq_attendance_student_class_day"),)


__all__ = [
    "Base",
    "UserORM",
    "ProfileORM",
    "StudentProfileORM",
    "TeacherProfileORM",
    "AdminProfileORM",
    "ClassORM",
    "EnrollmentORM",
    "CheckinTokenORM",
    "AttendanceORM",
]
