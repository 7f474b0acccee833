"""QR check-in: teachers issue short-lived class tokens, students redeem them.

A token stays active for ``ttl`` after issue and any number of enrolled
students may redeem it. Each student gets at most one record per class and
local calendar day; the storage layer's unique key settles concurrent scans.
"""
import secrets
from datetime import date, datetime, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

import structlog

from ..gate import ensure_class_owner_or_admin
from ..ports import (
    IAttendanceRepository,
    IClassRepository,
    ICheckinTokenRepository,
    IEnrollmentRepository,
)
from ...domain.entities import (
    AttendanceRecord,
    AttendanceStatus,
    CheckinToken,
    Class,
    ClassAttendanceSummary,
    User,
    percentage,
)
from ...domain.errors import (
    AlreadyMarked,
    AppError,
    AuthorizationError,
    NotEnrolled,
    NotFoundError,
    TokenExpired,
    TokenNotFound,
)

logger = structlog.get_logger()

TOKEN_BYTES = 32


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_token_code() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


class CheckinService:
    def __init__(
        self,
        classes: IClassRepository,
        enrollments: IEnrollmentRepository,
        tokens: ICheckinTokenRepository,
        attendance: IAttendanceRepository,
        *,
        encoder: Callable[[str], str],
        clock: Callable[[], datetime] = utc_now,
        tz: ZoneInfo = ZoneInfo("UTC"),
        ttl: timedelta = timedelta(minutes=15),
    ):
        self.classes = classes
        self.enrollments = enrollments
        self.tokens = tokens
        self.attendance = attendance
        self.encoder = encoder
        self.clock = clock
        self.tz = tz
        self.ttl = ttl

    def local_day(self, moment: datetime) -> date:
        return moment.astimezone(self.tz).date()

    def _rejected(self, error: AppError, **context) -> AppError:
        logger.info("attendance_rejected", reason=error.code, **context)
        return error

    def _class(self, class_id: int) -> Class:
        klass = self.classes.get(class_id)
        if klass is None:
            raise NotFoundError("The specified class does not exist")
        return klass

    def issue(self, class_id: int, requester: User) -> tuple[CheckinToken, str]:
        klass = self._class(class_id)
        ensure_class_owner_or_admin(klass, requester, "You can only generate QR codes for your own classes")

        now = self.clock()
        token = self.tokens.add(CheckinToken(
            id=None,
            class_id=klass.id,
            code=new_token_code(),
            created_at=now,
            expires_at=now + self.ttl,
        ))
        logger.info("checkin_token_issued", class_id=klass.id, issued_by=requester.id,
                    expires_at=token.expires_at.isoformat())
        return token, self.encoder(token.code)

    def redeem(self, code: str, student: User) -> AttendanceRecord:
        profile = student.student
        if profile is None:
            raise AuthorizationError("Only students can mark attendance")

        token = self.tokens.get_by_code(code)
        if token is None:
            raise self._rejected(TokenNotFound(), student_id=profile.id)

        now = self.clock()
        if token.is_expired(now):
            raise self._rejected(TokenExpired(), student_id=profile.id, class_id=token.class_id)

        if not self.enrollments.exists(profile.id, token.class_id):
            raise self._rejected(NotEnrolled(), student_id=profile.id, class_id=token.class_id)

        day = self.local_day(now)
        if self.attendance.get_for_day(profile.id, token.class_id, day) is not None:
            raise self._rejected(AlreadyMarked(), student_id=profile.id, class_id=token.class_id)

        try:
            record = self.attendance.add(AttendanceRecord(
                id=None,
                student_id=profile.id,
                class_id=token.class_id,
                day=day,
                marked_at=now,
                status=AttendanceStatus.PRESENT,
                token=code,
            ))
        except AlreadyMarked as e:
            raise self._rejected(e, student_id=profile.id, class_id=token.class_id)
        logger.info("attendance_marked", student_id=profile.id, class_id=token.class_id, day=day.isoformat())
        return record

    def class_attendance(self, class_id: int, day: date | None, requester: User) -> ClassAttendanceSummary:
        klass = self._class(class_id)
        ensure_class_owner_or_admin(klass, requester, "You can only view attendance for your own classes")

        day = day or self.local_day(self.clock())
        marked = {r.student_id: r for r in self.attendance.list_for_class_day(class_id, day)}
        summary = ClassAttendanceSummary(klass=klass, day=day)
        for s in self.enrollments.students_of(class_id):
            record = marked.get(s.student_id)
            summary.rows.append({
                "student_id": s.student_id,
                "student_name": s.name,
                "student_email": s.email,
                "status": record.status if record else AttendanceStatus.ABSENT,
                "marked_at": record.marked_at if record else None,
            })
        return summary

    def student_attendance(self, student: User) -> tuple[list[AttendanceRecord], dict]:
        profile = student.student
        if profile is None:
            raise AuthorizationError("Only students have attendance records")

        records = self.attendance.list_for_student(profile.id)
        total = len(records)
        present = sum(1 for r in records if r.status == AttendanceStatus.PRESENT)
        return records, {
            "total": total,
            "present": present,
            "absent": total - present,
            "percentage": percentage(present, total),
        }
