"""Per-role dashboard aggregates. Read-only."""
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

from .checkin import utc_now
from ..ports import IAttendanceRepository, IClassRepository, IEnrollmentRepository, IUserRepository
from ...domain.entities import AttendanceStatus, Class, Role, User, percentage

RECENT_LIMIT = 10
TREND_DAYS = 7


class ReportService:
    def __init__(
        self,
        users: IUserRepository,
        classes: IClassRepository,
        enrollments: IEnrollmentRepository,
        attendance: IAttendanceRepository,
        *,
        clock: Callable[[], datetime] = utc_now,
        tz: ZoneInfo = ZoneInfo("UTC"),
    ):
        self.users = users
        self.classes = classes
        self.enrollments = enrollments
        self.attendance = attendance
        self.clock = clock
        self.tz = tz

    def _today(self):
        return self.clock().astimezone(self.tz).date()

    def _today_summary(self, klass: Class, present_by_class: dict) -> dict:
        total = self.enrollments.count_for_class(klass.id)
        present = present_by_class.get(klass.id, 0)
        return {
            "class_id": klass.id,
            "class_name": klass.name,
            "subject": klass.subject,
            "grade": klass.grade,
            "section": klass.section,
            "total_students": total,
            "present_students": present,
            "absent_students": total - present,
            "attendance_percentage": percentage(present, total),
        }

    def _present_today(self, records) -> dict:
        counts = defaultdict(int)
        for r in records:
            if r.status == AttendanceStatus.PRESENT:
                counts[r.class_id] += 1
        return counts

    def student(self, user: User) -> dict:
        profile = user.student
        records = self.attendance.list_for_student(profile.id)
        per_class = []
        total_all = present_all = 0
        for klass in self.classes.list_for_student(profile.id):
            mine = [r for r in records if r.class_id == klass.id]
            present = sum(1 for r in mine if r.status == AttendanceStatus.PRESENT)
            per_class.append({
                "class_id": klass.id,
                "class_name": klass.name,
                "subject": klass.subject,
                "teacher_name": klass.teacher_name,
                "total_classes": len(mine),
                "present_classes": present,
                "attendance_percentage": percentage(present, len(mine)),
            })
            total_all += len(mine)
            present_all += present
        return {
            "overall_attendance": {
                "total": total_all,
                "present": present_all,
                "absent": total_all - present_all,
                "percentage": percentage(present_all, total_all),
            },
            "class_attendance": per_class,
            "recent_attendance": records[:RECENT_LIMIT],
            "profile": {
                "name": user.name,
                "grade": profile.grade,
                "section": profile.section,
                "student_code": profile.student_code,
            },
        }

    def teacher(self, user: User) -> dict:
        profile = user.teacher
        today = self._today()
        classes = self.classes.list_for_teacher(profile.id)
        trend = self.attendance.list_for_teacher_since(profile.id, today - timedelta(days=TREND_DAYS))
        present_today = self._present_today(r for r in trend if r.day == today)

        summaries = [self._today_summary(k, present_today) for k in classes]
        by_date: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        for r in trend:
            by_date[r.day.isoformat()][r.class_name] += 1

        return {
            "total_classes": len(classes),
            "total_students": sum(s["total_students"] for s in summaries),
            "class_attendance_summary": summaries,
            "weekly_attendance": {d: dict(v) for d, v in sorted(by_date.items())},
            "profile": {"name": user.name, "subject": profile.subject},
        }

    def admin(self) -> dict:
        today_records = self.attendance.list_for_day(self._today())
        present = sum(1 for r in today_records if r.status == AttendanceStatus.PRESENT)
        present_by_class = self._present_today(today_records)
        return {
            "overview": {
                "total_users": self.users.count(),
                "total_students": self.users.count(Role.STUDENT),
                "total_teachers": self.users.count(Role.TEACHER),
                "total_classes": self.classes.count(),
            },
            "today_attendance": {
                "total": len(today_records),
                "present": present,
                "absent": len(today_records) - present,
                "percentage": percentage(present, len(today_records)),
            },
            "class_attendance_summary": [self._today_summary(k, present_by_class) for k in self.classes.list_all()],
            "recent_users": self.users.recent(RECENT_LIMIT),
        }
