from datetime import datetime, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

from fastapi import Depends
from sqlalchemy.orm import Session

from ...application.use_cases.checkin import CheckinService, utc_now
from ...application.use_cases.registry import ClassRegistry, UserRegistry
from ...application.use_cases.reports import ReportService
from ...application.use_cases.schedule import ScheduleService
from ...config import settings
from ...infrastructure.db import get_db
from ...infrastructure.qr import to_data_url
from ...infrastructure.repositories import (
    AttendanceRepository,
    CheckinTokenRepository,
    ClassRepository,
    EnrollmentRepository,
    UserRepository,
)
from ...infrastructure.security import PasswordHasher


def get_clock() -> Callable[[], datetime]:
    return utc_now


def school_tz() -> ZoneInfo:
    return ZoneInfo(settings.SCHOOL_TIMEZONE)


def get_checkin_service(db: Session = Depends(get_db), clock=Depends(get_clock)) -> CheckinService:
    return CheckinService(
        classes=ClassRepository(db),
        enrollments=EnrollmentRepository(db),
        tokens=CheckinTokenRepository(db),
        attendance=AttendanceRepository(db),
        encoder=to_data_url,
        clock=clock,
        tz=school_tz(),
        ttl=timedelta(minutes=settings.CHECKIN_TOKEN_TTL_MINUTES),
    )


def get_user_registry(db: Session = Depends(get_db)) -> UserRegistry:
    return UserRegistry(UserRepository(db), PasswordHasher())


def get_class_registry(db: Session = Depends(get_db)) -> ClassRegistry:
    return ClassRegistry(ClassRepository(db), EnrollmentRepository(db), UserRepository(db))


def get_schedule_service(db: Session = Depends(get_db)) -> ScheduleService:
    classes = ClassRepository(db)
    return ScheduleService(classes, ClassRegistry(classes, EnrollmentRepository(db), UserRepository(db)))


def get_report_service(db: Session = Depends(get_db), clock=Depends(get_clock)) -> ReportService:
    return ReportService(
        UserRepository(db),
        ClassRepository(db),
        EnrollmentRepository(db),
        AttendanceRepository(db),
        clock=clock,
        tz=school_tz(),
    )
