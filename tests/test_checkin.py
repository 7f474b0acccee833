import threading
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from conftest import FakeClock, T0
from school_attendance.application.use_cases.checkin import CheckinService
from school_attendance.application.use_cases.registry import build_profile
from school_attendance.domain.entities import AttendanceStatus, Role
from school_attendance.domain.errors import (
    AlreadyMarked,
    AuthorizationError,
    NotEnrolled,
    NotFoundError,
    TokenExpired,
    TokenNotFound,
)
from school_attendance.infrastructure.models import AttendanceORM, Base, CheckinTokenORM
from school_attendance.infrastructure.repositories import (
    AttendanceRepository,
    CheckinTokenRepository,
    ClassRepository,
    EnrollmentRepository,
    UserRepository,
)


def build_service(db, clock, tz="UTC"):
    return CheckinService(
        ClassRepository(db),
        EnrollmentRepository(db),
        CheckinTokenRepository(db),
        AttendanceRepository(db),
        encoder=lambda code: f"img:{code}",
        clock=clock,
        tz=ZoneInfo(tz),
    )


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def service(db_session, fake_clock):
    return build_service(db_session, fake_clock)


@pytest.fixture
def classroom(make_user, make_class, enroll):
    teacher = make_user(Role.TEACHER)
    klass = make_class(teacher)
    alice = make_user(Role.STUDENT, name="Alice")
    bob = make_user(Role.STUDENT, name="Bob")
    enroll(alice, klass)
    enroll(bob, klass)
    return teacher, klass, alice, bob


def count_records(db):
    return db.execute(select(func.count(AttendanceORM.id))).scalar()


def test_issue_by_owner_sets_fifteen_minute_expiry(service, classroom):
    teacher, klass, _, _ = classroom
    token, image = service.issue(klass.id, teacher)

    assert token.class_id == klass.id
    assert token.expires_at - token.created_at == timedelta(minutes=15)
    assert token.created_at == T0
    assert image == f"img:{token.code}"


def test_issue_codes_are_random_and_long(service, classroom):
    teacher, klass, _, _ = classroom
    codes = {service.issue(klass.id, teacher)[0].code for _ in range(5)}

    assert len(codes) == 5
    assert all(len(c) >= 40 for c in codes)
    assert not any(str(klass.id) == c for c in codes)


def test_issue_by_admin_for_any_class(service, classroom, make_user):
    _, klass, _, _ = classroom
    admin = make_user(Role.ADMIN)
    token, _ = service.issue(klass.id, admin)
    assert token.id is not None


def test_issue_by_other_teacher_is_rejected(service, classroom, make_user, db_session):
    _, klass, _, _ = classroom
    other = make_user(Role.TEACHER)

    with pytest.raises(AuthorizationError):
        service.issue(klass.id, other)
    assert db_session.execute(select(func.count(CheckinTokenORM.id))).scalar() == 0


def test_issue_for_missing_class(service, make_user):
    admin = make_user(Role.ADMIN)
    with pytest.raises(NotFoundError):
        service.issue(999, admin)


def test_issued_token_redeems_for_enrolled_student(service, classroom):
    teacher, klass, alice, _ = classroom
    token, _ = service.issue(klass.id, teacher)

    record = service.redeem(token.code, alice)

    assert record.status == AttendanceStatus.PRESENT
    assert record.student_id == alice.student.id
    assert record.class_id == klass.id
    assert record.token == token.code
    assert record.marked_at == T0
    assert record.day == date(2024, 3, 4)


def test_unknown_code_is_not_found(service, classroom, db_session):
    _, _, alice, _ = classroom
    with pytest.raises(TokenNotFound):
        service.redeem("no-such-code", alice)
    assert count_records(db_session) == 0


def test_expired_token_never_creates_record(service, classroom, fake_clock, db_session):
    teacher, klass, alice, _ = classroom
    token, _ = service.issue(klass.id, teacher)

    fake_clock.advance(minutes=15, seconds=1)
    with pytest.raises(TokenExpired):
        service.redeem(token.code, alice)
    assert count_records(db_session) == 0


def test_token_still_valid_at_exact_expiry(service, classroom, fake_clock):
    teacher, klass, alice, _ = classroom
    token, _ = service.issue(klass.id, teacher)

    fake_clock.advance(minutes=15)
    assert service.redeem(token.code, alice).status == AttendanceStatus.PRESENT


def test_not_enrolled_student_is_rejected(service, classroom, make_user, db_session):
    teacher, klass, _, _ = classroom
    outsider = make_user(Role.STUDENT)
    token, _ = service.issue(klass.id, teacher)

    with pytest.raises(NotEnrolled):
        service.redeem(token.code, outsider)
    assert count_records(db_session) == 0


def test_non_student_cannot_redeem(service, classroom):
    teacher, klass, _, _ = classroom
    token, _ = service.issue(klass.id, teacher)
    with pytest.raises(AuthorizationError):
        service.redeem(token.code, teacher)


def test_distinct_students_share_one_token(service, classroom, db_session):
    teacher, klass, alice, bob = classroom
    token, _ = service.issue(klass.id, teacher)

    service.redeem(token.code, alice)
    service.redeem(token.code, bob)

    assert count_records(db_session) == 2


def test_second_token_same_day_is_already_marked(service, classroom, fake_clock):
    teacher, klass, alice, _ = classroom
    first, _ = service.issue(klass.id, teacher)
    service.redeem(first.code, alice)

    fake_clock.advance(minutes=120)
    second, _ = service.issue(klass.id, teacher)
    with pytest.raises(AlreadyMarked):
        service.redeem(second.code, alice)


def test_issue_redeem_expire_scenario(service, classroom, make_user, enroll, fake_clock, db_session):
    teacher, klass, alice, _ = classroom
    carol = make_user(Role.STUDENT, name="Carol")
    enroll(carol, klass)

    token, _ = service.issue(klass.id, teacher)

    fake_clock.advance(minutes=1)
    assert service.redeem(token.code, alice).status == AttendanceStatus.PRESENT

    fake_clock.advance(minutes=1)
    with pytest.raises(AlreadyMarked):
        service.redeem(token.code, alice)

    fake_clock.advance(minutes=14)
    with pytest.raises(TokenExpired):
        service.redeem(token.code, carol)

    assert count_records(db_session) == 1


def test_day_boundary_is_local_midnight(db_session, classroom):
    teacher, klass, alice, _ = classroom
    # 23:50 in Vientiane (UTC+7)
    clock = FakeClock(datetime(2024, 3, 4, 16, 50, tzinfo=timezone.utc))
    service = build_service(db_session, clock, tz="Asia/Vientiane")

    token, _ = service.issue(klass.id, teacher)
    first = service.redeem(token.code, alice)
    assert first.day == date(2024, 3, 4)

    # fifteen minutes later it is already the next local day
    clock.advance(minutes=15)
    second = service.redeem(token.code, alice)
    assert second.day == date(2024, 3, 5)


def test_class_attendance_marks_missing_students_absent(service, classroom):
    teacher, klass, alice, bob = classroom
    token, _ = service.issue(klass.id, teacher)
    service.redeem(token.code, alice)

    summary = service.class_attendance(klass.id, None, teacher)

    by_name = {row["student_name"]: row for row in summary.rows}
    assert by_name["Alice"]["status"] == AttendanceStatus.PRESENT
    assert by_name["Bob"]["status"] == AttendanceStatus.ABSENT
    assert by_name["Bob"]["marked_at"] is None
    assert summary.totals == {"total": 2, "present": 1, "absent": 1, "late": 0}
    assert summary.day == date(2024, 3, 4)


def test_class_attendance_for_another_date(service, classroom):
    teacher, klass, alice, _ = classroom
    token, _ = service.issue(klass.id, teacher)
    service.redeem(token.code, alice)

    summary = service.class_attendance(klass.id, date(2024, 3, 1), teacher)
    assert summary.totals["present"] == 0
    assert summary.totals["absent"] == 2


def test_class_attendance_requires_owner(service, classroom, make_user):
    _, klass, _, _ = classroom
    with pytest.raises(AuthorizationError):
        service.class_attendance(klass.id, None, make_user(Role.TEACHER))


def test_student_attendance_summary(service, classroom, fake_clock):
    teacher, klass, alice, _ = classroom
    service.redeem(service.issue(klass.id, teacher)[0].code, alice)
    fake_clock.advance(minutes=24 * 60)
    service.redeem(service.issue(klass.id, teacher)[0].code, alice)

    records, summary = service.student_attendance(alice)

    assert [r.day for r in records] == [date(2024, 3, 5), date(2024, 3, 4)]
    assert records[0].class_name == klass.name
    assert summary == {"total": 2, "present": 2, "absent": 0, "percentage": 100.0}


def test_student_attendance_empty(service, classroom):
    _, _, alice, _ = classroom
    records, summary = service.student_attendance(alice)
    assert records == []
    assert summary["percentage"] == 0


def test_concurrent_redeems_by_one_student_create_one_record(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    setup = Session()
    users = UserRepository(setup)
    teacher = users.create("T", "t@school.com", "x", build_profile(Role.TEACHER))
    student = users.create("S", "s@school.com", "x", build_profile(Role.STUDENT))
    klass = ClassRepository(setup).create({
        "name": "Physics 10A", "subject": "Physics", "grade": "10", "section": "A",
        "teacher_id": teacher.teacher.id, "schedule": "{}",
    })
    EnrollmentRepository(setup).add(student.student.id, klass.id)
    clock = FakeClock()
    token, _ = build_service(setup, clock).issue(klass.id, teacher)
    setup.close()

    attempts = 8
    barrier = threading.Barrier(attempts)
    outcomes = []
    lock = threading.Lock()

    def scan():
        db = Session()
        try:
            service = build_service(db, clock)
            barrier.wait()
            try:
                service.redeem(token.code, student)
                result = "marked"
            except AlreadyMarked:
                result = "already_marked"
        finally:
            db.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=scan) for _ in range(attempts)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    check = Session()
    try:
        assert count_records(check) == 1
    finally:
        check.close()
        engine.dispose()
    assert outcomes.count("marked") == 1
    assert outcomes.count("already_marked") == attempts - 1
