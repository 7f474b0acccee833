from datetime import date, datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from .models import (
    AdminProfileORM,
    AttendanceORM,
    CheckinTokenORM,
    ClassORM,
    EnrollmentORM,
    ProfileORM,
    StudentProfileORM,
    TeacherProfileORM,
    UserORM,
)
from ..application.ports import (
    IAttendanceRepository,
    IClassRepository,
    ICheckinTokenRepository,
    IEnrollmentRepository,
    IUserRepository,
)
from ..domain.entities import (
    AdminProfile,
    AttendanceRecord,
    AttendanceStatus,
    CheckinToken,
    Class,
    Enrollment,
    Profile,
    Role,
    StudentProfile,
    StudentRef,
    TeacherProfile,
    User,
)
from ..domain.errors import AlreadyEnrolled, AlreadyMarked, EmailTaken, StudentCodeTaken


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def profile_to_domain(p: ProfileORM) -> Profile:
    if isinstance(p, StudentProfileORM):
        return StudentProfile(id=p.id, student_code=p.student_code, grade=p.grade, section=p.section)
    if isinstance(p, TeacherProfileORM):
        return TeacherProfile(id=p.id, subject=p.subject)
    return AdminProfile(id=p.id)


def profile_to_orm(profile: Profile, user_id: int | None = None) -> ProfileORM:
    if isinstance(profile, StudentProfile):
        return StudentProfileORM(
            user_id=user_id,
            student_code=profile.student_code,
            grade=profile.grade,
            section=profile.section,
        )
    if isinstance(profile, TeacherProfile):
        return TeacherProfileORM(user_id=user_id, subject=profile.subject)
    return AdminProfileORM(user_id=user_id)


def user_conflict(exc: IntegrityError):
    # sqlite and postgres both name the violated column or constraint
    if "student_code" in str(exc.orig):
        return StudentCodeTaken()
    return EmailTaken()


def user_to_domain(u: UserORM) -> User:
    return User(
        id=u.id,
        name=u.name,
        email=u.email,
        profile=profile_to_domain(u.profile),
        created_at=as_utc(u.created_at),
    )


def class_to_domain(c: ClassORM) -> Class:
    teacher_name = c.teacher.user.name if c.teacher is not None and c.teacher.user is not None else None
    return Class(
        id=c.id,
        name=c.name,
        subject=c.subject,
        grade=c.grade,
        section=c.section,
        teacher_id=c.teacher_id,
        schedule=c.schedule,
        teacher_name=teacher_name,
    )


def token_to_domain(t: CheckinTokenORM) -> CheckinToken:
    return CheckinToken(
        id=t.id,
        class_id=t.class_id,
        code=t.code,
        created_at=as_utc(t.created_at),
        expires_at=as_utc(t.expires_at),
    )


def attendance_to_domain(a: AttendanceORM) -> AttendanceRecord:
    return AttendanceRecord(
        id=a.id,
        student_id=a.student_id,
        class_id=a.class_id,
        day=a.day,
        marked_at=as_utc(a.marked_at),
        status=AttendanceStatus(a.status),
        token=a.token,
        class_name=a.klass.name if a.klass is not None else None,
        subject=a.klass.subject if a.klass is not None else None,
    )


class UserRepository(IUserRepository):
    def __init__(self, db: Session): self.db = db

    def _row(self, user_id: int) -> UserORM | None:
        return self.db.get(UserORM, user_id)

    def get(self, user_id: int) -> User | None:
        row = self._row(user_id)
        return user_to_domain(row) if row else None

    def get_by_email(self, email: str) -> User | None:
        row = self.db.query(UserORM).filter(UserORM.email == email).first()
        return user_to_domain(row) if row else None

    def get_credentials(self, email: str) -> tuple[User, str] | None:
        row = self.db.query(UserORM).filter(UserORM.email == email).first()
        return (user_to_domain(row), row.password_hash) if row else None

    def list_all(self) -> list[User]:
        rows = self.db.query(UserORM).order_by(UserORM.created_at.desc(), UserORM.id.desc()).all()
        return [user_to_domain(r) for r in rows]

    def recent(self, limit: int) -> list[User]:
        rows = (self.db.query(UserORM)
                .order_by(UserORM.created_at.desc(), UserORM.id.desc())
                .limit(limit).all())
        return [user_to_domain(r) for r in rows]

    def count(self, role: Role | None = None) -> int:
        q = self.db.query(func.count(UserORM.id))
        if role is not None:
            q = q.filter(UserORM.role == role.value)
        return q.scalar() or 0

    def create(self, name: str, email: str, password_hash: str, profile: Profile) -> User:
        row = UserORM(name=name, email=email, password_hash=password_hash, role=profile.role.value)
        row.profile = profile_to_orm(profile)
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise user_conflict(e)
        self.db.refresh(row)
        return user_to_domain(row)

    def update(self, user_id: int, changes: dict) -> User | None:
        row = self._row(user_id)
        if not row:
            return None
        for field in ("name", "email"):
            if changes.get(field) is not None:
                setattr(row, field, changes[field])
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise EmailTaken()
        self.db.refresh(row)
        return user_to_domain(row)

    def replace_profile(self, user_id: int, profile: Profile) -> User | None:
        """Swap the role profile and the role tag in a single transaction."""
        row = self._row(user_id)
        if not row:
            return None
        try:
            if row.profile is not None:
                # orphaned profile is deleted before the new one claims user_id
                row.profile = None
                self.db.flush()
            row.profile = profile_to_orm(profile)
            row.role = profile.role.value
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise user_conflict(e)
        except Exception:
            self.db.rollback()
            raise
        self.db.expire(row)
        return user_to_domain(self._row(user_id))

    def delete(self, user_id: int) -> bool:
        row = self._row(user_id)
        if not row:
            return False
        self.db.delete(row); self.db.commit()
        return True

    def _by_kind(self, orm_cls) -> list[User]:
        rows = (self.db.query(UserORM)
                .join(orm_cls, orm_cls.user_id == UserORM.id)
                .order_by(UserORM.name)
                .all())
        return [user_to_domain(r) for r in rows]

    def teachers(self) -> list[User]:
        return self._by_kind(TeacherProfileORM)

    def students(self) -> list[User]:
        return self._by_kind(StudentProfileORM)

    def teacher_exists(self, teacher_id: int) -> bool:
        return self.db.query(TeacherProfileORM.id).filter(TeacherProfileORM.id == teacher_id).first() is not None

    def student_exists(self, student_id: int) -> bool:
        return self.db.query(StudentProfileORM.id).filter(StudentProfileORM.id == student_id).first() is not None

    def student_code_exists(self, student_code: str) -> bool:
        return self.db.query(StudentProfileORM.id).filter(StudentProfileORM.student_code == student_code).first() is not None


class ClassRepository(IClassRepository):
    def __init__(self, db: Session): self.db = db

    def _query(self):
        return self.db.query(ClassORM).options(joinedload(ClassORM.teacher).joinedload(TeacherProfileORM.user))

    def get(self, class_id: int) -> Class | None:
        row = self._query().filter(ClassORM.id == class_id).first()
        return class_to_domain(row) if row else None

    def list_all(self) -> list[Class]:
        return [class_to_domain(r) for r in self._query().order_by(ClassORM.id).all()]

    def list_for_teacher(self, teacher_id: int) -> list[Class]:
        rows = self._query().filter(ClassORM.teacher_id == teacher_id).order_by(ClassORM.id).all()
        return [class_to_domain(r) for r in rows]

    def list_for_student(self, student_id: int) -> list[Class]:
        rows = (self._query()
                .join(EnrollmentORM, EnrollmentORM.class_id == ClassORM.id)
                .filter(EnrollmentORM.student_id == student_id)
                .order_by(ClassORM.id)
                .all())
        return [class_to_domain(r) for r in rows]

    def count(self) -> int:
        return self.db.query(func.count(ClassORM.id)).scalar() or 0

    def create(self, data: dict) -> Class:
        row = ClassORM(**data)
        self.db.add(row); self.db.commit()
        return self.get(row.id)

    def update(self, class_id: int, changes: dict) -> Class | None:
        row = self.db.get(ClassORM, class_id)
        if not row:
            return None
        for field, value in changes.items():
            setattr(row, field, value)
        self.db.commit()
        self.db.expire_all()
        return self.get(class_id)

    def delete(self, class_id: int) -> bool:
        row = self.db.get(ClassORM, class_id)
        if not row:
            return False
        self.db.delete(row); self.db.commit()
        return True


class EnrollmentRepository(IEnrollmentRepository):
    def __init__(self, db: Session): self.db = db

    def _row(self, student_id: int, class_id: int) -> EnrollmentORM | None:
        return (self.db.query(EnrollmentORM)
                .filter(EnrollmentORM.student_id == student_id, EnrollmentORM.class_id == class_id)
                .first())

    def exists(self, student_id: int, class_id: int) -> bool:
        return self._row(student_id, class_id) is not None

    def add(self, student_id: int, class_id: int) -> Enrollment:
        row = EnrollmentORM(student_id=student_id, class_id=class_id)
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise AlreadyEnrolled()
        self.db.refresh(row)
        return Enrollment(id=row.id, student_id=row.student_id, class_id=row.class_id,
                          created_at=as_utc(row.created_at))

    def remove(self, student_id: int, class_id: int) -> bool:
        row = self._row(student_id, class_id)
        if not row:
            return False
        self.db.delete(row); self.db.commit()
        return True

    def students_of(self, class_id: int) -> list[StudentRef]:
        q = (select(StudentProfileORM.id, UserORM.id, UserORM.name, UserORM.email)
             .join(EnrollmentORM, EnrollmentORM.student_id == StudentProfileORM.id)
             .join(UserORM, UserORM.id == StudentProfileORM.user_id)
             .where(EnrollmentORM.class_id == class_id)
             .order_by(UserORM.name))
        return [StudentRef(student_id=r[0], user_id=r[1], name=r[2], email=r[3])
                for r in self.db.execute(q).all()]

    def count_for_class(self, class_id: int) -> int:
        return (self.db.query(func.count(EnrollmentORM.id))
                .filter(EnrollmentORM.class_id == class_id)
                .scalar()) or 0


class CheckinTokenRepository(ICheckinTokenRepository):
    def __init__(self, db: Session): self.db = db

    def add(self, token: CheckinToken) -> CheckinToken:
        row = CheckinTokenORM(
            class_id=token.class_id,
            code=token.code,
            created_at=token.created_at.astimezone(timezone.utc),
            expires_at=token.expires_at.astimezone(timezone.utc),
        )
        self.db.add(row); self.db.commit(); self.db.refresh(row)
        return token_to_domain(row)

    def get_by_code(self, code: str) -> CheckinToken | None:
        row = self.db.query(CheckinTokenORM).filter(CheckinTokenORM.code == code).first()
        return token_to_domain(row) if row else None


class AttendanceRepository(IAttendanceRepository):
    def __init__(self, db: Session): self.db = db

    def _query(self):
        return self.db.query(AttendanceORM).options(joinedload(AttendanceORM.klass))

    def get_for_day(self, student_id: int, class_id: int, day: date) -> AttendanceRecord | None:
        row = (self._query()
               .filter(AttendanceORM.student_id == student_id,
                       AttendanceORM.class_id == class_id,
                       AttendanceORM.day == day)
               .first())
        return attendance_to_domain(row) if row else None

    def add(self, record: AttendanceRecord) -> AttendanceRecord:
        row = AttendanceORM(
            student_id=record.student_id,
            class_id=record.class_id,
            day=record.day,
            marked_at=record.marked_at.astimezone(timezone.utc),
            status=record.status.value,
            token=record.token,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            # a concurrent scan for the same student, class and day won the insert
            self.db.rollback()
            raise AlreadyMarked()
        self.db.refresh(row)
        return attendance_to_domain(row)

    def list_for_class_day(self, class_id: int, day: date) -> list[AttendanceRecord]:
        rows = self._query().filter(AttendanceORM.class_id == class_id, AttendanceORM.day == day).all()
        return [attendance_to_domain(r) for r in rows]

    def list_for_student(self, student_id: int, limit: int | None = None) -> list[AttendanceRecord]:
        q = (self._query()
             .filter(AttendanceORM.student_id == student_id)
             .order_by(AttendanceORM.marked_at.desc(), AttendanceORM.id.desc()))
        if limit is not None:
            q = q.limit(limit)
        return [attendance_to_domain(r) for r in q.all()]

    def list_for_day(self, day: date) -> list[AttendanceRecord]:
        return [attendance_to_domain(r) for r in self._query().filter(AttendanceORM.day == day).all()]

    def list_for_teacher_since(self, teacher_id: int, since: date) -> list[AttendanceRecord]:
        rows = (self._query()
                .join(ClassORM, ClassORM.id == AttendanceORM.class_id)
                .filter(ClassORM.teacher_id == teacher_id, AttendanceORM.day >= since)
                .order_by(AttendanceORM.day)
                .all())
        return [attendance_to_domain(r) for r in rows]
