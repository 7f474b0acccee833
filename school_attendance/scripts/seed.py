"""Load demo data: one admin, four teachers, eight students, six classes.

Run with ``python -m school_attendance.scripts.seed``. Existing tables are
dropped first.
"""
from __future__ import annotations

import structlog

from ..application.use_cases.registry import ClassRegistry, UserRegistry
from ..domain.entities import Role
from ..infrastructure.db import SessionLocal, engine
from ..infrastructure.models import Base
from ..infrastructure.repositories import ClassRepository, EnrollmentRepository, UserRepository
from ..infrastructure.security import PasswordHasher

logger = structlog.get_logger()

ADMIN = ("Admin User", "admin@school.com", "admin123")
TEACHER_PASSWORD = "teacher123"
STUDENT_PASSWORD = "student123"

TEACHERS = [
    ("John Smith", "john.smith@school.com", "Mathematics"),
    ("Sarah Johnson", "sarah.johnson@school.com", "Physics"),
    ("Michael Brown", "michael.brown@school.com", "Chemistry"),
    ("Emily Davis", "emily.davis@school.com", "English"),
]

STUDENTS = [
    ("Alice Wilson", "alice.wilson@school.com", "10", "A"),
    ("Bob Miller", "bob.miller@school.com", "10", "A"),
    ("Carol Garcia", "carol.garcia@school.com", "10", "A"),
    ("David Rodriguez", "david.rodriguez@school.com", "10", "A"),
    ("Eva Martinez", "eva.martinez@school.com", "10", "B"),
    ("Frank Lee", "frank.lee@school.com", "10", "B"),
    ("Grace Taylor", "grace.taylor@school.com", "11", "A"),
    ("Henry Anderson", "henry.anderson@school.com", "11", "A"),
]

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday")

# name, subject, grade, section, teacher index, daily slot
CLASSES = [
    ("Mathematics 10A", "Mathematics", "10", "A", 0, "9:00 AM - 10:00 AM"),
    ("Physics 10A", "Physics", "10", "A", 1, "10:00 AM - 11:00 AM"),
    ("Chemistry 10A", "Chemistry", "10", "A", 2, "11:00 AM - 12:00 PM"),
    ("English 10A", "English", "10", "A", 3, "2:00 PM - 3:00 PM"),
    ("Mathematics 10B", "Mathematics", "10", "B", 0, "1:00 PM - 2:00 PM"),
    ("Physics 10B", "Physics", "10", "B", 1, "3:00 PM - 4:00 PM"),
]

# 10A students take every 10A class, 10B students take the 10B classes
ENROLLMENTS = (
    [(s, c) for s in range(4) for c in range(4)]
    + [(s, c) for s in (4, 5) for c in (4, 5)]
)


def seed(db) -> dict:
    users = UserRepository(db)
    registry = UserRegistry(users, PasswordHasher())
    classes = ClassRegistry(ClassRepository(db), EnrollmentRepository(db), users)

    name, email, password = ADMIN
    registry.create(name, email, password, Role.ADMIN)

    teachers = [
        registry.create(name, email, TEACHER_PASSWORD, Role.TEACHER, {"subject": subject})
        for name, email, subject in TEACHERS
    ]
    students = [
        registry.create(name, email, STUDENT_PASSWORD, Role.STUDENT,
                        {"student_code": f"STU{i + 1:04d}", "grade": grade, "section": section})
        for i, (name, email, grade, section) in enumerate(STUDENTS)
    ]

    created = []
    for name, subject, grade, section, teacher_idx, slot in CLASSES:
        created.append(classes.create({
            "name": name,
            "subject": subject,
            "grade": grade,
            "section": section,
            "teacher_id": teachers[teacher_idx].teacher.id,
            "schedule": {day: slot for day in WEEKDAYS},
        }))

    for student_idx, class_idx in ENROLLMENTS:
        classes.enroll(created[class_idx].id, students[student_idx].student.id)

    return {
        "teachers": len(teachers),
        "students": len(students),
        "classes": len(created),
        "enrollments": len(ENROLLMENTS),
    }


def main() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        counts = seed(db)
    finally:
        db.close()
    logger.info("database_seeded", **counts)
    print(f"OK: seeded {engine.url}")
    print(f"  admin:    {ADMIN[1]} / {ADMIN[2]}")
    print(f"  teachers: {TEACHERS[0][1]} ... / {TEACHER_PASSWORD}")
    print(f"  students: {STUDENTS[0][1]} ... / {STUDENT_PASSWORD}")


if __name__ == "__main__":
    main()
