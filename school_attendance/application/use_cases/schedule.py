import json

from ..gate import ensure_class_owner_or_admin
from ..ports import IClassRepository
from .registry import ClassRegistry, dump_schedule
from ...domain.entities import Class, User
from ...domain.errors import ValidationError


def parse_schedule(raw: str):
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return {"raw": raw}


def describe(klass: Class) -> dict:
    return {
        "class_id": klass.id,
        "class_name": klass.name,
        "subject": klass.subject,
        "grade": klass.grade,
        "section": klass.section,
        "teacher_name": klass.teacher_name,
        "schedule": parse_schedule(klass.schedule),
    }


class ScheduleService:
    def __init__(self, classes: IClassRepository, registry: ClassRegistry):
        self.classes = classes
        self.registry = registry

    def for_class(self, class_id: int) -> dict:
        return describe(self.registry.get_raw(class_id))

    def update(self, class_id: int, schedule, requester: User) -> dict:
        if schedule in (None, "", {}):
            raise ValidationError("schedule must not be empty")
        klass = self.registry.get_raw(class_id)
        ensure_class_owner_or_admin(klass, requester, "You can only update schedules for your own classes")
        updated = self.classes.update(class_id, {"schedule": dump_schedule(schedule)})
        return describe(updated)

    def weekly(self, requester: User) -> list[dict]:
        return [describe(k) for k in self.registry.visible_to(requester)]
