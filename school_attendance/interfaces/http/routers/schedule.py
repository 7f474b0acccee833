from fastapi import APIRouter, Depends

from ....application.use_cases.schedule import ScheduleService
from ....domain.entities import User
from ....infrastructure.cache import delete_cache, get_cache, schedule_key, set_cache
from ....infrastructure.metrics import cache_hits_total, cache_misses_total
from ..authz import get_current_user, require_staff
from ..deps import get_schedule_service
from ..schemas import ScheduleOut, ScheduleUpdate

router = APIRouter(prefix="/api/schedule", tags=["schedule"])

@router.get("/class/{class_id}", response_model=ScheduleOut, dependencies=[Depends(get_current_user)])
def class_schedule(class_id: int, service: ScheduleService = Depends(get_schedule_service)):
    cache_key = schedule_key(class_id)
    cached = get_cache(cache_key)
    if cached:
        cache_hits_total.inc()
        return cached

    cache_misses_total.inc()
    result = ScheduleOut(**service.for_class(class_id))
    set_cache(cache_key, result.model_dump())
    return result

@router.put("/update", response_model=ScheduleOut)
def update_schedule(payload: ScheduleUpdate, user: User = Depends(require_staff),
                    service: ScheduleService = Depends(get_schedule_service)):
    result = service.update(payload.class_id, payload.schedule, user)
    delete_cache(schedule_key(payload.class_id))
    return ScheduleOut(**result)

@router.get("/weekly", response_model=list[ScheduleOut])
def weekly(user: User = Depends(get_current_user), service: ScheduleService = Depends(get_schedule_service)):
    return [ScheduleOut(**item) for item in service.weekly(user)]
