from datetime import date

from fastapi import APIRouter, Depends, Query, Request

from ....application.use_cases.checkin import CheckinService
from ....domain.entities import User
from ....domain.errors import AppError
from ....infrastructure.metrics import checkin_redeems_total, checkin_tokens_issued_total
from ..authz import require_staff, require_student
from ..deps import get_checkin_service
from ..limits import limiter, SCAN_LIMIT
from ..schemas import (
    AttendanceTotals,
    ClassAttendanceResp,
    ClassBrief,
    GenerateQrReq,
    GenerateQrResp,
    QrCodeOut,
    ScanReq,
    ScanResp,
    StudentAttendanceResp,
    StudentDayStatus,
    StudentTotals,
    attendance_out,
)

router = APIRouter(prefix="/api/attendance", tags=["attendance"])

@router.post("/generate-qr", response_model=GenerateQrResp)
def generate_qr(payload: GenerateQrReq, user: User = Depends(require_staff),
                service: CheckinService = Depends(get_checkin_service)):
    token, image = service.issue(payload.class_id, user)
    checkin_tokens_issued_total.inc()
    return GenerateQrResp(qr_code=QrCodeOut(
        id=token.id, code=token.code, class_id=token.class_id, expires_at=token.expires_at, image=image,
    ))

@router.post("/scan", response_model=ScanResp)
@limiter.limit(SCAN_LIMIT)
def scan(request: Request, payload: ScanReq, user: User = Depends(require_student),
         service: CheckinService = Depends(get_checkin_service)):
    try:
        record = service.redeem(payload.qr_code, user)
    except AppError as e:
        checkin_redeems_total.labels(outcome=e.code).inc()
        raise
    checkin_redeems_total.labels(outcome="marked").inc()
    return ScanResp(attendance=attendance_out(record))

@router.get("/class/{class_id}", response_model=ClassAttendanceResp)
def class_attendance(class_id: int, day: date | None = Query(None, alias="date"),
                     user: User = Depends(require_staff),
                     service: CheckinService = Depends(get_checkin_service)):
    summary = service.class_attendance(class_id, day, user)
    return ClassAttendanceResp(
        klass=ClassBrief.model_validate(summary.klass),
        day=summary.day,
        attendance=[StudentDayStatus(**row) for row in summary.rows],
        summary=AttendanceTotals(**summary.totals),
    )

@router.get("/student", response_model=StudentAttendanceResp)
def student_attendance(user: User = Depends(require_student),
                       service: CheckinService = Depends(get_checkin_service)):
    records, totals = service.student_attendance(user)
    return StudentAttendanceResp(records=[attendance_out(r) for r in records], summary=StudentTotals(**totals))
