from fastapi import APIRouter, Depends

from ....application.use_cases.reports import ReportService
from ....domain.entities import User
from ..authz import require_admin, require_student, require_teacher
from ..deps import get_report_service
from ..schemas import AdminDashboard, StudentDashboard, TeacherDashboard, attendance_out, user_out

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

@router.get("/student", response_model=StudentDashboard)
def student_dashboard(user: User = Depends(require_student), reports: ReportService = Depends(get_report_service)):
    data = reports.student(user)
    data["recent_attendance"] = [attendance_out(r) for r in data["recent_attendance"]]
    return StudentDashboard(**data)

@router.get("/teacher", response_model=TeacherDashboard)
def teacher_dashboard(user: User = Depends(require_teacher), reports: ReportService = Depends(get_report_service)):
    return TeacherDashboard(**reports.teacher(user))

@router.get("/admin", response_model=AdminDashboard, dependencies=[Depends(require_admin)])
def admin_dashboard(reports: ReportService = Depends(get_report_service)):
    data = reports.admin()
    data["recent_users"] = [user_out(u) for u in data["recent_users"]]
    return AdminDashboard(**data)
