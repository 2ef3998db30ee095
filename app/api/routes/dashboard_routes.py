"""
Dashboard Routes

GET /dashboard/stats - Statistics for the caller's role
GET /dashboard/applicant - Applicant dashboard (applicant only)
GET /dashboard/recruiter - Recruiter dashboard (recruiter only)
GET /dashboard/admin - Admin dashboard (admin only)
GET /dashboard/activity - Recent status changes visible to the caller
GET /dashboard/analytics - Breakdowns and totals (recruiter/admin)

Everything is computed from live data on each request.
"""

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_services
from app.core.auth import get_current_user, require_roles
from app.services import aggregation
from app.services.mongo_service import Services, serialize_doc

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats")
async def dashboard_stats(user: dict = Depends(get_current_user), services: Services = Depends(get_services)):
    return {"success": True, "data": serialize_doc(await aggregation.dashboard_stats(services, user))}


@router.get("/applicant")
async def applicant_dashboard(
    user: dict = Depends(require_roles("applicant")),
    services: Services = Depends(get_services),
):
    return {"success": True, "data": serialize_doc(await aggregation.applicant_stats(services, user["id"]))}


@router.get("/recruiter")
async def recruiter_dashboard(
    user: dict = Depends(require_roles("recruiter")),
    services: Services = Depends(get_services),
):
    return {"success": True, "data": serialize_doc(await aggregation.recruiter_stats(services, user["id"]))}


@router.get("/admin")
async def admin_dashboard(
    user: dict = Depends(require_roles("admin")),
    services: Services = Depends(get_services),
):
    return {"success": True, "data": serialize_doc(await aggregation.admin_stats(services))}


@router.get("/activity")
async def recent_activity(user: dict = Depends(get_current_user), services: Services = Depends(get_services)):
    events = await run_in_threadpool(aggregation.recent_activity, services, user)
    return {"success": True, "count": len(events), "data": serialize_doc(events)}


@router.get("/analytics")
async def analytics(
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    return {"success": True, "data": serialize_doc(await aggregation.analytics(services, user))}
