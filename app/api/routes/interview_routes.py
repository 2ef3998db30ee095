"""
Interview Routes

GET /interviews - List interviews (recruiter/admin)
GET /interviews/my-interviews - Applicant: own; recruiter: as interviewer; admin: all
GET /interviews/upcoming - Next 10 open interviews in the caller's scope
GET /interviews/date/{date} - Interviews on one day (YYYY-MM-DD)
POST /interviews - Schedule an interview for an application (recruiter/admin)
GET /interviews/{interview_id} - Get interview
PUT /interviews/{interview_id} - Update interview details (recruiter/admin)
DELETE /interviews/{interview_id} - Remove interview (recruiter/admin)
PATCH /interviews/{interview_id}/status - Change status, cascades to the application
POST /interviews/{interview_id}/feedback - Record feedback (recruiter/admin)
PATCH /interviews/{interview_id}/reschedule - Move to a new date
POST /interviews/{interview_id}/notes - Add a note (recruiter/admin)
"""

from datetime import datetime, timedelta
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from pymongo import ASCENDING

from app.api.deps import Pagination, get_services, paginated, parse_object_id
from app.core.auth import get_current_user, require_roles
from app.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.schemas.schemas import (
    InterviewCreate,
    InterviewFeedback,
    InterviewReschedule,
    InterviewStatus,
    InterviewStatusUpdate,
    InterviewUpdate,
    NoteCreate,
    UserRole,
)
from app.services import lifecycle, policy
from app.services.mongo_service import USER_NAME_FIELDS, Services, serialize_doc, serialize_docs, to_object_id

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/interviews", tags=["Interviews"])

UPCOMING_LIMIT = 10
FEEDBACK_CATEGORIES = ("technical", "communication", "problemSolving", "cultural", "overall")


def _populate(services: Services, interviews: list, job_fields=None) -> list:
    services.interviews.populate(interviews, "application", services.applications, ["status"])
    services.interviews.populate(interviews, "job", services.jobs, job_fields or ["title", "company"])
    services.interviews.populate(interviews, "applicant", services.users, USER_NAME_FIELDS)
    services.interviews.populate(interviews, "interviewer", services.users, USER_NAME_FIELDS)
    return interviews


def _scope(services: Services, user: dict) -> dict:
    """Interviews a user may list: applicants their own, recruiters those they conduct."""
    if user["role"] == UserRole.applicant.value:
        return {"application": {"$in": services.applications.ids_for_applicant(user["id"])}}
    if user["role"] == UserRole.recruiter.value:
        return {"interviewer": to_object_id(user["id"])}
    return {}


def _load_interview(services: Services, interview_id: str) -> dict:
    interview = services.interviews.get_by_id(parse_object_id(interview_id, "interview"))
    if not interview:
        raise NotFoundError("Interview not found")
    return interview


def _load_managed_interview(services: Services, interview_id: str, user: dict) -> dict:
    interview = _load_interview(services, interview_id)
    if not policy.can_manage_interview(user):
        raise AuthorizationError("Not authorized to update this interview")
    return interview


def _respond(services: Services, interview: dict, message: Optional[str] = None) -> dict:
    body = {"success": True, "data": serialize_doc(_populate(services, [interview])[0])}
    if message:
        body["message"] = message
    return body


def _list(services: Services, query: dict, pagination: Pagination) -> dict:
    interviews = services.interviews.find(
        query, sort=[("scheduledDate", ASCENDING)], skip=pagination.skip, limit=pagination.limit
    )
    _populate(services, interviews)
    return paginated(interviews, services.interviews.count(query), pagination)


@router.get("")
async def list_interviews(
    status: Optional[InterviewStatus] = Query(None),
    application_id: Optional[str] = Query(None, alias="applicationId"),
    job_id: Optional[str] = Query(None, alias="jobId"),
    pagination: Pagination = Depends(),
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    query: dict = {}
    if status:
        query["status"] = status.value
    if application_id:
        query["application"] = parse_object_id(application_id, "application")
    if job_id:
        query["job"] = parse_object_id(job_id, "job")
    return _list(services, query, pagination)


@router.get("/my-interviews")
async def my_interviews(
    status: Optional[InterviewStatus] = Query(None),
    pagination: Pagination = Depends(),
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    query = _scope(services, user)
    if status:
        query["status"] = status.value
    return _list(services, query, pagination)


@router.get("/upcoming")
async def upcoming_interviews(
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    query = {
        **_scope(services, user),
        "scheduledDate": {"$gte": datetime.utcnow()},
        "status": {"$nin": [InterviewStatus.cancelled.value, InterviewStatus.completed.value]},
    }
    interviews = services.interviews.find(query, sort=[("scheduledDate", ASCENDING)], limit=UPCOMING_LIMIT)
    _populate(services, interviews)
    return {"success": True, "count": len(interviews), "data": serialize_docs(interviews)}


@router.get("/date/{date}")
async def interviews_on_date(
    date: str,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    try:
        day = datetime.strptime(date, "%Y-%m-%d")
    except ValueError:
        raise ValidationError.for_field("date", "Date must be in YYYY-MM-DD format", date)

    query = {**_scope(services, user), "scheduledDate": {"$gte": day, "$lt": day + timedelta(days=1)}}
    interviews = services.interviews.find(query, sort=[("scheduledDate", ASCENDING)])
    _populate(services, interviews)
    return {"success": True, "count": len(interviews), "data": serialize_docs(interviews)}


@router.post("", status_code=201)
async def create_interview(
    request: InterviewCreate,
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    """Schedule the (single) interview of an application."""
    application = services.applications.get_by_id(request.application_id)
    if not application:
        raise NotFoundError("Application not found")
    if services.interviews.get_for_application(application["_id"]):
        raise ConflictError("Interview already scheduled for this application")

    doc = {
        "application": application["_id"],
        "job": application["job"],
        "applicant": application["applicant"],
        "interviewer": to_object_id(request.interviewer_id or user["id"]),
        "type": request.type,
        "round": request.round,
        "scheduledDate": request.scheduled_date,
        "duration": request.duration,
        "location": request.location,
        "meetingLink": request.meeting_link,
        "notes": request.notes or "",
    }
    interview = lifecycle.schedule_interview(services, doc, user["id"])
    return _respond(services, interview, "Interview scheduled successfully")


@router.get("/{interview_id}")
async def get_interview(
    interview_id: str,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    interview = _load_interview(services, interview_id)
    if not policy.can_manage_interview(user) and policy.user_id(user) != str(interview.get("applicant")):
        raise AuthorizationError("Not authorized to view this interview")
    _populate(services, [interview], ["title", "company", "description", "requirements"])
    return {"success": True, "data": serialize_doc(interview)}


@router.put("/{interview_id}")
async def update_interview(
    interview_id: str,
    changes: InterviewUpdate,
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    interview = _load_managed_interview(services, interview_id, user)
    fields = changes.changes_for(interview)
    updated = services.interviews.set_fields(interview["_id"], fields) if fields else interview
    return _respond(services, updated, "Interview updated successfully")


@router.delete("/{interview_id}")
async def delete_interview(
    interview_id: str,
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    interview = _load_managed_interview(services, interview_id, user)
    lifecycle.remove_interview(services, interview, user["id"])
    return {"success": True, "message": "Interview deleted successfully"}


@router.patch("/{interview_id}/status")
async def update_interview_status(
    interview_id: str,
    request: InterviewStatusUpdate,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    interview = _load_managed_interview(services, interview_id, user)
    updated = lifecycle.set_interview_status(
        services, interview, request.status, user["id"], request.cancellation_reason
    )
    return _respond(services, updated, "Interview status updated successfully")


@router.post("/{interview_id}/feedback")
async def add_feedback(
    interview_id: str,
    request: InterviewFeedback,
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    """Set feedback per category; categories not sent keep their earlier value."""
    interview = _load_managed_interview(services, interview_id, user)
    given = request.to_document(exclude_unset=True)
    fields = {f"feedback.{category}": given[category] for category in FEEDBACK_CATEGORIES if given.get(category)}
    if not fields:
        raise ValidationError("At least one feedback category is required")

    fields.update({"feedbackBy": to_object_id(user["id"]), "feedbackDate": datetime.utcnow()})
    updated = services.interviews.set_fields(interview["_id"], fields)
    logger.info("interview_feedback_added", interview_id=interview_id, categories=sorted(given))
    return _respond(services, updated, "Feedback added successfully")


@router.patch("/{interview_id}/reschedule")
async def reschedule_interview(
    interview_id: str,
    request: InterviewReschedule,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    interview = _load_managed_interview(services, interview_id, user)
    updated = lifecycle.reschedule_interview(services, interview, request.scheduled_date, request.reason)
    return _respond(services, updated, "Interview rescheduled successfully")


@router.post("/{interview_id}/notes", status_code=201)
async def add_interview_note(
    interview_id: str,
    request: NoteCreate,
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    """Interview notes are shared unless marked private."""
    interview = _load_managed_interview(services, interview_id, user)
    note = lifecycle.note_entry(user["id"], request.content, bool(request.is_private))
    services.interviews.update_by_id(interview["_id"], {"$push": {"noteHistory": note}})
    return {"success": True, "message": "Note added", "data": serialize_doc(note)}
