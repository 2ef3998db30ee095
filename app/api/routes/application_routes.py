"""
Application Routes

GET /applications - List applications (recruiters: to their jobs; admin: all)
GET /applications/my-applications - Caller's applications (applicant)
POST /applications - Apply to a job, multipart with optional resume (applicant)
GET /applications/job/{job_id} - Applications to one job (recruiter/admin)
GET /applications/export/{job_id} - CSV export for one job (job owner or admin)
PATCH /applications/bulk-status - Set one status on many applications
GET /applications/{application_id} - Get application
PUT /applications/{application_id} - Update application
DELETE /applications/{application_id} - Delete application
PATCH /applications/{application_id}/status - Change status (job owner or admin)
POST /applications/{application_id}/notes - Add a note
POST /applications/{application_id}/rating - Rate the candidate (job owner or admin)
PUT /applications/{application_id}/screening - Store an external screening score
GET /applications/{application_id}/resume - Download the attached resume
"""

import csv
import io
from datetime import datetime
from typing import Optional, Tuple

import structlog
from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse, Response
from pymongo import DESCENDING
from starlette.concurrency import run_in_threadpool

from app.api.deps import Pagination, get_services, paginated, parse_object_id
from app.core.auth import get_current_user, require_roles
from app.core.config import Settings, get_settings
from app.core.errors import AuthorizationError, ConflictError, NotFoundError
from app.schemas.schemas import (
    ApplicationRating,
    ApplicationStatus,
    ApplicationStatusUpdate,
    ApplicationUpdate,
    BulkStatusUpdate,
    CreateApplicationCommand,
    JobStatus,
    NoteCreate,
    ScreeningScore,
)
from app.services import lifecycle, policy
from app.services.aggregation import recompute_applications_count
from app.services.mongo_service import (
    JOB_SUMMARY_FIELDS,
    USER_NAME_FIELDS,
    Services,
    serialize_doc,
    to_object_id,
)
from app.utils.file_upload import delete_file, resolve_stored_path, save_resume

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/applications", tags=["Applications"])

LIST_PROJECTION = {"parsedResumeData": 0}
REASON_FIELDS = {
    ApplicationStatus.rejected.value: "rejectionReason",
    ApplicationStatus.withdrawn.value: "withdrawalReason",
}
EXPORT_COLUMNS = [
    "Applicant", "Email", "Phone", "Status", "Applied At",
    "Expected Salary", "Notice Period", "Rating", "Screening Score",
]


def _load_application(services: Services, application_id: str) -> Tuple[dict, Optional[dict]]:
    """The application and the job it was made for (None if the job is gone)."""
    application = services.applications.get_by_id(parse_object_id(application_id, "application"))
    if not application:
        raise NotFoundError("Application not found")
    return application, services.jobs.get_by_id(application["job"])


def _visible_to(user: dict, application: dict, job: Optional[dict]) -> dict:
    """Private notes are only shown to the job owner and admins."""
    if policy.can_change_application_status(user, job):
        return application
    notes = [n for n in application.get("notes", []) if not n.get("isPrivate")]
    return {**application, "notes": notes}


def _populate(services: Services, application: dict, job_fields=None) -> dict:
    services.applications.populate([application], "job", services.jobs, job_fields or ["title", "company"])
    services.applications.populate([application], "applicant", services.users, USER_NAME_FIELDS)
    return application


def _list(services: Services, query: dict, pagination: Pagination, job_fields) -> dict:
    apps = services.applications.find(
        query,
        sort=[("createdAt", DESCENDING)],
        skip=pagination.skip,
        limit=pagination.limit,
        projection=LIST_PROJECTION,
    )
    services.applications.populate(apps, "job", services.jobs, job_fields)
    services.applications.populate(apps, "applicant", services.users, USER_NAME_FIELDS)
    return paginated(apps, services.applications.count(query), pagination)


def _status_fields(status: str, reason: Optional[str]) -> dict:
    field = REASON_FIELDS.get(status)
    return {field: reason} if field and reason else {}


@router.get("")
async def list_applications(
    pagination: Pagination = Depends(),
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    query = {}
    if not policy.is_admin(user):
        query["job"] = {"$in": services.jobs.owned_job_ids(user["id"])}
    return _list(services, query, pagination, ["title", "company"])


@router.get("/my-applications")
async def my_applications(
    pagination: Pagination = Depends(),
    user: dict = Depends(require_roles("applicant")),
    services: Services = Depends(get_services),
):
    return _list(services, {"applicant": to_object_id(user["id"])}, pagination, JOB_SUMMARY_FIELDS)


@router.post("", status_code=201)
async def create_application(
    job_id: str = Form(..., alias="jobId"),
    cover_letter: str = Form("", alias="coverLetter"),
    custom_answers: Optional[str] = Form(None, alias="customAnswers"),
    resume: Optional[UploadFile] = File(None),
    user: dict = Depends(require_roles("applicant")),
    services: Services = Depends(get_services),
    settings: Settings = Depends(get_settings),
):
    """
    Apply to a job.

    The job must be active and its deadline not passed; one application per
    applicant and job. The job's applicationsCount is recounted afterwards.
    """
    command = CreateApplicationCommand.model_validate(
        {"jobId": job_id, "coverLetter": cover_letter, "customAnswers": custom_answers}
    )

    job = services.jobs.get_by_id(command.job_id)
    if not job:
        raise NotFoundError("Job not found")
    if job.get("status") != JobStatus.active.value:
        raise ConflictError("Job is not accepting applications")
    deadline = job.get("applicationDeadline")
    if deadline is not None and datetime.utcnow() > deadline:
        raise ConflictError("Application deadline has passed")
    if services.applications.find_for(user["id"], job["_id"]):
        raise ConflictError("You have already applied for this job")

    doc = {
        "job": job["_id"],
        "applicant": to_object_id(user["id"]),
        "status": ApplicationStatus.submitted.value,
        "coverLetter": command.cover_letter,
        "customAnswers": [a.to_document() for a in command.custom_answers],
        "notes": [],
        "timeline": [],
        "interviews": [],
    }
    if resume is not None and resume.filename:
        doc["resume"] = await save_resume(resume, settings)

    try:
        application = services.applications.create(doc)
    except Exception:
        # the stored file has no application referencing it
        if "resume" in doc:
            await run_in_threadpool(delete_file, doc["resume"]["path"])
        raise
    recompute_applications_count(services, job["_id"])
    logger.info("application_created", application_id=str(application["_id"]), job_id=str(job["_id"]))

    _populate(services, application)
    return {"success": True, "data": serialize_doc(application)}


@router.get("/job/{job_id}")
async def applications_for_job(
    job_id: str,
    pagination: Pagination = Depends(),
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    query = {"job": parse_object_id(job_id, "job")}
    return _list(services, query, pagination, ["title", "company"])


@router.get("/export/{job_id}")
async def export_applications(
    job_id: str,
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    """All applications to one job as a CSV attachment."""
    job = services.jobs.get_by_id(parse_object_id(job_id, "job"))
    if not job:
        raise NotFoundError("Job not found")
    if not policy.can_manage_job(user, job):
        raise AuthorizationError("Not authorized to export applications for this job")

    apps = services.applications.find(
        {"job": job["_id"]}, sort=[("createdAt", DESCENDING)], projection=LIST_PROJECTION
    )
    services.applications.populate(apps, "applicant", services.users, USER_NAME_FIELDS + ["phone"])

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_COLUMNS)
    for app in apps:
        applicant = app.get("applicant") if isinstance(app.get("applicant"), dict) else {}
        salary = app.get("expectedSalary") or {}
        writer.writerow([
            f"{applicant.get('firstName', '')} {applicant.get('lastName', '')}".strip(),
            applicant.get("email", ""),
            applicant.get("phone") or "",
            app.get("status", ""),
            app["createdAt"].isoformat() if app.get("createdAt") else "",
            f"{salary.get('amount')} {salary.get('currency', '')}".strip() if salary.get("amount") is not None else "",
            app.get("noticePeriod") or "",
            (app.get("rating") or {}).get("overall") or "",
            (app.get("aiScreeningScore") or {}).get("overall") or "",
        ])

    logger.info("applications_exported", job_id=job_id, rows=len(apps))
    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="applications-{job_id}.csv"'},
    )


@router.patch("/bulk-status")
async def bulk_update_status(
    request: BulkStatusUpdate,
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    """
    Apply one status to many applications.
    Applications that do not exist or belong to someone else's job are skipped.
    """
    updated, skipped = [], []
    extra = _status_fields(request.status, request.reason)
    for application_id in request.application_ids:
        application = services.applications.get_by_id(application_id)
        job = services.jobs.get_by_id(application["job"]) if application else None
        if application is None or not policy.can_change_application_status(user, job):
            skipped.append(application_id)
            continue
        lifecycle.set_application_status(
            services, application["_id"], request.status, user["id"], request.reason, extra
        )
        updated.append(application_id)

    return {
        "success": True,
        "message": f"{len(updated)} applications updated",
        "data": {"updated": updated, "skipped": skipped},
    }


@router.get("/{application_id}")
async def get_application(
    application_id: str,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    application, job = _load_application(services, application_id)
    if not policy.can_view_application(user, application, job):
        raise AuthorizationError("Not authorized to view this application")

    application = _visible_to(user, application, job)
    _populate(services, application, ["title", "company", "description", "requirements", "postedBy"])
    return {"success": True, "data": serialize_doc(application)}


@router.put("/{application_id}")
async def update_application(
    application_id: str,
    changes: ApplicationUpdate,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """
    Applicants may only change their own submission details; other fields
    they send are ignored. Job owners and admins may change anything,
    including status (recorded in the timeline).
    """
    application, job = _load_application(services, application_id)
    if not policy.can_view_application(user, application, job):
        raise AuthorizationError("Not authorized to update this application")

    fields = policy.restrict_application_update(user, application, job, changes.changes_for(application))
    status = fields.pop("status", None)
    if status is not None:
        updated = lifecycle.set_application_status(services, application["_id"], status, user["id"], extra_fields=fields)
    elif fields:
        updated = services.applications.set_fields(application["_id"], fields)
    else:
        updated = application

    _populate(services, updated)
    return {"success": True, "data": serialize_doc(_visible_to(user, updated, job))}


@router.delete("/{application_id}")
async def delete_application(
    application_id: str,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    application, _ = _load_application(services, application_id)
    if not policy.can_delete_application(user, application):
        raise AuthorizationError("Not authorized to delete this application")

    services.applications.delete_by_id(application["_id"])
    recompute_applications_count(services, application["job"])
    logger.info("application_deleted", application_id=application_id, by=user["id"])
    return {"success": True, "message": "Application deleted successfully"}


@router.patch("/{application_id}/status")
async def update_application_status(
    application_id: str,
    request: ApplicationStatusUpdate,
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    application, job = _load_application(services, application_id)
    if not policy.can_change_application_status(user, job):
        raise AuthorizationError("Not authorized to update this application")

    updated = lifecycle.set_application_status(
        services,
        application["_id"],
        request.status,
        user["id"],
        request.reason,
        _status_fields(request.status, request.reason),
    )
    return {"success": True, "data": serialize_doc(updated)}


@router.post("/{application_id}/notes", status_code=201)
async def add_note(
    application_id: str,
    request: NoteCreate,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Application notes are private unless stated otherwise."""
    application, job = _load_application(services, application_id)
    if not policy.can_view_application(user, application, job):
        raise AuthorizationError("Not authorized to add notes to this application")

    is_private = True if request.is_private is None else request.is_private
    note = lifecycle.note_entry(user["id"], request.content, is_private)
    services.applications.update_by_id(application["_id"], {"$push": {"notes": note}})
    return {"success": True, "message": "Note added", "data": serialize_doc(note)}


@router.post("/{application_id}/rating")
async def rate_application(
    application_id: str,
    request: ApplicationRating,
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    application, job = _load_application(services, application_id)
    if not policy.can_change_application_status(user, job):
        raise AuthorizationError("Not authorized to rate this application")

    rating = {
        **request.to_document(),
        "ratedBy": to_object_id(user["id"]),
        "ratedAt": datetime.utcnow(),
    }
    updated = services.applications.set_fields(application["_id"], {"rating": rating})
    return {"success": True, "message": "Application rated", "data": serialize_doc(updated)}


@router.put("/{application_id}/screening")
async def store_screening_score(
    application_id: str,
    request: ScreeningScore,
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    """Store a score produced by an external screening service, unchanged."""
    application, job = _load_application(services, application_id)
    if not policy.can_change_application_status(user, job):
        raise AuthorizationError("Not authorized to update this application")

    score = {**request.to_document(), "lastUpdated": datetime.utcnow()}
    updated = services.applications.set_fields(application["_id"], {"aiScreeningScore": score})
    return {"success": True, "data": serialize_doc(updated)}


@router.get("/{application_id}/resume")
async def download_resume(
    application_id: str,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
    settings: Settings = Depends(get_settings),
):
    application, job = _load_application(services, application_id)
    if not policy.can_view_application(user, application, job):
        raise AuthorizationError("Not authorized to download this resume")

    resume = application.get("resume")
    if not resume or not resume.get("path"):
        raise NotFoundError("Resume not found for this application")

    path = resolve_stored_path(resume, settings)
    if path is None:
        raise NotFoundError("Resume file not found on server")

    return FileResponse(
        path,
        media_type=resume.get("mimetype") or "application/octet-stream",
        filename=resume.get("originalName") or resume.get("filename"),
    )
