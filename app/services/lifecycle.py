"""
Status Lifecycle Engine - status writes and their side effects.

Any status value may be set from any other one; there is no transition
graph. What this module guarantees is the bookkeeping around a change:

- Application status change: one timeline entry per change, written in the
  same atomic update as the status (never on creation).
- Interview status change: completed -> application interviewed,
  cancelled -> application shortlisted.
- Interview scheduled -> application interview_scheduled;
  interview removed -> application shortlisted.
- Reschedule: old date kept in rescheduledFrom, status rescheduled.

Job status is a plain field write with no cascade, handled in the job routes.
"""

from datetime import datetime
from typing import Optional

import structlog
from bson import ObjectId

from app.schemas.schemas import ApplicationStatus, InterviewStatus
from app.services.mongo_service import IdLike, Services, to_object_id

logger = structlog.get_logger(__name__)

# Interview status -> application status it forces
INTERVIEW_CASCADE = {
    InterviewStatus.completed.value: ApplicationStatus.interviewed.value,
    InterviewStatus.cancelled.value: ApplicationStatus.shortlisted.value,
}


def timeline_entry(status: str, changed_by: Optional[IdLike] = None, reason: Optional[str] = None) -> dict:
    entry = {"status": status, "timestamp": datetime.utcnow()}
    if changed_by is not None:
        entry["changedBy"] = to_object_id(changed_by)
    if reason:
        entry["reason"] = reason
    return entry


def set_application_status(
    services: Services,
    application_id: IdLike,
    status: str,
    changed_by: Optional[IdLike] = None,
    reason: Optional[str] = None,
    extra_fields: Optional[dict] = None,
) -> Optional[dict]:
    """
    Set an existing application's status and append to its timeline.

    The entry is appended even when the value does not change. Returns the
    updated application, or None when it no longer exists.
    """
    fields = {"status": status}
    if extra_fields:
        fields.update(extra_fields)
    updated = services.applications.update_by_id(
        application_id,
        {"$set": fields, "$push": {"timeline": timeline_entry(status, changed_by, reason)}},
    )
    if updated is not None:
        logger.info(
            "application_status_changed",
            application_id=str(application_id),
            status=status,
            changed_by=str(changed_by) if changed_by else None,
        )
    return updated


def set_interview_status(
    services: Services,
    interview: dict,
    status: str,
    changed_by: Optional[IdLike] = None,
    cancellation_reason: Optional[str] = None,
) -> dict:
    """Write the interview status, then cascade to the parent application."""
    fields = {"status": status}
    if status == InterviewStatus.cancelled.value and cancellation_reason:
        fields["cancellationReason"] = cancellation_reason
    updated = services.interviews.set_fields(interview["_id"], fields)
    logger.info("interview_status_changed", interview_id=str(interview["_id"]), status=status)

    cascaded = INTERVIEW_CASCADE.get(status)
    if cascaded is not None:
        set_application_status(
            services,
            interview["application"],
            cascaded,
            changed_by=changed_by,
            reason=f"Interview {status}",
        )
    return updated


def schedule_interview(services: Services, doc: dict, scheduled_by: IdLike) -> dict:
    """
    Insert an interview and move its application to interview_scheduled.
    The caller has already checked that the application has no interview.
    """
    notes = doc.get("notes")
    doc = {**doc, "status": InterviewStatus.scheduled.value, "noteHistory": [], "feedback": {}}
    if notes:
        doc["noteHistory"] = [note_entry(scheduled_by, notes, is_private=False)]
    interview = services.interviews.insert(doc)

    services.applications.update_by_id(doc["application"], {"$addToSet": {"interviews": interview["_id"]}})
    set_application_status(
        services,
        doc["application"],
        ApplicationStatus.interview_scheduled.value,
        changed_by=scheduled_by,
    )
    logger.info("interview_scheduled", interview_id=str(interview["_id"]), application_id=str(doc["application"]))
    return interview


def reschedule_interview(
    services: Services,
    interview: dict,
    new_date: datetime,
    reason: Optional[str] = None,
) -> dict:
    """Move an interview to a new date in one atomic update."""
    updated = services.interviews.set_fields(
        interview["_id"],
        {
            "rescheduledFrom": interview.get("scheduledDate"),
            "scheduledDate": new_date,
            "rescheduledReason": reason,
            "status": InterviewStatus.rescheduled.value,
        },
    )
    logger.info("interview_rescheduled", interview_id=str(interview["_id"]), scheduled_date=new_date.isoformat())
    return updated


def remove_interview(services: Services, interview: dict, removed_by: Optional[IdLike] = None) -> None:
    """Delete an interview and put its application back to shortlisted."""
    set_application_status(
        services,
        interview["application"],
        ApplicationStatus.shortlisted.value,
        changed_by=removed_by,
        reason="Interview removed",
    )
    services.applications.update_by_id(interview["application"], {"$pull": {"interviews": interview["_id"]}})
    services.interviews.delete_by_id(interview["_id"])
    logger.info("interview_removed", interview_id=str(interview["_id"]))


def note_entry(author: IdLike, content: str, is_private: bool) -> dict:
    return {
        "_id": ObjectId(),
        "author": to_object_id(author),
        "content": content,
        "isPrivate": is_private,
        "createdAt": datetime.utcnow(),
    }
