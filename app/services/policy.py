"""
Authorization Policy - who may read or change what.

Pure functions over the acting user and already-loaded documents; nothing
here touches the database. Rules are OR-ed: admin, or the matching
ownership rule.

The acting user is the dict produced by `app.core.auth.get_current_user`
(`id`, `role`, ...). Ids are compared by their string form so raw ObjectIds
and populated sub-documents both work.
"""

from typing import Optional

from app.services.mongo_service import ref_id

ADMIN = "admin"
RECRUITER = "recruiter"
APPLICANT = "applicant"

# What an applicant may change on their own application
APPLICANT_EDITABLE_FIELDS = frozenset({
    "coverLetter",
    "expectedSalary",
    "availableFrom",
    "noticePeriod",
    "willingToRelocate",
})


def user_id(user: Optional[dict]) -> Optional[str]:
    if not user:
        return None
    return str(user.get("id") or user.get("_id"))


def is_admin(user: Optional[dict]) -> bool:
    return bool(user) and user.get("role") == ADMIN


def owns_job(user: Optional[dict], job: dict) -> bool:
    uid = user_id(user)
    return uid is not None and uid == ref_id(job.get("postedBy"))


def is_applicant_of(user: Optional[dict], application: dict) -> bool:
    uid = user_id(user)
    return uid is not None and uid == ref_id(application.get("applicant"))


def can_manage_job(user: dict, job: dict) -> bool:
    """Update, delete, status change, duplicate and stats of a job."""
    return is_admin(user) or owns_job(user, job)


def can_view_application(user: dict, application: dict, job: Optional[dict]) -> bool:
    """Read and update: the applicant, the owner of the job applied to, or an admin."""
    if is_admin(user) or is_applicant_of(user, application):
        return True
    return job is not None and owns_job(user, job)


def can_delete_application(user: dict, application: dict) -> bool:
    return is_admin(user) or is_applicant_of(user, application)


def can_change_application_status(user: dict, job: Optional[dict]) -> bool:
    """Status, rating and screening changes belong to the job owner."""
    return is_admin(user) or (job is not None and owns_job(user, job))


def restrict_application_update(user: dict, application: dict, job: Optional[dict], changes: dict) -> dict:
    """
    Field-level filter for application updates.

    When the applicant is the only authority (not job owner, not admin), any
    field outside APPLICANT_EDITABLE_FIELDS is dropped without an error.
    """
    if is_admin(user) or (job is not None and owns_job(user, job)):
        return changes
    if is_applicant_of(user, application):
        return {k: v for k, v in changes.items() if k in APPLICANT_EDITABLE_FIELDS}
    return {}


def can_manage_interview(user: dict) -> bool:
    # Role only: any recruiter may change any interview, see DESIGN.md
    return bool(user) and user.get("role") in (RECRUITER, ADMIN)
