"""
Job Routes

GET /jobs - List active jobs with filters
GET /jobs/search - Same listing, search-focused
GET /jobs/featured - 6 newest featured active jobs
GET /jobs/my-jobs - Jobs posted by the caller (recruiter/admin)
POST /jobs - Create job posting (recruiter/admin)
GET /jobs/{job_id} - Get job details (counts a view)
PUT /jobs/{job_id} - Update job (owner or admin)
DELETE /jobs/{job_id} - Delete job (owner or admin)
PATCH /jobs/{job_id}/status - Change job status (owner or admin)
POST /jobs/{job_id}/duplicate - Copy a job as a draft (owner or admin)
GET /jobs/{job_id}/stats - Views and application counts (owner or admin)
"""

import re
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from pymongo import ASCENDING, DESCENDING

from app.api.deps import Pagination, get_services, paginated, parse_object_id
from app.core.auth import get_optional_user, require_roles
from app.core.errors import AuthorizationError, NotFoundError
from app.schemas.schemas import JobCategory, JobCreate, JobSort, JobStatus, JobStatusUpdate, JobType, JobUpdate
from app.services import policy
from app.services.aggregation import record_job_view
from app.services.mongo_service import Services, serialize_doc, serialize_docs, to_object_id

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])

POSTER_FIELDS = ["firstName", "lastName", "company"]
FEATURED_LIMIT = 6

SORTS = {
    JobSort.newest.value: [("createdAt", DESCENDING)],
    JobSort.oldest.value: [("createdAt", ASCENDING)],
    JobSort.salary_high.value: [("salary.max", DESCENDING)],
    JobSort.salary_low.value: [("salary.min", ASCENDING)],
    JobSort.featured.value: [("featured", DESCENDING), ("createdAt", DESCENDING)],
}


class JobFilters:
    """Query parameters shared by the job listing endpoints."""

    def __init__(
        self,
        type: Optional[JobType] = Query(None),
        category: Optional[JobCategory] = Query(None),
        location: Optional[str] = Query(None),
        company: Optional[str] = Query(None),
        remote: Optional[bool] = Query(None),
        search: Optional[str] = Query(None),
        min_experience: Optional[int] = Query(None, alias="minExperience", ge=0),
        max_experience: Optional[int] = Query(None, alias="maxExperience", ge=0),
        min_salary: Optional[float] = Query(None, alias="minSalary", ge=0),
        max_salary: Optional[float] = Query(None, alias="maxSalary", ge=0),
        sort: JobSort = Query(JobSort.newest),
    ):
        self.type = type
        self.category = category
        self.location = location
        self.company = company
        self.remote = remote
        self.search = search
        self.min_experience = min_experience
        self.max_experience = max_experience
        self.min_salary = min_salary
        self.max_salary = max_salary
        self.sort = sort

    def to_query(self) -> dict:
        query: dict = {"status": JobStatus.active.value}
        if self.type:
            query["type"] = self.type.value
        if self.category:
            query["category"] = self.category.value
        if self.location:
            query["location"] = {"$regex": re.escape(self.location), "$options": "i"}
        if self.company:
            query["company"] = {"$regex": re.escape(self.company), "$options": "i"}
        if self.remote is not None:
            query["remote"] = self.remote
        if self.search:
            query["$text"] = {"$search": self.search}
        if self.min_experience is not None:
            query["experience.min"] = {"$gte": self.min_experience}
        if self.max_experience is not None:
            query["experience.max"] = {"$lte": self.max_experience}
        if self.min_salary is not None:
            query["salary.min"] = {"$gte": self.min_salary}
        if self.max_salary is not None:
            query["salary.max"] = {"$lte": self.max_salary}
        return query

    def sort_spec(self):
        return SORTS[self.sort.value]


def _load_job(services: Services, job_id: str) -> dict:
    job = services.jobs.get_by_id(parse_object_id(job_id, "job"))
    if not job:
        raise NotFoundError("Job not found")
    return job


def _load_managed_job(services: Services, job_id: str, user: dict, action: str) -> dict:
    job = _load_job(services, job_id)
    if not policy.can_manage_job(user, job):
        raise AuthorizationError(f"Not authorized to {action} this job")
    return job


def _list_jobs(services: Services, filters: JobFilters, pagination: Pagination) -> dict:
    query = filters.to_query()
    jobs = services.jobs.find(query, sort=filters.sort_spec(), skip=pagination.skip, limit=pagination.limit)
    services.jobs.populate(jobs, "postedBy", services.users, POSTER_FIELDS)
    return paginated(jobs, services.jobs.count(query), pagination)


@router.get("")
async def list_jobs(
    filters: JobFilters = Depends(),
    pagination: Pagination = Depends(),
    services: Services = Depends(get_services),
):
    """List active jobs. Filters combine with AND."""
    return _list_jobs(services, filters, pagination)


@router.get("/search")
async def search_jobs(
    filters: JobFilters = Depends(),
    pagination: Pagination = Depends(),
    services: Services = Depends(get_services),
):
    return _list_jobs(services, filters, pagination)


@router.get("/featured")
async def featured_jobs(services: Services = Depends(get_services)):
    jobs = services.jobs.find(
        {"featured": True, "status": JobStatus.active.value},
        sort=[("createdAt", DESCENDING)],
        limit=FEATURED_LIMIT,
    )
    services.jobs.populate(jobs, "postedBy", services.users, POSTER_FIELDS)
    return {"success": True, "count": len(jobs), "data": serialize_docs(jobs)}


@router.get("/my-jobs")
async def my_jobs(
    pagination: Pagination = Depends(),
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    query = {"postedBy": to_object_id(user["id"])}
    jobs = services.jobs.find(query, sort=[("createdAt", DESCENDING)], skip=pagination.skip, limit=pagination.limit)
    return paginated(jobs, services.jobs.count(query), pagination)


@router.post("", status_code=201)
async def create_job(
    job: JobCreate,
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    """Create a new job posting owned by the caller."""
    doc = job.to_document()
    doc.update({"postedBy": to_object_id(user["id"]), "applicationsCount": 0, "viewsCount": 0})
    created = services.jobs.insert(doc)
    logger.info("job_created", job_id=str(created["_id"]), posted_by=user["id"])
    return {"success": True, "data": serialize_doc(created)}


@router.get("/{job_id}")
async def get_job(
    job_id: str,
    user: Optional[dict] = Depends(get_optional_user),
    services: Services = Depends(get_services),
):
    """Job details. Every view except the poster's own is counted."""
    job = record_job_view(services, _load_job(services, job_id), user)
    services.jobs.populate([job], "postedBy", services.users, POSTER_FIELDS + ["email", "phone"])
    return {"success": True, "data": serialize_doc(job)}


@router.put("/{job_id}")
async def update_job(
    job_id: str,
    changes: JobUpdate,
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    job = _load_managed_job(services, job_id, user, "update")
    fields = changes.changes_for(job)
    updated = services.jobs.set_fields(job["_id"], fields) if fields else job
    logger.info("job_updated", job_id=job_id, fields=sorted(fields))
    return {"success": True, "data": serialize_doc(updated)}


@router.delete("/{job_id}")
async def delete_job(
    job_id: str,
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    """Delete a job. Its applications are kept."""
    job = _load_managed_job(services, job_id, user, "delete")
    services.jobs.delete_by_id(job["_id"])
    logger.info("job_deleted", job_id=job_id, by=user["id"])
    return {"success": True, "message": "Job deleted successfully"}


@router.patch("/{job_id}/status")
async def update_job_status(
    job_id: str,
    request: JobStatusUpdate,
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    job = _load_managed_job(services, job_id, user, "update")
    updated = services.jobs.set_fields(job["_id"], {"status": request.status})
    logger.info("job_status_changed", job_id=job_id, status=request.status)
    return {"success": True, "data": serialize_doc(updated)}


@router.post("/{job_id}/duplicate", status_code=201)
async def duplicate_job(
    job_id: str,
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    """Copy a job as a new draft with fresh counters."""
    job = _load_managed_job(services, job_id, user, "duplicate")
    copy = {k: v for k, v in job.items() if k not in ("_id", "createdAt", "updatedAt")}
    copy.update({
        "title": f"{job['title']} (Copy)",
        "status": JobStatus.draft.value,
        "applicationsCount": 0,
        "viewsCount": 0,
    })
    created = services.jobs.insert(copy)
    logger.info("job_duplicated", job_id=job_id, new_job_id=str(created["_id"]))
    return {"success": True, "data": serialize_doc(created)}


@router.get("/{job_id}/stats")
async def job_stats(
    job_id: str,
    user: dict = Depends(require_roles("recruiter", "admin")),
    services: Services = Depends(get_services),
):
    job = _load_managed_job(services, job_id, user, "view statistics of")
    return {
        "success": True,
        "data": {
            "views": job.get("viewsCount", 0),
            "applications": job.get("applicationsCount", 0),
            "applicationsByStatus": services.applications.aggregate_counts("status", {"job": job["_id"]}),
        },
    }
