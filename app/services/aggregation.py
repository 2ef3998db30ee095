"""
Derived Aggregation - counters and dashboard statistics.

Nothing here is cached: `applicationsCount` is recounted from the
applications collection whenever an application is created or deleted, and
every dashboard request runs its queries against live data. Independent
dashboard reads are fanned out concurrently and joined before responding.
"""

import asyncio
import math
from datetime import datetime
from typing import Callable, Dict, List, Optional

import structlog
from pymongo import DESCENDING, ASCENDING
from starlette.concurrency import run_in_threadpool

from app.schemas.schemas import ApplicationStatus, InterviewStatus, JobStatus, UserRole
from app.services import policy
from app.services.mongo_service import (
    JOB_SUMMARY_FIELDS,
    USER_NAME_FIELDS,
    IdLike,
    Services,
    public_user,
    to_object_id,
)

logger = structlog.get_logger(__name__)

RECENT_LIMIT = 5
ACTIVITY_LIMIT = 20
PENDING_STATUS = ApplicationStatus.submitted.value
OPEN_INTERVIEW_STATUSES = [InterviewStatus.scheduled.value, InterviewStatus.confirmed.value]
CLOSED_INTERVIEW_STATUSES = [InterviewStatus.cancelled.value, InterviewStatus.completed.value]


# ============================================================
# JOB COUNTERS
# ============================================================

def recompute_applications_count(services: Services, job_id: IdLike) -> Optional[int]:
    """Recount applications for a job and store the result. None if the job is gone."""
    count = services.applications.count_for_job(job_id)
    updated = services.jobs.set_fields(job_id, {"applicationsCount": count})
    if updated is None:
        return None
    logger.info("applications_count_recomputed", job_id=str(job_id), applications_count=count)
    return count


def record_job_view(services: Services, job: dict, viewer: Optional[dict]) -> dict:
    """
    Count one view unless the viewer posted the job.
    Anonymous viewers always count. Returns the job as it should be shown.
    """
    if policy.owns_job(viewer, job):
        return job
    updated = services.jobs.update_by_id(job["_id"], {"$inc": {"viewsCount": 1}})
    return updated if updated is not None else job


def success_rate(total: int, rejected: int) -> int:
    """Share of applications not rejected, as a whole percentage (half rounds up)."""
    if total <= 0:
        return 0
    return int(math.floor((total - rejected) / total * 100 + 0.5))


# ============================================================
# DASHBOARDS
# ============================================================

async def _gather(**calls: Callable[[], object]) -> Dict[str, object]:
    """Run independent blocking store reads concurrently and return them by name."""
    names = list(calls)
    results = await asyncio.gather(*(run_in_threadpool(calls[name]) for name in names))
    return dict(zip(names, results))


def _recent_applications(services: Services, filter_dict: dict) -> List[dict]:
    apps = services.applications.find(
        filter_dict,
        sort=[("createdAt", DESCENDING)],
        limit=RECENT_LIMIT,
        projection={"parsedResumeData": 0, "notes": 0},
    )
    services.applications.populate(apps, "job", services.jobs, ["title", "company"])
    services.applications.populate(apps, "applicant", services.users, USER_NAME_FIELDS)
    return apps


async def applicant_stats(services: Services, user_id: IdLike) -> dict:
    uid = to_object_id(user_id)
    now = datetime.utcnow()
    apps, interviews = services.applications, services.interviews

    def upcoming():
        found = interviews.find(
            {"applicant": uid, "scheduledDate": {"$gte": now}, "status": {"$nin": CLOSED_INTERVIEW_STATUSES}},
            sort=[("scheduledDate", ASCENDING)],
            limit=RECENT_LIMIT,
        )
        interviews.populate(found, "job", services.jobs, ["title", "company"])
        interviews.populate(found, "interviewer", services.users, ["firstName", "lastName"])
        return found

    r = await _gather(
        total=lambda: apps.count({"applicant": uid}),
        pending=lambda: apps.count({"applicant": uid, "status": PENDING_STATUS}),
        scheduled=lambda: interviews.count({"applicant": uid, "status": {"$in": OPEN_INTERVIEW_STATUSES}}),
        rejected=lambda: apps.count({"applicant": uid, "status": ApplicationStatus.rejected.value}),
        by_status=lambda: apps.aggregate_counts("status", {"applicant": uid}),
        recent=lambda: _recent_applications(services, {"applicant": uid}),
        upcoming=upcoming,
    )
    return {
        "totalApplications": r["total"],
        "pendingApplications": r["pending"],
        "interviewsScheduled": r["scheduled"],
        "rejectedApplications": r["rejected"],
        "successRate": success_rate(r["total"], r["rejected"]),
        "applicationsByStatus": r["by_status"],
        "recentApplications": r["recent"],
        "upcomingInterviews": r["upcoming"],
    }


async def recruiter_stats(services: Services, user_id: IdLike) -> dict:
    uid = to_object_id(user_id)
    job_ids = await run_in_threadpool(services.jobs.owned_job_ids, uid)
    on_own_jobs = {"job": {"$in": job_ids}}
    apps, jobs = services.applications, services.jobs

    r = await _gather(
        total_jobs=lambda: len(job_ids),
        active_jobs=lambda: jobs.count({"postedBy": uid, "status": JobStatus.active.value}),
        total_applications=lambda: apps.count(on_own_jobs),
        pending=lambda: apps.count({**on_own_jobs, "status": PENDING_STATUS}),
        scheduled=lambda: services.interviews.count(
            {"interviewer": uid, "status": {"$in": OPEN_INTERVIEW_STATUSES}}
        ),
        by_status=lambda: apps.aggregate_counts("status", on_own_jobs),
        recent_jobs=lambda: jobs.find({"postedBy": uid}, sort=[("createdAt", DESCENDING)], limit=RECENT_LIMIT),
        recent_applications=lambda: _recent_applications(services, on_own_jobs),
    )
    return {
        "totalJobs": r["total_jobs"],
        "activeJobs": r["active_jobs"],
        "totalApplications": r["total_applications"],
        "pendingApplications": r["pending"],
        "scheduledInterviews": r["scheduled"],
        "applicationsByStatus": r["by_status"],
        "recentJobs": r["recent_jobs"],
        "recentApplications": r["recent_applications"],
    }


async def admin_stats(services: Services) -> dict:
    users, jobs, apps = services.users, services.jobs, services.applications

    def recent_users():
        found = users.find({"isActive": True}, sort=[("createdAt", DESCENDING)], limit=RECENT_LIMIT)
        return [public_user(u) for u in found]

    def recent_jobs():
        found = jobs.find({}, sort=[("createdAt", DESCENDING)], limit=RECENT_LIMIT)
        return jobs.populate(found, "postedBy", users, ["firstName", "lastName", "company"])

    r = await _gather(
        total_users=lambda: users.count({"isActive": True}),
        applicants=lambda: users.count({"role": UserRole.applicant.value, "isActive": True}),
        recruiters=lambda: users.count({"role": UserRole.recruiter.value, "isActive": True}),
        total_jobs=lambda: jobs.count(),
        active_jobs=lambda: jobs.count({"status": JobStatus.active.value}),
        total_applications=lambda: apps.count(),
        pending=lambda: apps.count({"status": PENDING_STATUS}),
        total_interviews=lambda: services.interviews.count(),
        by_status=lambda: apps.aggregate_counts("status"),
        recent_users=recent_users,
        recent_jobs=recent_jobs,
        recent_applications=lambda: _recent_applications(services, {}),
    )
    return {
        "totalUsers": r["total_users"],
        "totalApplicants": r["applicants"],
        "totalRecruiters": r["recruiters"],
        "totalJobs": r["total_jobs"],
        "activeJobs": r["active_jobs"],
        "totalApplications": r["total_applications"],
        "pendingApplications": r["pending"],
        "totalInterviews": r["total_interviews"],
        "applicationsByStatus": r["by_status"],
        "recentUsers": r["recent_users"],
        "recentJobs": r["recent_jobs"],
        "recentApplications": r["recent_applications"],
    }


async def dashboard_stats(services: Services, user: dict) -> dict:
    role = user.get("role")
    if role == UserRole.applicant.value:
        return await applicant_stats(services, user["id"])
    if role == UserRole.recruiter.value:
        return await recruiter_stats(services, user["id"])
    return await admin_stats(services)


# ============================================================
# ACTIVITY & ANALYTICS
# ============================================================

def _visible_applications_filter(services: Services, user: dict) -> dict:
    role = user.get("role")
    if role == UserRole.applicant.value:
        return {"applicant": to_object_id(user["id"])}
    if role == UserRole.recruiter.value:
        return {"job": {"$in": services.jobs.owned_job_ids(user["id"])}}
    return {}


def recent_activity(services: Services, user: dict, limit: int = ACTIVITY_LIMIT) -> List[dict]:
    """Latest status changes across the applications the user can see, newest first."""
    filter_dict = _visible_applications_filter(services, user)
    filter_dict["timeline"] = {"$exists": True, "$ne": []}
    apps = services.applications.find(
        filter_dict,
        sort=[("updatedAt", DESCENDING)],
        limit=limit,
        projection={"job": 1, "applicant": 1, "timeline": 1},
    )
    services.applications.populate(apps, "job", services.jobs, ["title", "company"])

    events = []
    for app in apps:
        for entry in app.get("timeline", []):
            events.append({
                "application": app["_id"],
                "job": app.get("job"),
                "status": entry.get("status"),
                "changedBy": entry.get("changedBy"),
                "reason": entry.get("reason"),
                "timestamp": entry.get("timestamp"),
            })
    events.sort(key=lambda e: e["timestamp"] or datetime.min, reverse=True)
    return events[:limit]


async def analytics(services: Services, user: dict) -> dict:
    """Breakdowns for recruiters (their own jobs) and admins (everything)."""
    if user.get("role") == UserRole.admin.value:
        job_filter: dict = {}
        app_filter: dict = {}
    else:
        uid = to_object_id(user["id"])
        job_filter = {"postedBy": uid}
        app_filter = {"job": {"$in": await run_in_threadpool(services.jobs.owned_job_ids, uid)}}

    def totals():
        jobs = services.jobs.find(job_filter, projection={"viewsCount": 1, "applicationsCount": 1})
        return {
            "views": sum(j.get("viewsCount", 0) for j in jobs),
            "applications": sum(j.get("applicationsCount", 0) for j in jobs),
        }

    r = await _gather(
        applications_by_status=lambda: services.applications.aggregate_counts("status", app_filter),
        jobs_by_category=lambda: services.jobs.aggregate_counts("category", job_filter),
        jobs_by_status=lambda: services.jobs.aggregate_counts("status", job_filter),
        totals=totals,
    )
    totals_row = r["totals"]
    return {
        "applicationsByStatus": r["applications_by_status"],
        "jobsByCategory": r["jobs_by_category"],
        "jobsByStatus": r["jobs_by_status"],
        "totalViews": totals_row["views"],
        "totalApplications": totals_row["applications"],
        "conversionRate": round(totals_row["applications"] / totals_row["views"] * 100, 1)
        if totals_row["views"] else 0,
    }


def user_stats(services: Services, user: dict) -> dict:
    """Per-user counters for the profile page."""
    uid = to_object_id(user["_id"])
    if user.get("role") == UserRole.recruiter.value:
        job_ids = services.jobs.owned_job_ids(uid)
        return {
            "jobsPosted": len(job_ids),
            "activeJobs": services.jobs.count({"postedBy": uid, "status": JobStatus.active.value}),
            "applicationsReceived": services.applications.count({"job": {"$in": job_ids}}),
            "interviewsConducted": services.interviews.count({"interviewer": uid}),
        }
    total = services.applications.count({"applicant": uid})
    rejected = services.applications.count({"applicant": uid, "status": ApplicationStatus.rejected.value})
    return {
        "applicationsSubmitted": total,
        "applicationsByStatus": services.applications.aggregate_counts("status", {"applicant": uid}),
        "interviews": services.interviews.count({"applicant": uid}),
        "successRate": success_rate(total, rejected),
    }
