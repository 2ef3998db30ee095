# mongomock keeps millisecond precision like MongoDB; dates compared below are whole seconds
from datetime import datetime, timedelta

import pytest

from app.services import lifecycle


@pytest.fixture
def application(make_user, make_job, make_application):
    recruiter = make_user("recruiter")
    applicant = make_user("applicant")
    job = make_job(recruiter)
    return make_application(applicant, job)


def schedule(services, application, days=3, notes=None):
    doc = {
        "application": application["_id"],
        "job": application["job"],
        "applicant": application["applicant"],
        "interviewer": application["applicant"],
        "type": "video",
        "round": 1,
        "scheduledDate": (datetime.utcnow() + timedelta(days=days)).replace(microsecond=0),
        "duration": 60,
        "notes": notes or "",
    }
    return lifecycle.schedule_interview(services, doc, application["applicant"])


def test_each_status_set_appends_one_timeline_entry(services, application):
    lifecycle.set_application_status(services, application["_id"], "under_review")
    lifecycle.set_application_status(services, application["_id"], "shortlisted", reason="Strong profile")
    updated = lifecycle.set_application_status(services, application["_id"], "shortlisted")

    assert updated["status"] == "shortlisted"
    assert [e["status"] for e in updated["timeline"]] == ["under_review", "shortlisted", "shortlisted"]
    assert updated["timeline"][1]["reason"] == "Strong profile"


def test_any_status_may_follow_any_other(services, application):
    lifecycle.set_application_status(services, application["_id"], "hired")
    updated = lifecycle.set_application_status(services, application["_id"], "submitted")
    assert updated["status"] == "submitted"


def test_status_change_on_missing_application_returns_none(services):
    assert lifecycle.set_application_status(services, "0" * 24, "rejected") is None


def test_extra_fields_written_with_status(services, application):
    updated = lifecycle.set_application_status(
        services, application["_id"], "rejected", reason="Position filled",
        extra_fields={"rejectionReason": "Position filled"},
    )
    assert updated["rejectionReason"] == "Position filled"
    assert len(updated["timeline"]) == 1


def test_schedule_interview_links_and_moves_application(services, application):
    interview = schedule(services, application, notes="Bring portfolio")
    app_doc = services.applications.get_by_id(application["_id"])

    assert interview["status"] == "scheduled"
    assert interview["noteHistory"][0]["content"] == "Bring portfolio"
    assert app_doc["status"] == "interview_scheduled"
    assert app_doc["interviews"] == [interview["_id"]]


@pytest.mark.parametrize(
    "interview_status, application_status",
    [("completed", "interviewed"), ("cancelled", "shortlisted")],
)
def test_interview_status_cascades(services, application, interview_status, application_status):
    interview = schedule(services, application)
    lifecycle.set_interview_status(services, interview, interview_status, cancellation_reason="Candidate ill")
    app_doc = services.applications.get_by_id(application["_id"])

    assert app_doc["status"] == application_status
    assert app_doc["timeline"][-1]["status"] == application_status


def test_cancellation_reason_kept(services, application):
    interview = schedule(services, application)
    updated = lifecycle.set_interview_status(services, interview, "cancelled", cancellation_reason="No show")
    assert updated["cancellationReason"] == "No show"


def test_other_interview_statuses_do_not_cascade(services, application):
    interview = schedule(services, application)
    lifecycle.set_interview_status(services, interview, "confirmed")
    app_doc = services.applications.get_by_id(application["_id"])

    assert app_doc["status"] == "interview_scheduled"
    assert len(app_doc["timeline"]) == 1


def test_repeated_completion_only_grows_timeline(services, application):
    interview = schedule(services, application)
    lifecycle.set_interview_status(services, interview, "completed")
    lifecycle.set_interview_status(services, interview, "completed")
    app_doc = services.applications.get_by_id(application["_id"])

    assert app_doc["status"] == "interviewed"
    assert [e["status"] for e in app_doc["timeline"]] == ["interview_scheduled", "interviewed", "interviewed"]


def test_reschedule_keeps_previous_date(services, application):
    interview = schedule(services, application, days=3)
    new_date = (datetime.utcnow() + timedelta(days=10)).replace(microsecond=0)
    updated = lifecycle.reschedule_interview(services, interview, new_date, "Interviewer travelling")

    assert updated["rescheduledFrom"] == interview["scheduledDate"]
    assert updated["scheduledDate"] == new_date
    assert updated["rescheduledReason"] == "Interviewer travelling"
    assert updated["status"] == "rescheduled"


def test_remove_interview_reverts_application(services, application):
    interview = schedule(services, application)
    lifecycle.remove_interview(services, interview, application["applicant"])
    app_doc = services.applications.get_by_id(application["_id"])

    assert services.interviews.get_by_id(interview["_id"]) is None
    assert app_doc["status"] == "shortlisted"
    assert app_doc["interviews"] == []
