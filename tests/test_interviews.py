from datetime import datetime, timedelta

import pytest

from tests.conftest import auth_headers, future


@pytest.fixture
def recruiter(make_user):
    return make_user("recruiter")


@pytest.fixture
def applicant(make_user):
    return make_user("applicant")


@pytest.fixture
def application(make_job, make_application, recruiter, applicant):
    return make_application(applicant, make_job(recruiter), status="shortlisted")


def schedule(client, user, application, **fields):
    payload = {
        "applicationId": str(application["_id"]),
        "type": "video",
        "scheduledDate": future(3),
        "meetingLink": "https://meet.example.com/abc",
        **fields,
    }
    return client.post("/api/interviews", json=payload, headers=auth_headers(user))


def test_schedule_interview(client, services, recruiter, application):
    res = schedule(client, recruiter, application, notes="Bring a laptop")

    assert res.status_code == 201
    body = res.json()
    assert body["message"] == "Interview scheduled successfully"
    assert body["data"]["status"] == "scheduled"
    assert body["data"]["interviewer"]["_id"] == str(recruiter["_id"])
    assert body["data"]["noteHistory"][0]["content"] == "Bring a laptop"

    stored = services.applications.get_by_id(application["_id"])
    assert stored["status"] == "interview_scheduled"
    assert [e["status"] for e in stored["timeline"]] == ["interview_scheduled"]
    assert len(stored["interviews"]) == 1


def test_second_interview_for_application_rejected(client, recruiter, application):
    schedule(client, recruiter, application)
    res = schedule(client, recruiter, application, scheduledDate=future(5))

    assert res.status_code == 400
    assert res.json()["message"] == "Interview already scheduled for this application"


def test_schedule_requires_existing_application(client, recruiter):
    res = client.post(
        "/api/interviews",
        json={"applicationId": "d" * 24, "type": "phone", "scheduledDate": future()},
        headers=auth_headers(recruiter),
    )
    assert res.status_code == 404
    assert res.json()["message"] == "Application not found"


def test_applicant_cannot_schedule(client, applicant, application):
    res = schedule(client, applicant, application)
    assert res.status_code == 403
    assert res.json()["message"] == "User role applicant is not authorized to access this route"


def test_past_date_rejected(client, services, recruiter, application):
    past = (datetime.utcnow() - timedelta(hours=1)).isoformat()
    res = schedule(client, recruiter, application, scheduledDate=past)

    assert res.status_code == 400
    assert res.json()["errors"][0]["field"] == "scheduledDate"
    assert res.json()["errors"][0]["message"] == "Interview date must be in the future"
    assert services.interviews.count() == 0


def test_completed_interview_marks_application_interviewed(client, services, recruiter, application):
    interview_id = schedule(client, recruiter, application).json()["data"]["_id"]

    res = client.patch(
        f"/api/interviews/{interview_id}/status", json={"status": "completed"}, headers=auth_headers(recruiter)
    )

    assert res.status_code == 200
    assert res.json()["data"]["status"] == "completed"
    assert services.applications.get_by_id(application["_id"])["status"] == "interviewed"


def test_cancelled_interview_returns_application_to_shortlist(client, services, recruiter, application):
    interview_id = schedule(client, recruiter, application).json()["data"]["_id"]

    client.patch(
        f"/api/interviews/{interview_id}/status",
        json={"status": "cancelled", "cancellationReason": "Candidate unavailable"},
        headers=auth_headers(recruiter),
    )

    interview = services.interviews.get_by_id(interview_id)
    assert interview["cancellationReason"] == "Candidate unavailable"
    assert services.applications.get_by_id(application["_id"])["status"] == "shortlisted"


def test_confirmed_status_has_no_cascade(client, services, recruiter, application):
    interview_id = schedule(client, recruiter, application).json()["data"]["_id"]
    client.patch(
        f"/api/interviews/{interview_id}/status", json={"status": "confirmed"}, headers=auth_headers(recruiter)
    )
    assert services.applications.get_by_id(application["_id"])["status"] == "interview_scheduled"


def test_reschedule_keeps_previous_date(client, services, recruiter, application):
    interview_id = schedule(client, recruiter, application).json()["data"]["_id"]
    original = services.interviews.get_by_id(interview_id)["scheduledDate"]

    res = client.patch(
        f"/api/interviews/{interview_id}/reschedule",
        json={"scheduledDate": future(10), "reason": "Panel change"},
        headers=auth_headers(recruiter),
    )

    stored = services.interviews.get_by_id(interview_id)
    assert res.status_code == 200
    assert stored["status"] == "rescheduled"
    assert stored["rescheduledFrom"] == original
    assert stored["rescheduledReason"] == "Panel change"
    assert stored["scheduledDate"] > original


def test_reschedule_into_past_rejected(client, recruiter, application):
    interview_id = schedule(client, recruiter, application).json()["data"]["_id"]
    res = client.patch(
        f"/api/interviews/{interview_id}/reschedule",
        json={"scheduledDate": "2001-01-01T10:00:00"},
        headers=auth_headers(recruiter),
    )
    assert res.status_code == 400


def test_delete_interview_returns_application_to_shortlist(client, services, recruiter, application):
    interview_id = schedule(client, recruiter, application).json()["data"]["_id"]

    res = client.delete(f"/api/interviews/{interview_id}", headers=auth_headers(recruiter))

    stored = services.applications.get_by_id(application["_id"])
    assert res.status_code == 200
    assert services.interviews.count() == 0
    assert stored["status"] == "shortlisted"
    assert stored["interviews"] == []


def test_any_recruiter_may_update_interview(client, make_user, recruiter, application):
    interview_id = schedule(client, recruiter, application).json()["data"]["_id"]

    res = client.put(
        f"/api/interviews/{interview_id}",
        json={"duration": 90, "location": "Room 4"},
        headers=auth_headers(make_user("recruiter")),
    )

    assert res.status_code == 200
    assert res.json()["data"]["duration"] == 90
    assert res.json()["data"]["location"] == "Room 4"


def test_applicant_cannot_change_status(client, recruiter, applicant, application):
    interview_id = schedule(client, recruiter, application).json()["data"]["_id"]
    res = client.patch(
        f"/api/interviews/{interview_id}/status", json={"status": "completed"}, headers=auth_headers(applicant)
    )
    assert res.status_code == 403
    assert res.json()["message"] == "Not authorized to update this interview"


def test_view_interview(client, make_user, recruiter, applicant, application):
    interview_id = schedule(client, recruiter, application).json()["data"]["_id"]
    url = f"/api/interviews/{interview_id}"

    assert client.get(url, headers=auth_headers(applicant)).status_code == 200
    assert client.get(url, headers=auth_headers(recruiter)).json()["data"]["job"]["title"] == "Backend Engineer"
    assert client.get(url, headers=auth_headers(make_user("applicant"))).status_code == 403
    assert client.get("/api/interviews/nope", headers=auth_headers(recruiter)).status_code == 400


def test_feedback_merges_categories(client, services, recruiter, application):
    interview_id = schedule(client, recruiter, application).json()["data"]["_id"]
    url = f"/api/interviews/{interview_id}/feedback"

    client.post(url, json={"technical": {"rating": 4, "comments": "Solid"}}, headers=auth_headers(recruiter))
    res = client.post(
        url,
        json={"overall": {"rating": 5, "recommendation": "strongly-recommend"}},
        headers=auth_headers(recruiter),
    )

    feedback = services.interviews.get_by_id(interview_id)["feedback"]
    assert res.status_code == 200
    assert feedback["technical"]["rating"] == 4
    assert feedback["overall"]["recommendation"] == "strongly-recommend"

    assert client.post(url, json={}, headers=auth_headers(recruiter)).status_code == 400
    assert client.post(url, json={"technical": {"rating": 9}}, headers=auth_headers(recruiter)).status_code == 400


def test_interview_notes_are_shared_by_default(client, services, recruiter, application):
    interview_id = schedule(client, recruiter, application).json()["data"]["_id"]

    res = client.post(
        f"/api/interviews/{interview_id}/notes", json={"content": "Prefers mornings"}, headers=auth_headers(recruiter)
    )

    assert res.status_code == 201
    assert res.json()["data"]["isPrivate"] is False
    assert services.interviews.get_by_id(interview_id)["noteHistory"][-1]["content"] == "Prefers mornings"


def test_my_interviews_scoped_by_role(client, make_user, make_job, make_application, recruiter, applicant, application):
    schedule(client, recruiter, application)
    other_recruiter = make_user("recruiter")
    other = make_application(make_user("applicant"), make_job(other_recruiter))
    schedule(client, other_recruiter, other)

    assert client.get("/api/interviews/my-interviews", headers=auth_headers(applicant)).json()["total"] == 1
    assert client.get("/api/interviews/my-interviews", headers=auth_headers(recruiter)).json()["total"] == 1
    admin = make_user("admin")
    assert client.get("/api/interviews/my-interviews", headers=auth_headers(admin)).json()["total"] == 2
    assert client.get("/api/interviews", headers=auth_headers(admin)).json()["total"] == 2
    assert client.get("/api/interviews", headers=auth_headers(applicant)).status_code == 403


def test_list_filters(client, recruiter, application):
    schedule(client, recruiter, application)

    body = client.get(
        "/api/interviews", params={"jobId": str(application["job"])}, headers=auth_headers(recruiter)
    ).json()
    assert body["total"] == 1

    body = client.get("/api/interviews", params={"status": "completed"}, headers=auth_headers(recruiter)).json()
    assert body["total"] == 0


def test_upcoming_excludes_cancelled(client, recruiter, applicant, application):
    interview_id = schedule(client, recruiter, application).json()["data"]["_id"]
    assert client.get("/api/interviews/upcoming", headers=auth_headers(applicant)).json()["count"] == 1

    client.patch(
        f"/api/interviews/{interview_id}/status", json={"status": "cancelled"}, headers=auth_headers(recruiter)
    )
    assert client.get("/api/interviews/upcoming", headers=auth_headers(applicant)).json()["count"] == 0


def test_interviews_on_date(client, recruiter, applicant, application):
    day = (datetime.utcnow() + timedelta(days=5)).replace(hour=10, minute=0, second=0, microsecond=0)
    schedule(client, recruiter, application, scheduledDate=day.isoformat())

    res = client.get(f"/api/interviews/date/{day:%Y-%m-%d}", headers=auth_headers(applicant))
    assert res.json()["count"] == 1

    res = client.get(f"/api/interviews/date/{day + timedelta(days=1):%Y-%m-%d}", headers=auth_headers(applicant))
    assert res.json()["count"] == 0

    res = client.get("/api/interviews/date/05-06-2030", headers=auth_headers(applicant))
    assert res.status_code == 400
    assert res.json()["errors"][0]["field"] == "date"


def test_update_rejects_null_date(client, services, recruiter, application):
    interview_id = schedule(client, recruiter, application).json()["data"]["_id"]
    original = services.interviews.get_by_id(interview_id)["scheduledDate"]

    res = client.put(f"/api/interviews/{interview_id}", json={"scheduledDate": None}, headers=auth_headers(recruiter))

    assert res.status_code == 400
    assert res.json()["errors"][0]["field"] == "scheduledDate"
    assert services.interviews.get_by_id(interview_id)["scheduledDate"] == original


def test_update_clears_optional_location(client, services, recruiter, application):
    interview_id = schedule(client, recruiter, application, location="Room 4").json()["data"]["_id"]

    res = client.put(f"/api/interviews/{interview_id}", json={"location": None}, headers=auth_headers(recruiter))

    assert res.status_code == 200
    assert services.interviews.get_by_id(interview_id)["location"] is None
