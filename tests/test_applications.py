import csv
import io
import json
from datetime import datetime, timedelta

import pytest

from app.core.errors import ConflictError
from app.services.mongo_service import ApplicationService
from app.utils.file_upload import resume_dir
from tests.conftest import auth_headers

PDF_BYTES = b"%PDF-1.4\n% test resume\n"


@pytest.fixture
def recruiter(make_user):
    return make_user("recruiter")


@pytest.fixture
def applicant(make_user):
    return make_user("applicant")


@pytest.fixture
def job(make_job, recruiter):
    return make_job(recruiter)


def apply(client, user, job_id, files=None, **form):
    data = {"jobId": str(job_id), **form}
    return client.post("/api/applications", data=data, files=files, headers=auth_headers(user))


def test_apply_to_job(client, services, applicant, job):
    answers = json.dumps([{"question": "Visa?", "answer": "No", "required": True}])
    res = apply(client, applicant, job["_id"], coverLetter="Hello", customAnswers=answers)

    assert res.status_code == 201
    data = res.json()["data"]
    assert data["status"] == "submitted"
    assert data["timeline"] == []
    assert data["customAnswers"][0]["answer"] == "No"
    assert data["job"]["title"] == "Backend Engineer"
    assert data["applicant"]["_id"] == str(applicant["_id"])
    assert services.jobs.get_by_id(job["_id"])["applicationsCount"] == 1


def test_applying_twice_is_rejected(client, services, applicant, job):
    apply(client, applicant, job["_id"])
    res = apply(client, applicant, job["_id"])

    assert res.status_code == 400
    assert res.json()["message"] == "You have already applied for this job"
    assert services.applications.count({"job": job["_id"]}) == 1


def test_duplicate_insert_maps_to_conflict(applicant, job, make_application):
    make_application(applicant, job)
    with pytest.raises(ConflictError, match="You have already applied for this job"):
        make_application(applicant, job)


def test_deadline_passed(client, make_job, recruiter, applicant):
    expired = make_job(recruiter, applicationDeadline=datetime.utcnow() - timedelta(days=1))
    res = apply(client, applicant, expired["_id"])

    assert res.status_code == 400
    assert res.json()["message"] == "Application deadline has passed"


def test_inactive_job(client, make_job, recruiter, applicant):
    paused = make_job(recruiter, status="paused")
    res = apply(client, applicant, paused["_id"])

    assert res.status_code == 400
    assert res.json()["message"] == "Job is not accepting applications"


def test_unknown_job_and_bad_job_id(client, applicant):
    res = apply(client, applicant, "b" * 24)
    assert res.status_code == 404
    assert res.json()["message"] == "Job not found"

    res = apply(client, applicant, "123")
    assert res.status_code == 400
    assert res.json()["errors"][0]["field"] == "jobId"


def test_recruiter_cannot_apply(client, recruiter, job):
    assert apply(client, recruiter, job["_id"]).status_code == 403


def test_apply_with_resume(client, settings, applicant, job):
    res = apply(client, applicant, job["_id"], files={"resume": ("cv.pdf", PDF_BYTES, "application/pdf")})

    resume = res.json()["data"]["resume"]
    assert res.status_code == 201
    assert resume["originalName"] == "cv.pdf"
    assert resume["filename"].startswith("resume-") and resume["filename"].endswith(".pdf")
    assert resume["size"] == len(PDF_BYTES)
    assert resume["path"].startswith(settings.upload_dir)


def test_resume_type_rejected(client, services, applicant, job):
    res = apply(client, applicant, job["_id"], files={"resume": ("cv.txt", b"plain", "text/plain")})

    assert res.status_code == 400
    assert res.json()["message"] == "Invalid file type. Only PDF, DOC, and DOCX files are allowed."
    assert services.applications.count() == 0


def test_resume_too_large(client, settings, applicant, job):
    big = b"0" * (settings.max_resume_size_bytes + 1)
    res = apply(client, applicant, job["_id"], files={"resume": ("cv.pdf", big, "application/pdf")})

    assert res.status_code == 400
    assert res.json()["message"] == "File too large. Maximum size is 5MB."


def test_resume_download(client, recruiter, applicant, job):
    created = apply(client, applicant, job["_id"], files={"resume": ("Ada_CV.pdf", PDF_BYTES, "application/pdf")})
    app_id = created.json()["data"]["_id"]

    res = client.get(f"/api/applications/{app_id}/resume", headers=auth_headers(recruiter))

    assert res.status_code == 200
    assert res.content == PDF_BYTES
    assert res.headers["content-type"] == "application/pdf"
    assert "attachment" in res.headers["content-disposition"]
    assert "Ada_CV.pdf" in res.headers["content-disposition"]


def test_resume_download_missing(client, services, make_application, applicant, job):
    application = make_application(applicant, job)
    res = client.get(f"/api/applications/{application['_id']}/resume", headers=auth_headers(applicant))
    assert res.status_code == 404
    assert res.json()["message"] == "Resume not found for this application"

    services.applications.set_fields(
        application["_id"], {"resume": {"filename": "gone.pdf", "originalName": "gone.pdf", "path": "/nowhere/gone.pdf"}}
    )
    res = client.get(f"/api/applications/{application['_id']}/resume", headers=auth_headers(applicant))
    assert res.status_code == 404
    assert res.json()["message"] == "Resume file not found on server"


def test_delete_recounts_job(client, services, applicant, job):
    app_id = apply(client, applicant, job["_id"]).json()["data"]["_id"]
    res = client.delete(f"/api/applications/{app_id}", headers=auth_headers(applicant))

    assert res.status_code == 200
    assert services.jobs.get_by_id(job["_id"])["applicationsCount"] == 0


def test_job_owner_cannot_delete_application(client, make_application, recruiter, applicant, job):
    application = make_application(applicant, job)
    res = client.delete(f"/api/applications/{application['_id']}", headers=auth_headers(recruiter))
    assert res.status_code == 403


def test_view_permissions(client, make_user, make_application, recruiter, applicant, job):
    application = make_application(applicant, job)
    url = f"/api/applications/{application['_id']}"

    assert client.get(url, headers=auth_headers(applicant)).status_code == 200
    assert client.get(url, headers=auth_headers(recruiter)).status_code == 200
    assert client.get(url, headers=auth_headers(make_user("admin"))).status_code == 200

    res = client.get(url, headers=auth_headers(make_user("applicant")))
    assert res.status_code == 403
    assert res.json()["message"] == "Not authorized to view this application"

    res = client.get(f"/api/applications/{'c' * 24}", headers=auth_headers(applicant))
    assert res.status_code == 404
    assert client.get("/api/applications/xyz", headers=auth_headers(applicant)).json()["message"] == (
        "Invalid application ID"
    )


def test_status_changes_grow_timeline(client, services, make_application, recruiter, applicant, job):
    application = make_application(applicant, job)
    url = f"/api/applications/{application['_id']}/status"

    for status in ("under_review", "shortlisted", "shortlisted", "rejected"):
        res = client.patch(url, json={"status": status, "reason": "Reviewed"}, headers=auth_headers(recruiter))
        assert res.status_code == 200

    doc = services.applications.get_by_id(application["_id"])
    assert doc["status"] == "rejected"
    assert len(doc["timeline"]) == 4
    assert doc["timeline"][0]["changedBy"] == recruiter["_id"]
    assert doc["rejectionReason"] == "Reviewed"


def test_status_change_by_other_recruiter_forbidden(client, make_user, make_application, applicant, job):
    application = make_application(applicant, job)
    res = client.patch(
        f"/api/applications/{application['_id']}/status",
        json={"status": "hired"},
        headers=auth_headers(make_user("recruiter")),
    )
    assert res.status_code == 403


def test_invalid_status_rejected(client, make_application, recruiter, applicant, job):
    application = make_application(applicant, job)
    res = client.patch(
        f"/api/applications/{application['_id']}/status",
        json={"status": "selected"},
        headers=auth_headers(recruiter),
    )
    assert res.status_code == 400


def test_applicant_update_ignores_restricted_fields(client, services, make_application, applicant, job):
    application = make_application(applicant, job)
    res = client.put(
        f"/api/applications/{application['_id']}",
        json={"coverLetter": "Revised", "willingToRelocate": True, "status": "hired"},
        headers=auth_headers(applicant),
    )

    assert res.status_code == 200
    doc = services.applications.get_by_id(application["_id"])
    assert doc["coverLetter"] == "Revised"
    assert doc["willingToRelocate"] is True
    assert doc["status"] == "submitted"
    assert doc["timeline"] == []


def test_owner_update_with_status_writes_timeline(client, services, make_application, recruiter, applicant, job):
    application = make_application(applicant, job)
    client.put(
        f"/api/applications/{application['_id']}",
        json={"status": "offer_extended", "coverLetter": "Edited by recruiter"},
        headers=auth_headers(recruiter),
    )

    doc = services.applications.get_by_id(application["_id"])
    assert doc["status"] == "offer_extended"
    assert doc["coverLetter"] == "Edited by recruiter"
    assert [e["status"] for e in doc["timeline"]] == ["offer_extended"]


def test_bulk_status(client, services, make_user, make_job, make_application, recruiter, job):
    mine = [make_application(make_user("applicant"), job) for _ in range(2)]
    foreign = make_application(make_user("applicant"), make_job(make_user("recruiter")))
    ids = [str(a["_id"]) for a in mine] + [str(foreign["_id"])]

    res = client.patch(
        "/api/applications/bulk-status",
        json={"applicationIds": ids, "status": "under_review"},
        headers=auth_headers(recruiter),
    )

    data = res.json()["data"]
    assert res.status_code == 200
    assert data["updated"] == ids[:2]
    assert data["skipped"] == [ids[2]]
    assert services.applications.get_by_id(foreign["_id"])["status"] == "submitted"
    assert len(services.applications.get_by_id(mine[0]["_id"])["timeline"]) == 1


def test_recruiter_lists_only_own_job_applications(client, make_user, make_job, make_application, recruiter, job):
    make_application(make_user("applicant"), job)
    make_application(make_user("applicant"), make_job(make_user("recruiter")))

    body = client.get("/api/applications", headers=auth_headers(recruiter)).json()
    assert body["total"] == 1

    body = client.get("/api/applications", headers=auth_headers(make_user("admin"))).json()
    assert body["total"] == 2


def test_my_applications(client, make_job, make_application, recruiter, applicant, job):
    make_application(applicant, job)
    make_application(applicant, make_job(recruiter, title="Data Engineer"))

    body = client.get("/api/applications/my-applications", headers=auth_headers(applicant)).json()
    assert body["count"] == 2
    assert {a["job"]["title"] for a in body["data"]} == {"Backend Engineer", "Data Engineer"}


def test_applications_for_job(client, make_user, make_application, recruiter, job):
    make_application(make_user("applicant"), job)
    body = client.get(f"/api/applications/job/{job['_id']}", headers=auth_headers(recruiter)).json()
    assert body["total"] == 1
    assert body["data"][0]["applicant"]["firstName"] == "Test"


def test_private_notes_hidden_from_applicant(client, make_application, recruiter, applicant, job):
    application = make_application(applicant, job)
    url = f"/api/applications/{application['_id']}"

    res = client.post(f"{url}/notes", json={"content": "Strong systems background"}, headers=auth_headers(recruiter))
    assert res.status_code == 201
    assert res.json()["data"]["isPrivate"] is True
    client.post(f"{url}/notes", json={"content": "Call Monday", "isPrivate": False}, headers=auth_headers(recruiter))

    assert len(client.get(url, headers=auth_headers(recruiter)).json()["data"]["notes"]) == 2
    notes = client.get(url, headers=auth_headers(applicant)).json()["data"]["notes"]
    assert [n["content"] for n in notes] == ["Call Monday"]


def test_rating_and_screening(client, services, make_application, recruiter, applicant, job):
    application = make_application(applicant, job)
    url = f"/api/applications/{application['_id']}"

    res = client.post(f"{url}/rating", json={"technical": 4, "overall": 5}, headers=auth_headers(recruiter))
    assert res.json()["data"]["rating"]["overall"] == 5
    assert res.json()["data"]["rating"]["ratedBy"] == str(recruiter["_id"])

    assert client.post(f"{url}/rating", json={"overall": 6}, headers=auth_headers(recruiter)).status_code == 400

    score = {"overall": 81, "skillsMatch": 90, "analysis": {"strengths": ["Python"]}}
    res = client.put(f"{url}/screening", json=score, headers=auth_headers(recruiter))
    stored = services.applications.get_by_id(application["_id"])["aiScreeningScore"]
    assert res.status_code == 200
    assert stored["overall"] == 81
    assert stored["analysis"]["strengths"] == ["Python"]
    assert "lastUpdated" in stored


def test_export_csv(client, make_user, make_application, recruiter, job):
    make_application(make_user("applicant", firstName="Ada", lastName="Lovelace"), job, noticePeriod="1-month")

    res = client.get(f"/api/applications/export/{job['_id']}", headers=auth_headers(recruiter))

    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/csv")
    rows = list(csv.reader(io.StringIO(res.text)))
    assert rows[0][0] == "Applicant"
    assert rows[1][0] == "Ada Lovelace"
    assert rows[1][3] == "submitted"
    assert rows[1][6] == "1-month"

    res = client.get(f"/api/applications/export/{job['_id']}", headers=auth_headers(make_user("recruiter")))
    assert res.status_code == 403


def test_partial_expected_salary_keeps_currency(client, services, applicant, job, make_application):
    application = make_application(applicant, job, expectedSalary={"amount": 100, "currency": "EUR"})

    res = client.put(
        f"/api/applications/{application['_id']}",
        json={"expectedSalary": {"amount": 120}},
        headers=auth_headers(applicant),
    )

    assert res.status_code == 200
    assert services.applications.get_by_id(application["_id"])["expectedSalary"] == {"amount": 120, "currency": "EUR"}


def test_update_rejects_null_status(client, services, recruiter, applicant, job, make_application):
    application = make_application(applicant, job)

    res = client.put(f"/api/applications/{application['_id']}", json={"status": None}, headers=auth_headers(recruiter))

    assert res.status_code == 400
    assert res.json()["errors"][0]["field"] == "status"
    assert services.applications.get_by_id(application["_id"])["status"] == "submitted"


def test_resume_removed_when_insert_conflicts(client, settings, monkeypatch, applicant, job, make_application):
    # lose the pre-insert check so the unique index has to catch the duplicate
    make_application(applicant, job)
    monkeypatch.setattr(ApplicationService, "find_for", lambda self, applicant_id, job_id: None)

    res = apply(client, applicant, job["_id"], files={"resume": ("cv.pdf", PDF_BYTES, "application/pdf")})

    assert res.status_code == 400
    assert res.json()["message"] == "You have already applied for this job"
    assert list(resume_dir(settings).glob("*")) == []
