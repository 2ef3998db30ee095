import itertools
from datetime import datetime, timedelta

import mongomock
import pytest
from fastapi.testclient import TestClient

from app.core.auth import hash_password, token_for_user
from app.core.config import get_settings
from app.db.mongodb import MongoStore, get_store
from app.main import app
from app.services.mongo_service import Services

PASSWORD = "Secret123"
# bcrypt is slow on purpose; hash the shared test password once
PASSWORD_HASH = hash_password(PASSWORD)

JOB_DESCRIPTION = (
    "Build and maintain the services behind our hiring platform, "
    "working closely with product and design."
)

_emails = itertools.count(1)


@pytest.fixture
def store():
    """An in-memory store with the unique indexes the API relies on."""
    client = mongomock.MongoClient()
    store = MongoStore(client["recruitment_test"], client=client)
    store.applications.create_index([("applicant", 1), ("job", 1)], unique=True)
    store.users.create_index("email", unique=True)
    return store


@pytest.fixture
def services(store):
    return Services(store)


@pytest.fixture
def settings(tmp_path):
    return get_settings().model_copy(update={"upload_dir": str(tmp_path / "uploads")})


@pytest.fixture
def client(store, settings):
    """Test client wired to the in-memory store and a temporary upload dir."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(services):
    """Insert a user directly. Usage: make_user("recruiter", company="Acme")."""

    def _make_user(role: str = "applicant", **fields) -> dict:
        n = next(_emails)
        doc = {
            "firstName": fields.pop("firstName", "Test"),
            "lastName": fields.pop("lastName", f"User{n}"),
            "email": fields.pop("email", f"user{n}@acme.io"),
            "role": role,
            "isActive": True,
            "passwordHash": PASSWORD_HASH,
            **fields,
        }
        return services.users.insert(doc)

    return _make_user


@pytest.fixture
def make_job(services):
    """Insert an active job directly, bypassing create-time validation."""

    def _make_job(owner: dict, **fields) -> dict:
        doc = {
            "title": "Backend Engineer",
            "company": "Acme",
            "description": JOB_DESCRIPTION,
            "location": "Berlin",
            "type": "full-time",
            "category": "technology",
            "experience": {"min": 0, "max": 10},
            "salary": {"min": 50000, "max": 80000, "currency": "USD", "period": "yearly"},
            "applicationDeadline": datetime.utcnow() + timedelta(days=30),
            "status": "active",
            "priority": "medium",
            "featured": False,
            "remote": False,
            "postedBy": owner["_id"],
            "applicationsCount": 0,
            "viewsCount": 0,
            **fields,
        }
        return services.jobs.insert(doc)

    return _make_job


@pytest.fixture
def make_application(services):
    def _make_application(applicant: dict, job: dict, **fields) -> dict:
        doc = {
            "job": job["_id"],
            "applicant": applicant["_id"],
            "status": "submitted",
            "coverLetter": "",
            "customAnswers": [],
            "notes": [],
            "timeline": [],
            "interviews": [],
            **fields,
        }
        return services.applications.create(doc)

    return _make_application


def auth_headers(user: dict) -> dict:
    return {"Authorization": f"Bearer {token_for_user(user)}"}


def future(days: int = 7) -> str:
    return (datetime.utcnow() + timedelta(days=days)).isoformat()
