"""
MongoDB Connection Utility

MongoDB stores every entity of the platform:
- users: applicants, recruiters, admins
- jobs: postings owned by a recruiter
- applications: one per (applicant, job) pair
- interviews: at most one per application

The store handle is created once at startup and injected into routes through
`get_store`; nothing in the app holds a module-level connection.
"""
from typing import Optional

import structlog
from fastapi import Request
from pymongo import ASCENDING, DESCENDING, TEXT, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from app.core.config import Settings

logger = structlog.get_logger(__name__)


# Collection name constants (avoid typos)
COLLECTIONS = {
    "users": "users",
    "jobs": "jobs",
    "applications": "applications",
    "interviews": "interviews",
}


class MongoStore:
    """
    Handle to the recruitment database.

    Owns the client it was given; `close()` releases the connection pool.
    """

    def __init__(self, db: Database, client: Optional[MongoClient] = None):
        self.client = client
        self.db = db
        self.users: Collection = db[COLLECTIONS["users"]]
        self.jobs: Collection = db[COLLECTIONS["jobs"]]
        self.applications: Collection = db[COLLECTIONS["applications"]]
        self.interviews: Collection = db[COLLECTIONS["interviews"]]

    def ping(self) -> bool:
        """
        Test if MongoDB is reachable.
        Returns True if connection successful, False otherwise.
        """
        try:
            self.db.command("ping")
            return True
        except PyMongoError as e:
            logger.warning("mongodb_ping_failed", error=str(e))
            return False

    def init_indexes(self) -> None:
        """
        Create indexes for query performance and uniqueness.
        Call this once during app startup.
        """
        # Text search over title/description/company
        self.jobs.create_index(
            [("title", TEXT), ("description", TEXT), ("company", TEXT)],
            name="job_text_search",
        )
        for field in ("status", "type", "category", "location", "postedBy", "applicationDeadline"):
            self.jobs.create_index(field)
        self.jobs.create_index([("createdAt", DESCENDING)])
        self.jobs.create_index([("featured", DESCENDING), ("createdAt", DESCENDING)])

        # One application per applicant per job
        self.applications.create_index(
            [("applicant", ASCENDING), ("job", ASCENDING)],
            unique=True,
            name="unique_applicant_job",
        )
        self.applications.create_index("status")
        self.applications.create_index([("createdAt", DESCENDING)])
        self.applications.create_index([("aiScreeningScore.overall", DESCENDING)])

        self.interviews.create_index("scheduledDate")
        self.interviews.create_index("status")
        self.interviews.create_index([("interviewer", ASCENDING), ("scheduledDate", ASCENDING)])
        self.interviews.create_index("applicant")
        self.interviews.create_index("application")

        self.users.create_index("email", unique=True)
        self.users.create_index("role")

        logger.info("mongodb_indexes_created")

    def close(self) -> None:
        if self.client is not None:
            self.client.close()


def connect_store(settings: Settings) -> MongoStore:
    """Create the MongoDB client (connection pooling handled by pymongo)."""
    client = MongoClient(settings.mongodb_uri, serverSelectionTimeoutMS=settings.mongodb_timeout_ms)
    return MongoStore(client[settings.mongodb_db], client=client)


def get_store(request: Request) -> MongoStore:
    """
    Dependency for FastAPI route injection.
    Usage:
        @router.get("/jobs")
        async def list_jobs(store: MongoStore = Depends(get_store)):
            ...
    """
    return request.app.state.store
