"""
MongoDB Service - CRUD operations for the entity collections.

Collections in this database:
1. users        - applicants, recruiters and admins
2. jobs         - job postings, owned by the recruiter in `postedBy`
3. applications - one per (applicant, job); unique index enforced by MongoDB
4. interviews   - at most one per application

All querying, filtering, sorting and pagination is delegated to MongoDB.
Services only shape documents and translate store errors.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from app.core.errors import ConflictError
from app.db.mongodb import MongoStore

IdLike = Union[str, ObjectId]
SortSpec = Sequence[Tuple[str, int]]


# ============================================================
# HELPER: Convert ObjectId to string for JSON serialization
# ============================================================

def serialize_doc(doc: Any) -> Any:
    """Convert a MongoDB document (or any nested value) to JSON-serializable data."""
    if doc is None:
        return None
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, dict):
        return {key: serialize_doc(value) for key, value in doc.items()}
    if isinstance(doc, list):
        return [serialize_doc(value) for value in doc]
    return doc


def serialize_docs(docs: Iterable[dict]) -> list:
    """Convert list of MongoDB documents to JSON-serializable list."""
    return [serialize_doc(doc) for doc in docs]


def to_object_id(value: IdLike) -> ObjectId:
    return value if isinstance(value, ObjectId) else ObjectId(value)


def ref_id(value: Any) -> Optional[str]:
    """String id of a reference, whether it is a raw id or a populated sub-document."""
    if value is None:
        return None
    if isinstance(value, dict):
        value = value.get("_id")
    return str(value) if value is not None else None


# ============================================================
# BASE SERVICE
# ============================================================

class CollectionService:
    """
    Generic document operations shared by every collection.
    Subclasses set `collection_name` and add domain lookups.
    """

    collection_name: str = ""

    def __init__(self, store: MongoStore):
        self.store = store
        self.collection: Collection = store.db[self.collection_name]

    def insert(self, doc: dict) -> dict:
        """Insert a document, stamping createdAt/updatedAt. Returns it with `_id`."""
        now = datetime.utcnow()
        payload = {**doc, "createdAt": now, "updatedAt": now}
        result = self.collection.insert_one(payload)
        payload["_id"] = result.inserted_id
        return payload

    def get_by_id(self, doc_id: IdLike, projection: Optional[dict] = None) -> Optional[dict]:
        return self.collection.find_one({"_id": to_object_id(doc_id)}, projection)

    def find_one(self, filter_dict: dict, sort: Optional[SortSpec] = None) -> Optional[dict]:
        return self.collection.find_one(filter_dict, sort=list(sort) if sort else None)

    def find(
        self,
        filter_dict: Optional[dict] = None,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
        projection: Optional[dict] = None,
    ) -> List[dict]:
        cursor = self.collection.find(filter_dict or {}, projection)
        if sort:
            cursor = cursor.sort(list(sort))
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def count(self, filter_dict: Optional[dict] = None) -> int:
        return self.collection.count_documents(filter_dict or {})

    def update_by_id(self, doc_id: IdLike, update: dict) -> Optional[dict]:
        """
        Apply a raw update ($set/$push/$inc...) and return the updated document.
        A single-document update is atomic in MongoDB.
        """
        update = dict(update)
        update.setdefault("$set", {})
        update["$set"] = {**update["$set"], "updatedAt": datetime.utcnow()}
        return self.collection.find_one_and_update(
            {"_id": to_object_id(doc_id)},
            update,
            return_document=ReturnDocument.AFTER,
        )

    def set_fields(self, doc_id: IdLike, fields: dict) -> Optional[dict]:
        return self.update_by_id(doc_id, {"$set": fields})

    def delete_by_id(self, doc_id: IdLike) -> bool:
        result = self.collection.delete_one({"_id": to_object_id(doc_id)})
        return result.deleted_count > 0

    def aggregate_counts(self, field: str, filter_dict: Optional[dict] = None) -> Dict[str, int]:
        """Count documents grouped by `field`, e.g. applications by status."""
        pipeline = []
        if filter_dict:
            pipeline.append({"$match": filter_dict})
        pipeline.append({"$group": {"_id": f"${field}", "count": {"$sum": 1}}})
        return {str(row["_id"]): row["count"] for row in self.collection.aggregate(pipeline)}

    def populate(
        self,
        docs: List[dict],
        field: str,
        target: "CollectionService",
        projection: Optional[List[str]] = None,
    ) -> List[dict]:
        """
        Replace the reference id in `field` with the referenced document.
        One batched $in query for the whole page.
        """
        ids = {doc[field] for doc in docs if isinstance(doc.get(field), ObjectId)}
        if not ids:
            return docs
        fields = {name: 1 for name in projection} if projection else None
        found = {d["_id"]: d for d in target.find({"_id": {"$in": list(ids)}}, projection=fields)}
        for doc in docs:
            ref = doc.get(field)
            if isinstance(ref, ObjectId) and ref in found:
                doc[field] = found[ref]
        return docs


# ============================================================
# USERS
# ============================================================

USER_PUBLIC_FIELDS = ["firstName", "lastName", "email", "role", "phone", "company", "isActive", "createdAt"]
USER_NAME_FIELDS = ["firstName", "lastName", "email"]


class UserService(CollectionService):
    collection_name = "users"

    def get_by_email(self, email: str) -> Optional[dict]:
        return self.collection.find_one({"email": email.lower()})

    def create(self, data: dict, password_hash: str) -> dict:
        doc = {**data, "passwordHash": password_hash, "isActive": True}
        doc.pop("password", None)
        try:
            return self.insert(doc)
        except DuplicateKeyError:
            raise ConflictError("User already exists with this email")


def public_user(user: Optional[dict]) -> Optional[dict]:
    """User document without credentials."""
    if user is None:
        return None
    return {k: v for k, v in user.items() if k != "passwordHash"}


# ============================================================
# JOBS
# ============================================================

JOB_SUMMARY_FIELDS = ["title", "company", "location", "type", "status"]


class JobService(CollectionService):
    collection_name = "jobs"

    def owned_job_ids(self, user_id: IdLike) -> List[ObjectId]:
        return [doc["_id"] for doc in self.find({"postedBy": to_object_id(user_id)}, projection={"_id": 1})]


# ============================================================
# APPLICATIONS
# ============================================================

class ApplicationService(CollectionService):
    collection_name = "applications"

    def create(self, doc: dict) -> dict:
        """Insert a new application; a second one for the same (applicant, job) is a conflict."""
        try:
            return self.insert(doc)
        except DuplicateKeyError:
            raise ConflictError("You have already applied for this job")

    def find_for(self, applicant_id: IdLike, job_id: IdLike) -> Optional[dict]:
        return self.collection.find_one({"applicant": to_object_id(applicant_id), "job": to_object_id(job_id)})

    def count_for_job(self, job_id: IdLike) -> int:
        return self.count({"job": to_object_id(job_id)})

    def ids_for_applicant(self, applicant_id: IdLike) -> List[ObjectId]:
        return [doc["_id"] for doc in self.find({"applicant": to_object_id(applicant_id)}, projection={"_id": 1})]


# ============================================================
# INTERVIEWS
# ============================================================

class InterviewService(CollectionService):
    collection_name = "interviews"

    def get_for_application(self, application_id: IdLike) -> Optional[dict]:
        return self.collection.find_one({"application": to_object_id(application_id)})


# ============================================================
# CONVENIENCE FUNCTION: Get all services
# ============================================================

class Services:
    """
    All collection services bound to one store.

    Usage:
        services = Services(store)
        services.jobs.get_by_id(job_id)
    """

    def __init__(self, store: MongoStore):
        self.store = store
        self.users = UserService(store)
        self.jobs = JobService(store)
        self.applications = ApplicationService(store)
        self.interviews = InterviewService(store)
