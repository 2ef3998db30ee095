"""
User Routes

GET /users - List users (admin only)
GET /users/{user_id} - Get user (self or admin)
PUT /users/{user_id} - Update user (admin only)
DELETE /users/{user_id} - Deactivate user (admin only)
GET /users/{user_id}/stats - Per-user counters (self or admin)
POST /users/upload-resume - Upload profile resume (applicant only)
"""

from typing import Optional

import structlog
from bson import ObjectId
from fastapi import APIRouter, Depends, File, Query, UploadFile
from pymongo import DESCENDING

from app.api.deps import Pagination, get_services, paginated, parse_object_id
from app.core.auth import get_current_user, require_roles
from app.core.config import Settings, get_settings
from app.core.errors import AuthorizationError, NotFoundError
from app.schemas.schemas import UserAdminUpdate, UserRole
from app.services import policy
from app.services.aggregation import user_stats
from app.services.mongo_service import Services, public_user, serialize_doc
from app.utils.file_upload import save_resume

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


def _self_or_admin(user: dict, target_id: ObjectId) -> None:
    if not policy.is_admin(user) and user["id"] != str(target_id):
        raise AuthorizationError("Not authorized to access this user")


@router.get("")
async def list_users(
    role: Optional[UserRole] = Query(None),
    pagination: Pagination = Depends(),
    admin: dict = Depends(require_roles("admin")),
    services: Services = Depends(get_services),
):
    filter_dict = {"role": role.value} if role else {}
    users = services.users.find(
        filter_dict,
        sort=[("createdAt", DESCENDING)],
        skip=pagination.skip,
        limit=pagination.limit,
        projection={"passwordHash": 0},
    )
    return paginated(users, services.users.count(filter_dict), pagination)


@router.post("/upload-resume")
async def upload_resume(
    resume: UploadFile = File(...),
    user: dict = Depends(require_roles("applicant")),
    services: Services = Depends(get_services),
    settings: Settings = Depends(get_settings),
):
    """Store a resume on the applicant's profile."""
    attachment = await save_resume(resume, settings)
    doc = services.users.set_fields(user["id"], {"resume": attachment})
    return {
        "success": True,
        "message": "Resume uploaded successfully",
        "data": serialize_doc(public_user(doc)),
    }


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    oid = parse_object_id(user_id, "user")
    _self_or_admin(user, oid)
    doc = services.users.get_by_id(oid, projection={"passwordHash": 0})
    if not doc:
        raise NotFoundError("User not found")
    return {"success": True, "data": serialize_doc(doc)}


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    changes: UserAdminUpdate,
    admin: dict = Depends(require_roles("admin")),
    services: Services = Depends(get_services),
):
    oid = parse_object_id(user_id, "user")
    fields = changes.changes_for()
    doc = services.users.set_fields(oid, fields) if fields else services.users.get_by_id(oid)
    if not doc:
        raise NotFoundError("User not found")
    logger.info("user_updated", user_id=user_id, fields=sorted(fields))
    return {"success": True, "data": serialize_doc(public_user(doc))}


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    admin: dict = Depends(require_roles("admin")),
    services: Services = Depends(get_services),
):
    """Soft delete: the account is deactivated, its data stays."""
    oid = parse_object_id(user_id, "user")
    doc = services.users.set_fields(oid, {"isActive": False})
    if not doc:
        raise NotFoundError("User not found")
    logger.info("user_deactivated", user_id=user_id, by=admin["id"])
    return {"success": True, "message": "User deactivated successfully"}


@router.get("/{user_id}/stats")
async def get_user_stats(
    user_id: str,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    oid = parse_object_id(user_id, "user")
    _self_or_admin(user, oid)
    doc = services.users.get_by_id(oid, projection={"passwordHash": 0})
    if not doc:
        raise NotFoundError("User not found")
    return {"success": True, "data": serialize_doc(user_stats(services, doc))}
