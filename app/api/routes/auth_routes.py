"""
Authentication Routes

POST /auth/register - Register new applicant or recruiter, returns JWT token
POST /auth/login - Login and get JWT token
POST /auth/logout - Logout (token is discarded client-side)
GET /auth/me - Get current user info
PUT /auth/profile - Update own profile
PUT /auth/password - Change own password
"""

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends

from app.api.deps import get_services
from app.core.auth import get_current_user, hash_password, token_for_user, verify_password
from app.core.errors import AuthenticationError, ValidationError
from app.schemas.schemas import (
    LoginRequest,
    MessageResponse,
    PasswordChange,
    ProfileUpdate,
    RegisterRequest,
    TokenResponse,
)
from app.services.mongo_service import Services, public_user, serialize_doc

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def token_response(user: dict) -> TokenResponse:
    return TokenResponse(token=token_for_user(user), user=serialize_doc(public_user(user)))


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(request: RegisterRequest, services: Services = Depends(get_services)):
    """
    Register a new user account.

    Admin accounts cannot be self-registered.
    """
    if services.users.get_by_email(request.email):
        raise ValidationError.for_field("email", "User already exists with this email", request.email)

    data = request.to_document()
    user = services.users.create(data, hash_password(request.password))
    logger.info("user_registered", user_id=str(user["_id"]), role=user["role"])
    return token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, services: Services = Depends(get_services)):
    """
    Login and receive JWT access token.

    Include token in requests: Authorization: Bearer <token>
    """
    user = services.users.get_by_email(request.email)
    if not user or not verify_password(request.password, user.get("passwordHash", "")):
        raise AuthenticationError("Invalid credentials")

    if not user.get("isActive", True):
        raise AuthenticationError("Account has been deactivated")

    user = services.users.set_fields(user["_id"], {"lastLogin": datetime.utcnow()})
    logger.info("user_logged_in", user_id=str(user["_id"]))
    return token_response(user)


@router.post("/logout", response_model=MessageResponse)
async def logout(user: dict = Depends(get_current_user)):
    logger.info("user_logged_out", user_id=user["id"])
    return MessageResponse(message="Logged out successfully")


@router.get("/me")
async def get_me(user: dict = Depends(get_current_user), services: Services = Depends(get_services)):
    """Get current user info."""
    doc = services.users.get_by_id(user["id"])
    return {"success": True, "data": serialize_doc(public_user(doc))}


@router.put("/profile")
async def update_profile(
    changes: ProfileUpdate,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    fields = changes.changes_for()
    doc = services.users.set_fields(user["id"], fields) if fields else services.users.get_by_id(user["id"])
    return {"success": True, "data": serialize_doc(public_user(doc))}


@router.put("/password", response_model=MessageResponse)
async def change_password(
    request: PasswordChange,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    doc = services.users.get_by_id(user["id"])
    if not verify_password(request.current_password, doc.get("passwordHash", "")):
        raise ValidationError.for_field("currentPassword", "Current password is incorrect")

    services.users.set_fields(user["id"], {"passwordHash": hash_password(request.new_password)})
    logger.info("password_changed", user_id=user["id"])
    return MessageResponse(message="Password updated successfully")
