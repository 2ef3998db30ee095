"""
Authentication Utility - JWT and Password handling.

Provides:
- Password hashing with bcrypt
- JWT token creation/verification
- FastAPI dependencies for protected routes (required, optional, role-gated)
"""

from datetime import datetime, timedelta
from typing import Optional

from bson.errors import InvalidId
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import Settings, get_settings
from app.core.errors import AuthenticationError, AuthorizationError
from app.db.mongodb import MongoStore, get_store
from app.services.mongo_service import UserService

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer token extractor; missing tokens are reported through our own envelope
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None, settings: Optional[Settings] = None) -> str:
    """Create JWT access token."""
    settings = settings or get_settings()
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def token_for_user(user: dict, settings: Optional[Settings] = None) -> str:
    return create_access_token({"sub": str(user["_id"]), "role": user.get("role")}, settings=settings)


def decode_token(token: str, settings: Optional[Settings] = None) -> Optional[dict]:
    """Decode and verify JWT token."""
    settings = settings or get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def current_user_from_doc(user: dict) -> dict:
    """The acting-user dict handed to routes and policy functions."""
    return {
        "id": str(user["_id"]),
        "_id": user["_id"],
        "email": user.get("email"),
        "role": user.get("role"),
        "firstName": user.get("firstName"),
        "lastName": user.get("lastName"),
        "company": user.get("company"),
    }


def _load_user(token: str, store: MongoStore, settings: Settings) -> dict:
    payload = decode_token(token, settings)
    if not payload or not payload.get("sub"):
        raise AuthenticationError("Not authorized, token failed")

    users = UserService(store)
    try:
        user = users.get_by_id(payload["sub"], projection={"passwordHash": 0})
    except InvalidId:
        raise AuthenticationError("Not authorized, token failed")
    if not user:
        raise AuthenticationError("User not found")
    if not user.get("isActive", True):
        raise AuthenticationError("Account has been deactivated")
    return current_user_from_doc(user)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    store: MongoStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> dict:
    """
    FastAPI dependency - Get current authenticated user.

    Usage:
        @router.get("/protected")
        async def route(user: dict = Depends(get_current_user)):
            return user
    """
    if credentials is None:
        raise AuthenticationError("Not authorized, no token")
    return _load_user(credentials.credentials, store, settings)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    store: MongoStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> Optional[dict]:
    """Like get_current_user, but anonymous callers (or bad tokens) get None."""
    if credentials is None:
        return None
    try:
        return _load_user(credentials.credentials, store, settings)
    except AuthenticationError:
        return None


def require_roles(*roles: str):
    """
    Dependency factory - Require one of the given roles.

    Usage:
        @router.post("/jobs")
        async def create(user: dict = Depends(require_roles("recruiter", "admin"))):
            ...
    """

    async def dependency(user: dict = Depends(get_current_user)) -> dict:
        if user["role"] not in roles:
            raise AuthorizationError(f"User role {user['role']} is not authorized to access this route")
        return user

    return dependency
