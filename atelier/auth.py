import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from jose import jwt as jose_jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .config import ACCESS_TOKEN_COOKIE_NAME, ACCESS_TOKEN_EXPIRE_MINUTES, SECRET_KEY
from .database import get_db
from .models import User
from .shared.errors import ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# auto_error=False so the session cookie can be used instead of the header
security = HTTPBearer(auto_error=False)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# Permissions granted per role; "*" grants everything.
# Ownership of orders/quotations/visits is checked in the domain services.
ROLE_PERMISSIONS: dict[str, set[str]] = {
    "admin": {"*"},
    "customer": set(),
}


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error(f"Password verification error: {e}")
        return False


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": str(user.id), "email": user.email, "role": user.role, "exp": expire}
    return jose_jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[dict[str, Any]]:
    try:
        return jose_jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


def has_permission(user: Optional[User], module: str, action: str) -> bool:
    if user is None:
        return False
    granted = ROLE_PERMISSIONS.get(user.role, set())
    return "*" in granted or f"{module}:{action}" in granted


def ensure_owner_or_permission(user: User, owner_id: Optional[int], module: str, action: str):
    """Raise ForbiddenError unless user owns the resource or holds module:action"""
    if owner_id is not None and owner_id == user.id:
        return
    if not has_permission(user, module, action):
        logger.warning(f"User {user.id} denied {module}:{action} on a resource owned by {owner_id}")
        raise ForbiddenError()


def _extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(ACCESS_TOKEN_COOKIE_NAME)


def _resolve_user(token: Optional[str], db: Session) -> Optional[User]:
    if not token:
        return None
    payload = decode_access_token(token)
    if not payload or not payload.get("sub"):
        return None
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        return None
    return db.query(User).filter(User.id == user_id).first()


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from the session cookie or Bearer token"""
    token = _extract_token(request, credentials)
    if not token:
        raise UnauthorizedError("Not authenticated")

    user = _resolve_user(token, db)
    if not user:
        raise UnauthorizedError("Invalid or expired session")
    return user


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Like get_current_user, but anonymous (guest) requests resolve to None"""
    return _resolve_user(_extract_token(request, credentials), db)


def require_permission(module: str, action: str):
    """Dependency factory rejecting users whose role lacks module:action"""

    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if not has_permission(current_user, module, action):
            logger.warning(f"User {current_user.id} denied {module}:{action}")
            raise ForbiddenError()
        return current_user

    return dependency
