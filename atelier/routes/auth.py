import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import create_access_token, get_current_user, hash_password, verify_password
from ..config import ACCESS_TOKEN_COOKIE_NAME, ACCESS_TOKEN_EXPIRE_MINUTES, COOKIE_SECURE
from ..database import get_db
from ..models import User
from ..schemas import LoginRequest, RegisterRequest, UserResponse
from ..shared.errors import ConflictError, UnauthorizedError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _set_session_cookie(response: Response, token: str):
    response.set_cookie(
        key=ACCESS_TOKEN_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
    )


@router.post("/register", status_code=201)
async def register(data: RegisterRequest, response: Response, db: Session = Depends(get_db)):
    """Create a customer account and open a session"""
    if db.query(User).filter(User.email == data.email).first():
        raise ConflictError("Email already registered")

    user = User(
        name=data.name,
        email=data.email,
        password_hash=hash_password(data.password),
        phone=data.phone,
        role="customer",
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already registered") from None
    db.refresh(user)

    token = create_access_token(user)
    _set_session_cookie(response, token)
    logger.info(f"✅ User registered: {user.email}")
    return {"ok": True, "user": UserResponse.model_validate(user), "token": token}


@router.post("/login")
async def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == data.email.strip().lower()).first()
    if not user or not verify_password(data.password, user.password_hash):
        logger.warning(f"Failed login attempt for {data.email}")
        raise UnauthorizedError("Invalid email or password")

    token = create_access_token(user)
    _set_session_cookie(response, token)
    return {"ok": True, "user": UserResponse.model_validate(user), "token": token}


@router.post("/logout")
async def logout(response: Response):
    response.delete_cookie(key=ACCESS_TOKEN_COOKIE_NAME, path="/")
    return {"ok": True}


@router.get("/me")
async def me(current_user: User = Depends(get_current_user)):
    return {"ok": True, "user": UserResponse.model_validate(current_user)}
