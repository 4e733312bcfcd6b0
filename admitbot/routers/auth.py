# admitbot/routers/auth.py
import logging
from datetime import timedelta, datetime, timezone
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from .. import otp as otp_service
from ..config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    COOKIE_SAMESITE,
    COOKIE_SECURE,
    JWT_ALGORITHM,
    JWT_SECRET,
)
from ..database import get_db
from ..mailer import MailError
from ..models import Users, utcnow

logger = logging.getLogger(__name__)

authRoutes = APIRouter(prefix="/api/auth", tags=["auth"])

TOKEN_COOKIE = "access_token"
oauth2_bearer = OAuth2PasswordBearer(tokenUrl="api/auth/login", auto_error=False)
db_link = Annotated[Session, Depends(get_db)]


bcrypt_context = CryptContext(schemes=['bcrypt'], deprecated='auto')


def hash_password(plain: str) -> str:
    return bcrypt_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt_context.verify(plain, hashed)


class RegisterRequest(BaseModel):
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=30)
    password: str = Field(..., min_length=6, max_length=120)
    otp: str = Field(..., min_length=4, max_length=12)
    display_name: Optional[str] = Field(default=None, max_length=80)

class UserOut(BaseModel):
    id: int
    email: EmailStr
    username: str
    role: str
    display_name: Optional[str]
    photo_url: Optional[str]
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None
    class Config:
        from_attributes = True  # Pydantic v2

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut

class ProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(default=None, max_length=80)
    photo_url: Optional[str] = Field(default=None, max_length=500)

class ForgotPasswordRequest(BaseModel):
    email: EmailStr

class ResetPasswordRequest(BaseModel):
    email: EmailStr
    otp: str
    new_password: str = Field(..., min_length=6, max_length=120)


def create_access_token(email: str, user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = {"sub": email, "uid": user_id}
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def get_current_user(
    request: Request,
    db: db_link,
    bearer: Annotated[Optional[str], Depends(oauth2_bearer)],
) -> Users:
    token = bearer or request.cookies.get(TOKEN_COOKIE)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    email = payload.get("sub")
    user_id = payload.get("uid")
    if not email or not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized: missing claims",
        )
    user = db.get(Users, user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found")
    return user


current_login_user = Annotated[Users, Depends(get_current_user)]


@authRoutes.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register_user(payload: RegisterRequest, db: db_link):
    email = otp_service.normalize_email(payload.email)
    username = payload.username.strip()

    # the OTP deletion stays pending until the user row commits with it
    if not otp_service.consume_otp(db, email, payload.otp, commit=False):
        raise HTTPException(status_code=400, detail="Invalid or expired OTP")

    existing = (
        db.query(Users)
        .filter((Users.email == email) | (Users.username == username))
        .first()
    )
    if existing:
        db.rollback()
        if existing.email == email:
            raise HTTPException(status_code=409, detail="Email already registered")
        raise HTTPException(status_code=409, detail="Username already taken")

    user = Users(
        email=email,
        username=username,
        display_name=(payload.display_name or username).strip(),
        role="student",
        hashed_password=hash_password(payload.password),
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s (id=%s)", user.email, user.id)
    return user


@authRoutes.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: db_link, response: Response):
    user = db.query(Users).filter(Users.email == otp_service.normalize_email(payload.email)).first()
    if not user or not user.is_active or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    user.last_login = utcnow()
    db.commit()
    db.refresh(user)

    token = create_access_token(email=user.email, user_id=user.id)
    response.set_cookie(
        key=TOKEN_COOKIE,
        value=token,
        httponly=True,
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        samesite=COOKIE_SAMESITE,
        secure=COOKIE_SECURE,
    )
    return TokenResponse(access_token=token, user=UserOut.model_validate(user))


@authRoutes.post("/logout")
def logout(response: Response):
    response.delete_cookie(TOKEN_COOKIE)
    return {"message": "Logged out"}


@authRoutes.get("/me", response_model=UserOut)
def read_me(current_user: current_login_user):
    return current_user


@authRoutes.patch("/me", response_model=UserOut)
def update_me(payload: ProfileUpdate, db: db_link, current_user: current_login_user):
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(current_user, field, value)
    if changes:
        current_user.updated_at = utcnow()
        db.commit()
        db.refresh(current_user)
    return current_user


@authRoutes.post("/password/forgot")
def forgot_password(payload: ForgotPasswordRequest, db: db_link):
    email = otp_service.normalize_email(payload.email)
    user = db.query(Users).filter(Users.email == email).first()
    if user:
        try:
            otp_service.issue_otp(db, email, subject="Password reset")
        except MailError:
            logger.exception("Failed to send password reset email to %s", email)
    # response does not reveal whether the email is registered
    return {"message": "If the email is registered, a reset code has been sent"}


@authRoutes.post("/password/reset")
def reset_password(payload: ResetPasswordRequest, db: db_link):
    email = otp_service.normalize_email(payload.email)
    user = db.query(Users).filter(Users.email == email).first()
    if not user or not otp_service.consume_otp(db, email, payload.otp, commit=False):
        db.rollback()
        raise HTTPException(status_code=400, detail="Invalid or expired OTP")

    user.hashed_password = hash_password(payload.new_password)
    user.updated_at = utcnow()
    db.commit()
    logger.info("Password reset for user id=%s", user.id)
    return {"message": "Password updated successfully"}
