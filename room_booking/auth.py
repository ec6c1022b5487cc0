# auth.py

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from databases import Database
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from room_booking.config import Settings
from room_booking.errors import ConflictError
from room_booking.models import users

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login")

INVALID_CREDENTIALS = "Invalid email or password"


# Pydantic Models
class User(BaseModel):
    """Sanitized user profile. Never carries credential material."""
    id: int
    email: str
    full_name: str
    department: Optional[str] = None
    role: str = "user"


class SignupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    password: str = Field(min_length=1)
    full_name: str = Field(alias="fullName", min_length=1)
    department: Optional[str] = None


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def to_profile(user_record) -> User:
    return User(
        id=user_record["id"],
        email=user_record["email"],
        full_name=user_record["full_name"],
        department=user_record["department"],
        role=user_record["role"],
    )


async def get_user_by_email(database: Database, email: str):
    query = users.select().where(users.c.email == normalize_email(email))
    return await database.fetch_one(query)


async def get_user_by_id(database: Database, user_id: int):
    return await database.fetch_one(users.select().where(users.c.id == user_id))


async def create_user(database: Database, email: str, password: str, full_name: str,
                      department: Optional[str] = None, role: str = "user") -> int:
    query = users.insert().values(
        email=normalize_email(email),
        password_hash=hash_password(password),
        full_name=full_name,
        department=department,
        role=role,
    ).returning(users.c.id)
    return await database.fetch_val(query)


async def register_user(database: Database, email: str, password: str, full_name: str,
                        department: Optional[str] = None) -> int:
    """Creates a regular user, raising ConflictError if the email is taken.

    The unique index on users.email decides between concurrent signups; the
    driver's integrity error differs per backend, so a failed insert is
    re-checked by looking the email up again.
    """
    if await get_user_by_email(database, email):
        raise ConflictError("Email already registered")
    try:
        return await create_user(database, email=email, password=password,
                                 full_name=full_name, department=department)
    except Exception:
        if await get_user_by_email(database, email):
            raise ConflictError("Email already registered")
        raise


async def authenticate_user(database: Database, email: str, password: str):
    """Returns the user record on a match, otherwise None.

    Unknown emails still pay for a hash verification so both failure paths
    look the same from outside.
    """
    user_record = await get_user_by_email(database, email)
    if user_record is None:
        pwd_context.dummy_verify()
        return None
    if not verify_password(password, user_record["password_hash"]):
        return None
    return user_record


def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None):
    if not settings.secret_key:
        raise RuntimeError("SECRET_KEY is not configured")
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    return encoded_jwt


async def get_current_active_user(request: Request, token: str = Depends(oauth2_scheme)) -> User:
    settings: Settings = request.app.state.settings
    database: Database = request.app.state.database

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not settings.secret_key:
        raise credentials_exception
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        email: str = payload.get("sub")
        if email is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user_record = await get_user_by_email(database, email)
    if user_record is None:
        raise credentials_exception

    return to_profile(user_record)
