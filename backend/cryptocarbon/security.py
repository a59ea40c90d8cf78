# backend/cryptocarbon/security.py
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from .db import UserDB

logger = logging.getLogger("cryptocarbon.auth")

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")
# auto_error=False: a missing token yields an anonymous context instead of a 401
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/session", auto_error=False)


class RegistrationError(ValueError):
    """Raised when a user cannot be registered (missing fields, email taken)."""


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        return False


# =========================
# Session identity
# =========================

@dataclass(frozen=True)
class SessionUser:
    id: str
    name: str
    email: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email}


@dataclass(frozen=True)
class RequestContext:
    """Per-request view of who is calling; `user` is None for anonymous calls."""
    user: Optional[SessionUser] = None
    expires: Optional[datetime] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def require_user(self) -> SessionUser:
        if self.user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="You must be signed in",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return self.user


def create_access_token(user: SessionUser, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode = {"sub": user.id, "name": user.name, "email": user.email, "exp": expire}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> RequestContext:
    """Rebuild the session from token claims alone; bad or expired tokens give an anonymous context."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return RequestContext()
    sub = payload.get("sub")
    if sub is None:
        return RequestContext()
    user = SessionUser(id=str(sub), name=payload.get("name") or "", email=payload.get("email") or "")
    exp = payload.get("exp")
    expires = datetime.fromtimestamp(exp, tz=timezone.utc) if exp is not None else None
    return RequestContext(user=user, expires=expires)


def get_request_context(token: Optional[str] = Depends(oauth2_scheme)) -> RequestContext:
    if not token:
        return RequestContext()
    return decode_access_token(token)


# =========================
# Credential store
# =========================

def authenticate_user(db: Session, email: str, password: str) -> Optional[SessionUser]:
    """Return the identity for matching credentials, None otherwise.

    Unknown email and wrong password are deliberately indistinguishable.
    """
    if not email or not password:
        return None
    user = db.query(UserDB).filter(UserDB.email == email.strip().lower()).first()
    if not user or not verify_password(password, user.password_hash):
        return None
    return SessionUser(id=str(user.id), name=user.name, email=user.email)


def register_user(db: Session, name: str, email: str, password: str) -> UserDB:
    if not name or not email or not password:
        raise RegistrationError("All fields are required")
    email = email.strip().lower()
    if db.query(UserDB).filter(UserDB.email == email).first():
        raise RegistrationError("Email already in use")
    user = UserDB(name=name, email=email, password_hash=hash_password(password))
    try:
        db.add(user); db.commit(); db.refresh(user)
    except IntegrityError:
        db.rollback()
        raise RegistrationError("Email already in use")
    logger.info("Registered user id=%s", user.id)
    return user
