from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

from jose import jwt
from passlib.context import CryptContext

from .settings import settings


logging.getLogger('passlib').setLevel(logging.ERROR)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _truncate(password: str) -> str:
    # bcrypt only looks at the first 72 bytes
    password_bytes = (password or "").encode("utf-8")
    if len(password_bytes) > 72:
        password_bytes = password_bytes[:72]
    return password_bytes.decode("utf-8", errors="ignore")


def hash_password(password: str) -> str:
    return pwd_context.hash(_truncate(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(_truncate(plain_password), hashed_password)


def _resolve_expiry(expires_delta: Optional[timedelta]) -> datetime:
    """Return a safe JWT expiry timestamp.

    Uses the configured token lifetime when no explicit delta is given and
    caps the result inside ``datetime`` bounds.
    """
    delta = expires_delta
    if delta is None:
        minutes = settings.access_token_expire_minutes
        if isinstance(minutes, int) and minutes > 0:
            delta = timedelta(minutes=minutes)
        else:
            delta = timedelta(days=30)
    now = datetime.now(timezone.utc)
    try:
        return now + delta
    except OverflowError:
        return datetime.max.replace(tzinfo=timezone.utc)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    to_encode.update({"exp": _resolve_expiry(expires_delta)})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict:
    """Decode and verify a token; raises ``jose.JWTError`` when invalid or expired."""
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
