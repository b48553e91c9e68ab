"""Password hashing and session tokens."""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from screenops.config import settings

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return _pwd_context.verify(password, password_hash)


def create_session_token(*, subject: str, role: str, expires_minutes: int | None = None) -> str:
    minutes = settings.session_expire_minutes if expires_minutes is None else expires_minutes
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    payload = {
        "sub": subject,
        "role": role,
        "exp": expire,
    }
    return jwt.encode(payload, settings.session_secret_key, algorithm=settings.session_algorithm)


def decode_session_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.session_secret_key, algorithms=[settings.session_algorithm])
    except JWTError as exc:
        raise ValueError("Invalid session token") from exc
