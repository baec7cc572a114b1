"""Authentication helpers — password hashing with bcrypt, bearer tokens with python-jose."""

from datetime import timedelta
from uuid import UUID

import bcrypt
from jose import JWTError, jwt

from app.config import get_settings
from app.exceptions import AuthenticationError
from app.models.base import utcnow


def hash_password(password: str) -> str:
    """Hash a plaintext password using bcrypt."""
    rounds = get_settings().bcrypt_rounds
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Check a plaintext password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


def create_access_token(user_id: UUID, role: str = "user", expires_minutes: int | None = None) -> str:
    settings = get_settings()
    expires = utcnow() + timedelta(minutes=expires_minutes or settings.access_token_expire_minutes)
    claims = {"sub": str(user_id), "role": role, "exp": expires}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> UUID:
    """Return the user id carried by a valid token."""
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
        return UUID(claims["sub"])
    except (JWTError, KeyError, ValueError) as e:
        raise AuthenticationError("Invalid or expired token") from e
