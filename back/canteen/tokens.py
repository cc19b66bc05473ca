"""JWT helpers shared by the API and the websocket bridge."""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from .models import Role
from .settings import settings


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=15)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    return encoded_jwt


def decode_access_token(token: str) -> dict | None:
    """Return `{"username", "role"}` for a valid token, None otherwise."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    username = payload.get("sub")
    try:
        role = Role(payload.get("role"))
    except ValueError:
        return None
    if username is None:
        return None
    return {"username": username, "role": role}
