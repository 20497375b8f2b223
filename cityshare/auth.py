from fastapi import Depends, Request, Response
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .errors import Unauthorized
from .models import User
from .storage import SessionRepository


pwd_context = CryptContext(schemes=settings.PASSWORD_HASH_SCHEMES, deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError):
        # Unknown or malformed hash
        return False


def session_token_from(request_or_ws) -> str | None:
    """Session token from the cookie, or an ``Authorization: Bearer`` header."""
    token = request_or_ws.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    auth = request_or_ws.headers.get("authorization") or ""
    scheme, _, value = auth.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=int(settings.session_ttl.total_seconds()),
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.SESSION_COOKIE_NAME, path="/")


def try_get_user(request: Request, db: Session = Depends(get_db)) -> User | None:
    return SessionRepository(db).resolve(session_token_from(request))


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    user = SessionRepository(db).resolve(session_token_from(request))
    if user is None:
        raise Unauthorized()
    return user
