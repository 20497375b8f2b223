import hashlib
import secrets
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from ..models import User, UserSession


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class SessionRepository:
    """Server-side login sessions keyed by the digest of an opaque token."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, user: User, ttl: timedelta) -> str:
        token = secrets.token_urlsafe(32)
        now = datetime.utcnow()
        self.db.add(UserSession(id=hash_token(token), user_id=user.id, created_at=now, expires_at=now + ttl))
        self.db.flush()
        return token

    def resolve(self, token: str | None) -> User | None:
        if not token:
            return None
        row = self.db.get(UserSession, hash_token(token))
        if row is None:
            return None
        if row.expires_at <= datetime.utcnow():
            self.db.delete(row)
            self.db.flush()
            return None
        return self.db.get(User, row.user_id)

    def destroy(self, token: str | None) -> None:
        if not token:
            return
        row = self.db.get(UserSession, hash_token(token))
        if row is not None:
            self.db.delete(row)
            self.db.flush()

    def purge_expired(self) -> int:
        n = (
            self.db.query(UserSession)
            .filter(UserSession.expires_at <= datetime.utcnow())
            .delete(synchronize_session=False)
        )
        self.db.flush()
        return n
