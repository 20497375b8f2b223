from datetime import datetime

from sqlalchemy.orm import Session

from ..errors import NotFound, UsernameTaken
from ..models import User
from ..utils.ids import parse_uuid


PROFILE_FIELDS = ("email", "first_name", "last_name", "bio", "location", "profile_image_url")


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id) -> User | None:
        uid = parse_uuid(user_id)
        if uid is None:
            return None
        return self.db.get(User, uid)

    def get_or_404(self, user_id) -> User:
        user = self.get(user_id)
        if user is None:
            raise NotFound("User not found", code="user_not_found")
        return user

    def get_by_username(self, username: str) -> User | None:
        return self.db.query(User).filter(User.username == username).one_or_none()

    def create(self, username: str, password_hash: str) -> User:
        if self.get_by_username(username) is not None:
            raise UsernameTaken()
        user = User(username=username, password_hash=password_hash, is_admin=False)
        self.db.add(user)
        self.db.flush()
        return user

    def update_profile(self, user: User, fields: dict) -> User:
        for key in PROFILE_FIELDS:
            if key in fields:
                setattr(user, key, fields[key])
        user.updated_at = datetime.utcnow()
        self.db.flush()
        return user
