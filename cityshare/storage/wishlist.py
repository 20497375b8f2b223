from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from ..errors import NotFound
from ..models import Item, User, WishlistEntry


class WishlistRepository:
    def __init__(self, db: Session):
        self.db = db

    def _find(self, user_id, item_id) -> WishlistEntry | None:
        return (
            self.db.query(WishlistEntry)
            .filter(WishlistEntry.user_id == user_id, WishlistEntry.item_id == item_id)
            .one_or_none()
        )

    def list_for_user(self, user_id) -> list[WishlistEntry]:
        return (
            self.db.query(WishlistEntry)
            .options(
                joinedload(WishlistEntry.item).joinedload(Item.owner),
                joinedload(WishlistEntry.item).selectinload(Item.images),
            )
            .filter(WishlistEntry.user_id == user_id)
            .order_by(WishlistEntry.created_at.desc())
            .all()
        )

    def contains(self, user_id, item_id) -> bool:
        if item_id is None:
            return False
        return self._find(user_id, item_id) is not None

    def add(self, user: User, item: Item, alerts_enabled: bool = True) -> WishlistEntry:
        """Idempotent: an existing (user, item) entry is returned unchanged."""
        existing = self._find(user.id, item.id)
        if existing is not None:
            return existing
        entry = WishlistEntry(user_id=user.id, item_id=item.id, alerts_enabled=alerts_enabled)
        try:
            with self.db.begin_nested():
                self.db.add(entry)
                self.db.flush()
        except IntegrityError:
            # A concurrent add won the unique (user_id, item_id) constraint
            existing = self._find(user.id, item.id)
            if existing is None:
                raise
            return existing
        return entry

    def remove(self, user_id, item_id) -> None:
        if item_id is None:
            return
        self.db.query(WishlistEntry).filter(
            WishlistEntry.user_id == user_id, WishlistEntry.item_id == item_id
        ).delete(synchronize_session=False)
        self.db.flush()

    def set_alerts(self, user_id, item_id, alerts_enabled: bool) -> WishlistEntry:
        entry = self._find(user_id, item_id) if item_id is not None else None
        if entry is None:
            raise NotFound("Item is not on your wishlist", code="wishlist_entry_not_found")
        entry.alerts_enabled = alerts_enabled
        self.db.flush()
        return entry
