from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, joinedload, selectinload

from ..errors import Conflict, Forbidden, NotFound, ValidationError
from ..models import Booking, Item, ItemImage, Message, User, WishlistEntry, ITEM_STATUSES
from ..utils.ids import parse_uuid


REQUIRED_ITEM_FIELDS = ("title", "description", "category", "location")
EDITABLE_ITEM_FIELDS = ("title", "description", "category", "location", "distance", "status")
ACTIVE_BOOKING_STATUSES = ("pending", "accepted")


@dataclass
class ItemFilters:
    """Optional browse filters; every predicate that applies is AND-ed."""

    search: Optional[str] = None
    category: Optional[str] = None
    max_distance: Optional[float] = None
    verified_only: bool = False
    limit: Optional[int] = None

    def search_clause(self):
        term = (self.search or "").strip()
        if not term:
            return None
        # autoescape: % and _ in the query are literal characters
        return or_(Item.title.icontains(term, autoescape=True), Item.description.icontains(term, autoescape=True))

    def category_clause(self):
        if not self.category or self.category == "all":
            return None
        return Item.category == self.category

    def distance_clause(self):
        if self.max_distance is None or self.max_distance <= 0:
            return None
        # Items without a stored distance are always in range
        return or_(Item.distance.is_(None), Item.distance <= self.max_distance)

    def verified_clause(self):
        if not self.verified_only:
            return None
        return User.is_verified.is_(True)

    def clauses(self) -> list:
        candidates = (self.search_clause(), self.category_clause(), self.distance_clause(), self.verified_clause())
        return [c for c in candidates if c is not None]


def _clean_required(fields: dict, names) -> None:
    missing = [n for n in names if not isinstance(fields.get(n), str) or not fields[n].strip()]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}", details={"fields": missing})
    for n in names:
        fields[n] = fields[n].strip()


class ItemRepository:
    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return (
            self.db.query(Item)
            .join(User, Item.owner_id == User.id)
            .options(joinedload(Item.owner), selectinload(Item.images))
        )

    def get(self, item_id) -> Item | None:
        iid = parse_uuid(item_id)
        if iid is None:
            return None
        return self._query().filter(Item.id == iid).one_or_none()

    def get_or_404(self, item_id) -> Item:
        item = self.get(item_id)
        if item is None:
            raise NotFound("Item not found", code="item_not_found")
        return item

    def browse(self, filters: ItemFilters, default_limit: int = 50, max_limit: int = 200) -> list[Item]:
        qry = self._query()
        conds = filters.clauses()
        if conds:
            qry = qry.filter(and_(*conds))
        limit = filters.limit if filters.limit and filters.limit > 0 else default_limit
        limit = min(limit, max_limit)
        return qry.order_by(Item.created_at.desc()).limit(limit).all()

    def list_by_owner(self, owner_id) -> list[Item]:
        return self._query().filter(Item.owner_id == owner_id).order_by(Item.created_at.desc()).all()

    def create(self, owner: User, fields: dict) -> Item:
        fields = dict(fields)
        _clean_required(fields, REQUIRED_ITEM_FIELDS)
        item = Item(
            owner_id=owner.id,
            title=fields["title"],
            description=fields["description"],
            category=fields["category"],
            location=fields["location"],
            distance=fields.get("distance"),
            status="available",
        )
        self._set_images(item, fields.get("images") or [])
        self.db.add(item)
        self.db.query(User).filter(User.id == owner.id).update(
            {User.items_listed: User.items_listed + 1}, synchronize_session=False
        )
        self.db.flush()
        self.db.refresh(owner)
        return item

    def update(self, item: Item, caller: User, fields: dict) -> Item:
        self._require_owner(item, caller)
        present = [n for n in ("title", "description", "category", "location") if n in fields]
        if present:
            _clean_required(fields, present)
        if "status" in fields and fields["status"] not in ITEM_STATUSES:
            raise ValidationError("Unknown item status")
        for key in EDITABLE_ITEM_FIELDS:
            if key in fields and (fields[key] is not None or key == "distance"):
                setattr(item, key, fields[key])
        if fields.get("images") is not None:
            self._set_images(item, fields["images"])
        item.updated_at = datetime.utcnow()
        self.db.flush()
        return item

    def delete(self, item: Item, caller: User) -> None:
        """Hard delete.

        Refused while a pending or accepted booking references the item.
        Wishlist entries go with it; closed bookings and messages keep their
        rows with the item reference cleared.
        """
        self._require_owner(item, caller)
        active = (
            self.db.query(Booking.id)
            .filter(Booking.item_id == item.id, Booking.status.in_(ACTIVE_BOOKING_STATUSES))
            .first()
        )
        if active is not None:
            raise Conflict("Item has active bookings", code="item_has_active_bookings")
        self.db.query(WishlistEntry).filter(WishlistEntry.item_id == item.id).delete(synchronize_session=False)
        self.db.query(Booking).filter(Booking.item_id == item.id).update({Booking.item_id: None}, synchronize_session=False)
        self.db.query(Message).filter(Message.item_id == item.id).update({Message.item_id: None}, synchronize_session=False)
        owner_id = item.owner_id
        self.db.delete(item)
        self.db.query(User).filter(User.id == owner_id, User.items_listed > 0).update(
            {User.items_listed: User.items_listed - 1}, synchronize_session=False
        )
        self.db.flush()

    def set_status(self, item_id, status: str) -> None:
        if item_id is None:
            return
        self.db.query(Item).filter(Item.id == item_id).update(
            {Item.status: status, Item.updated_at: datetime.utcnow()}, synchronize_session=False
        )

    @staticmethod
    def _require_owner(item: Item, caller: User) -> None:
        if item.owner_id != caller.id:
            raise Forbidden("Only the owner can modify this item", code="not_item_owner")

    @staticmethod
    def _set_images(item: Item, urls: list[str]) -> None:
        item.images = [ItemImage(url=u.strip(), sort_order=i) for i, u in enumerate(urls) if u and u.strip()]
