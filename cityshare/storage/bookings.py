from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..errors import Forbidden, InvalidDateRange, InvalidStatusTransition, NotFound, ValidationError
from ..models import Booking, Item, User, BOOKING_STATUSES
from ..utils.ids import parse_uuid
from .items import ItemRepository


# pending -> accepted -> completed, pending -> declined; declined/completed are terminal
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"accepted", "declined"}),
    "accepted": frozenset({"completed"}),
    "declined": frozenset(),
    "completed": frozenset(),
}

# Item status that follows a booking transition
ITEM_STATUS_ON_TRANSITION = {
    "accepted": "borrowed",
    "completed": "available",
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class BookingRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, booking_id) -> Booking | None:
        bid = parse_uuid(booking_id)
        if bid is None:
            return None
        return self.db.get(Booking, bid)

    def get_or_404(self, booking_id) -> Booking:
        b = self.get(booking_id)
        if b is None:
            raise NotFound("Booking not found", code="booking_not_found")
        return b

    def get_for_participant(self, booking_id, user: User) -> Booking:
        b = self.get_or_404(booking_id)
        if user.id not in (b.borrower_id, b.owner_id):
            raise Forbidden("Not a participant of this booking")
        return b

    def list_for_user(self, user_id) -> list[Booking]:
        return (
            self.db.query(Booking)
            .filter(or_(Booking.borrower_id == user_id, Booking.owner_id == user_id))
            .order_by(Booking.created_at.desc())
            .all()
        )

    def list_for_item(self, item: Item, caller: User) -> list[Booking]:
        if item.owner_id != caller.id:
            raise Forbidden("Only the owner can view bookings for this item", code="not_item_owner")
        return self.db.query(Booking).filter(Booking.item_id == item.id).order_by(Booking.created_at.desc()).all()

    def create(self, borrower: User, item: Item, pickup_date: datetime, return_date: datetime) -> Booking:
        if not pickup_date < return_date:
            raise InvalidDateRange()
        if item.owner_id == borrower.id:
            raise ValidationError("You cannot book your own item")
        b = Booking(
            item_id=item.id,
            borrower_id=borrower.id,
            owner_id=item.owner_id,
            pickup_date=pickup_date,
            return_date=return_date,
            status="pending",
        )
        self.db.add(b)
        # Counted at request time, not at completion
        self.db.query(User).filter(User.id == borrower.id).update(
            {User.items_borrowed: User.items_borrowed + 1}, synchronize_session=False
        )
        self.db.flush()
        self.db.refresh(borrower)
        return b

    def update_status(self, booking: Booking, caller: User, status: str) -> Booking:
        if status not in BOOKING_STATUSES:
            raise ValidationError("Unknown booking status")
        if booking.owner_id != caller.id:
            raise Forbidden("Only the item owner can change the booking status", code="not_booking_owner")
        if not can_transition(booking.status, status):
            raise InvalidStatusTransition(f"Cannot move booking from {booking.status} to {status}")
        booking.status = status
        booking.updated_at = datetime.utcnow()
        item_status = ITEM_STATUS_ON_TRANSITION.get(status)
        if item_status:
            ItemRepository(self.db).set_status(booking.item_id, item_status)
        self.db.flush()
        return booking
