from typing import List

from fastapi import APIRouter, Depends

from ..auth import get_current_user
from ..deps import get_bookings, get_items
from ..models import User
from ..schemas import BookingCreateIn, BookingOut, BookingStatusIn, booking_out
from ..storage import BookingRepository, ItemRepository


router = APIRouter(prefix="/api/bookings", tags=["bookings"])


@router.get("", response_model=List[BookingOut])
def list_bookings(user: User = Depends(get_current_user), bookings: BookingRepository = Depends(get_bookings)):
    return [booking_out(b) for b in bookings.list_for_user(user.id)]


@router.get("/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: str, user: User = Depends(get_current_user), bookings: BookingRepository = Depends(get_bookings)):
    return booking_out(bookings.get_for_participant(booking_id, user))


@router.post("", response_model=BookingOut)
def create_booking(
    payload: BookingCreateIn,
    user: User = Depends(get_current_user),
    items: ItemRepository = Depends(get_items),
    bookings: BookingRepository = Depends(get_bookings),
):
    item = items.get_or_404(payload.item_id)
    b = bookings.create(user, item, payload.pickup_date, payload.return_date)
    return booking_out(b)


@router.patch("/{booking_id}/status", response_model=BookingOut)
def update_booking_status(
    booking_id: str,
    payload: BookingStatusIn,
    user: User = Depends(get_current_user),
    bookings: BookingRepository = Depends(get_bookings),
):
    b = bookings.get_or_404(booking_id)
    return booking_out(bookings.update_status(b, user, payload.status))
