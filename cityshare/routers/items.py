from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ..auth import get_current_user
from ..config import settings
from ..deps import get_bookings, get_items
from ..models import User
from ..schemas import BookingOut, ItemCreateIn, ItemOut, ItemUpdateIn, SuccessOut, booking_out, item_out
from ..storage import BookingRepository, ItemFilters, ItemRepository


router = APIRouter(prefix="/api/items", tags=["items"])


@router.get("", response_model=List[ItemOut])
def list_items(
    search: Optional[str] = None,
    category: Optional[str] = None,
    max_distance: Optional[float] = Query(None, alias="maxDistance"),
    verified_only: bool = Query(False, alias="verifiedOnly"),
    limit: Optional[int] = Query(None, ge=1),
    items: ItemRepository = Depends(get_items),
):
    filters = ItemFilters(
        search=search,
        category=category,
        max_distance=max_distance,
        verified_only=verified_only,
        limit=limit,
    )
    rows = items.browse(filters, default_limit=settings.ITEMS_DEFAULT_LIMIT, max_limit=settings.ITEMS_MAX_LIMIT)
    return [item_out(i) for i in rows]


# Fixed paths go before /{item_id}
@router.get("/recent", response_model=List[ItemOut])
def recent_items(items: ItemRepository = Depends(get_items)):
    rows = items.browse(ItemFilters(limit=settings.RECENT_ITEMS_LIMIT), max_limit=settings.RECENT_ITEMS_LIMIT)
    return [item_out(i) for i in rows]


@router.get("/my-items", response_model=List[ItemOut])
def my_items(user: User = Depends(get_current_user), items: ItemRepository = Depends(get_items)):
    return [item_out(i) for i in items.list_by_owner(user.id)]


@router.get("/{item_id}", response_model=ItemOut)
def get_item(item_id: str, items: ItemRepository = Depends(get_items)):
    return item_out(items.get_or_404(item_id))


@router.get("/{item_id}/bookings", response_model=List[BookingOut])
def item_bookings(
    item_id: str,
    user: User = Depends(get_current_user),
    items: ItemRepository = Depends(get_items),
    bookings: BookingRepository = Depends(get_bookings),
):
    item = items.get_or_404(item_id)
    return [booking_out(b) for b in bookings.list_for_item(item, user)]


@router.post("", response_model=ItemOut)
def create_item(payload: ItemCreateIn, user: User = Depends(get_current_user), items: ItemRepository = Depends(get_items)):
    item = items.create(user, payload.model_dump())
    return item_out(item)


@router.patch("/{item_id}", response_model=ItemOut)
def update_item(
    item_id: str,
    payload: ItemUpdateIn,
    user: User = Depends(get_current_user),
    items: ItemRepository = Depends(get_items),
):
    item = items.get_or_404(item_id)
    return item_out(items.update(item, user, payload.model_dump(exclude_unset=True)))


@router.delete("/{item_id}", response_model=SuccessOut)
def delete_item(item_id: str, user: User = Depends(get_current_user), items: ItemRepository = Depends(get_items)):
    item = items.get_or_404(item_id)
    items.delete(item, user)
    return SuccessOut()
