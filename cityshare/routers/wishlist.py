from typing import List

from fastapi import APIRouter, Depends

from ..auth import get_current_user
from ..deps import get_items, get_wishlist
from ..models import User
from ..schemas import SuccessOut, WishlistAddIn, WishlistAlertsIn, WishlistEntryOut, wishlist_entry_out
from ..storage import ItemRepository, WishlistRepository
from ..utils.ids import parse_uuid


router = APIRouter(prefix="/api/wishlist", tags=["wishlist"])


@router.get("", response_model=List[WishlistEntryOut])
def list_wishlist(user: User = Depends(get_current_user), wishlist: WishlistRepository = Depends(get_wishlist)):
    return [wishlist_entry_out(w, with_item=True) for w in wishlist.list_for_user(user.id)]


@router.get("/check/{item_id}", response_model=bool)
def check_wishlist(item_id: str, user: User = Depends(get_current_user), wishlist: WishlistRepository = Depends(get_wishlist)) -> bool:
    # Bare JSON boolean, not an object
    return wishlist.contains(user.id, parse_uuid(item_id))


@router.post("", response_model=WishlistEntryOut)
def add_to_wishlist(
    payload: WishlistAddIn,
    user: User = Depends(get_current_user),
    items: ItemRepository = Depends(get_items),
    wishlist: WishlistRepository = Depends(get_wishlist),
):
    item = items.get_or_404(payload.item_id)
    return wishlist_entry_out(wishlist.add(user, item, payload.alerts_enabled))


@router.delete("/{item_id}", response_model=SuccessOut)
def remove_from_wishlist(item_id: str, user: User = Depends(get_current_user), wishlist: WishlistRepository = Depends(get_wishlist)):
    wishlist.remove(user.id, parse_uuid(item_id))
    return SuccessOut()


@router.patch("/{item_id}", response_model=WishlistEntryOut)
def toggle_alerts(
    item_id: str,
    payload: WishlistAlertsIn,
    user: User = Depends(get_current_user),
    wishlist: WishlistRepository = Depends(get_wishlist),
):
    return wishlist_entry_out(wishlist.set_alerts(user.id, parse_uuid(item_id), payload.alerts_enabled))
