from datetime import datetime, timezone
from typing import Literal, Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import User, Item, Booking, Message, Rating, WishlistEntry, ImpactStats


class CamelModel(BaseModel):
    """JSON uses camelCase keys; snake_case is still accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SuccessOut(CamelModel):
    success: bool = True


# Users / auth

class CredentialsIn(CamelModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=256)


class ProfileUpdateIn(CamelModel):
    email: Optional[str] = Field(default=None, max_length=255)
    first_name: Optional[str] = Field(default=None, max_length=128)
    last_name: Optional[str] = Field(default=None, max_length=128)
    bio: Optional[str] = Field(default=None, max_length=2000)
    location: Optional[str] = Field(default=None, max_length=255)
    profile_image_url: Optional[str] = Field(default=None, max_length=1024)


class UserSummaryOut(CamelModel):
    id: str
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    location: Optional[str] = None
    is_verified: bool = False
    rating: float = 0.0
    total_ratings: int = 0


class UserOut(UserSummaryOut):
    email: Optional[str] = None
    bio: Optional[str] = None
    is_admin: bool = False
    items_listed: int = 0
    items_borrowed: int = 0
    created_at: datetime
    updated_at: datetime


# Items

class ItemCreateIn(CamelModel):
    title: str = Field(max_length=255)
    description: str = Field(max_length=5000)
    category: str = Field(max_length=100)
    location: str = Field(max_length=255)
    images: List[str] = Field(default_factory=list, max_length=20)
    distance: Optional[float] = Field(default=None, ge=0)


class ItemUpdateIn(CamelModel):
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    category: Optional[str] = Field(default=None, max_length=100)
    location: Optional[str] = Field(default=None, max_length=255)
    images: Optional[List[str]] = Field(default=None, max_length=20)
    distance: Optional[float] = Field(default=None, ge=0)
    status: Optional[Literal["available", "borrowed", "pending"]] = None


class ItemOut(CamelModel):
    id: str
    owner_id: str
    title: str
    description: str
    category: str
    images: List[str]
    location: str
    distance: Optional[float] = None
    status: str
    created_at: datetime
    updated_at: datetime
    owner: Optional[UserSummaryOut] = None


# Bookings

class BookingCreateIn(CamelModel):
    item_id: str
    pickup_date: datetime
    return_date: datetime

    @field_validator("pickup_date", "return_date", mode="before")
    @classmethod
    def _date_only_is_midnight(cls, v):
        # "2025-06-01" -> "2025-06-01T00:00:00"
        if isinstance(v, str) and len(v.strip()) == 10:
            return v.strip() + "T00:00:00"
        return v

    @field_validator("pickup_date", "return_date")
    @classmethod
    def _naive_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v


class BookingStatusIn(CamelModel):
    status: Literal["pending", "accepted", "declined", "completed"]


class BookingOut(CamelModel):
    id: str
    item_id: Optional[str] = None
    borrower_id: str
    owner_id: str
    pickup_date: datetime
    return_date: datetime
    status: str
    created_at: datetime
    updated_at: datetime


# Messages

class MessageCreateIn(CamelModel):
    receiver_id: str
    content: str = Field(max_length=5000)
    conversation_id: Optional[str] = None
    item_id: Optional[str] = None


class MessageOut(CamelModel):
    id: str
    conversation_id: str
    sender_id: str
    receiver_id: str
    item_id: Optional[str] = None
    content: str
    is_read: bool
    created_at: datetime
    sender: Optional[UserSummaryOut] = None


class ConversationOut(CamelModel):
    conversation_id: str
    other_user_id: str
    other_user: UserSummaryOut
    last_message: MessageOut
    unread_count: int = 0


# Ratings

class RatingCreateIn(CamelModel):
    rated_user_id: str
    booking_id: str
    rating: int = Field(ge=1, le=5)
    review: Optional[str] = Field(default=None, max_length=2000)


class RatingOut(CamelModel):
    id: str
    rater_id: str
    rated_user_id: str
    booking_id: str
    rating: int
    review: Optional[str] = None
    created_at: datetime
    rater: Optional[UserSummaryOut] = None


# Wishlist

class WishlistAddIn(CamelModel):
    item_id: str
    alerts_enabled: bool = True


class WishlistAlertsIn(CamelModel):
    alerts_enabled: bool


class WishlistEntryOut(CamelModel):
    id: str
    user_id: str
    item_id: str
    alerts_enabled: bool
    created_at: datetime
    item: Optional[ItemOut] = None


# Impact

class ImpactStatsOut(CamelModel):
    id: str
    user_id: str
    items_reused: int
    co2_saved: float
    waste_prevented: float
    updated_at: datetime


def _s(value) -> Optional[str]:
    return str(value) if value is not None else None


def user_summary_out(u: User) -> UserSummaryOut:
    return UserSummaryOut(
        id=str(u.id), username=u.username, first_name=u.first_name, last_name=u.last_name,
        profile_image_url=u.profile_image_url, location=u.location, is_verified=bool(u.is_verified),
        rating=float(u.rating or 0.0), total_ratings=int(u.total_ratings or 0),
    )


def user_out(u: User) -> UserOut:
    return UserOut(
        id=str(u.id), username=u.username, first_name=u.first_name, last_name=u.last_name,
        profile_image_url=u.profile_image_url, location=u.location, is_verified=bool(u.is_verified),
        rating=float(u.rating or 0.0), total_ratings=int(u.total_ratings or 0),
        email=u.email, bio=u.bio, is_admin=bool(u.is_admin),
        items_listed=int(u.items_listed or 0), items_borrowed=int(u.items_borrowed or 0),
        created_at=u.created_at, updated_at=u.updated_at,
    )


def item_out(i: Item) -> ItemOut:
    return ItemOut(
        id=str(i.id), owner_id=str(i.owner_id), title=i.title, description=i.description,
        category=i.category, images=i.image_urls, location=i.location, distance=i.distance,
        status=i.status, created_at=i.created_at, updated_at=i.updated_at,
        owner=user_summary_out(i.owner) if i.owner is not None else None,
    )


def booking_out(b: Booking) -> BookingOut:
    return BookingOut(
        id=str(b.id), item_id=_s(b.item_id), borrower_id=str(b.borrower_id), owner_id=str(b.owner_id),
        pickup_date=b.pickup_date, return_date=b.return_date, status=b.status,
        created_at=b.created_at, updated_at=b.updated_at,
    )


def message_out(m: Message, with_sender: bool = False) -> MessageOut:
    return MessageOut(
        id=str(m.id), conversation_id=m.conversation_id, sender_id=str(m.sender_id),
        receiver_id=str(m.receiver_id), item_id=_s(m.item_id), content=m.content,
        is_read=bool(m.is_read), created_at=m.created_at,
        sender=user_summary_out(m.sender) if with_sender and m.sender is not None else None,
    )


def rating_out(r: Rating, with_rater: bool = False) -> RatingOut:
    return RatingOut(
        id=str(r.id), rater_id=str(r.rater_id), rated_user_id=str(r.rated_user_id),
        booking_id=str(r.booking_id), rating=r.rating, review=r.review, created_at=r.created_at,
        rater=user_summary_out(r.rater) if with_rater and r.rater is not None else None,
    )


def wishlist_entry_out(w: WishlistEntry, with_item: bool = False) -> WishlistEntryOut:
    return WishlistEntryOut(
        id=str(w.id), user_id=str(w.user_id), item_id=str(w.item_id),
        alerts_enabled=bool(w.alerts_enabled), created_at=w.created_at,
        item=item_out(w.item) if with_item and w.item is not None else None,
    )


def impact_stats_out(s: ImpactStats) -> ImpactStatsOut:
    return ImpactStatsOut(
        id=str(s.id), user_id=str(s.user_id), items_reused=int(s.items_reused or 0),
        co2_saved=float(s.co2_saved or 0.0), waste_prevented=float(s.waste_prevented or 0.0),
        updated_at=s.updated_at,
    )
