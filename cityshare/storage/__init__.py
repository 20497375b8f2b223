"""Data access layer: one repository per entity group, built around a Session."""

from .bookings import BookingRepository, ALLOWED_TRANSITIONS, can_transition
from .impact import ImpactStatsRepository
from .items import ItemFilters, ItemRepository
from .messages import Conversation, MessageRepository
from .ratings import RatingRepository
from .sessions import SessionRepository, hash_token
from .users import UserRepository
from .wishlist import WishlistRepository

__all__ = [
    "ALLOWED_TRANSITIONS",
    "BookingRepository",
    "Conversation",
    "ImpactStatsRepository",
    "ItemFilters",
    "ItemRepository",
    "MessageRepository",
    "RatingRepository",
    "SessionRepository",
    "UserRepository",
    "WishlistRepository",
    "can_transition",
    "hash_token",
]
