"""Repository dependencies; each shares the request's database session."""
from fastapi import Depends
from sqlalchemy.orm import Session

from .database import get_db
from .storage import (
    BookingRepository,
    ImpactStatsRepository,
    ItemRepository,
    MessageRepository,
    RatingRepository,
    SessionRepository,
    UserRepository,
    WishlistRepository,
)


def get_users(db: Session = Depends(get_db)) -> UserRepository:
    return UserRepository(db)


def get_sessions(db: Session = Depends(get_db)) -> SessionRepository:
    return SessionRepository(db)


def get_items(db: Session = Depends(get_db)) -> ItemRepository:
    return ItemRepository(db)


def get_bookings(db: Session = Depends(get_db)) -> BookingRepository:
    return BookingRepository(db)


def get_messages(db: Session = Depends(get_db)) -> MessageRepository:
    return MessageRepository(db)


def get_ratings(db: Session = Depends(get_db)) -> RatingRepository:
    return RatingRepository(db)


def get_wishlist(db: Session = Depends(get_db)) -> WishlistRepository:
    return WishlistRepository(db)


def get_impact(db: Session = Depends(get_db)) -> ImpactStatsRepository:
    return ImpactStatsRepository(db)
