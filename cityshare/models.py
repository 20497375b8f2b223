import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, Float, DateTime, Boolean, ForeignKey, Index, Text, UniqueConstraint
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()


def default_uuid():
    return uuid.uuid4()


ITEM_STATUSES = ("available", "borrowed", "pending")
BOOKING_STATUSES = ("pending", "accepted", "declined", "completed")


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    username = Column(String(64), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    email = Column(String(255), nullable=True)
    first_name = Column(String(128), nullable=True)
    last_name = Column(String(128), nullable=True)
    profile_image_url = Column(String(1024), nullable=True)
    bio = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    rating = Column(Float, nullable=False, default=0.0)
    total_ratings = Column(Integer, nullable=False, default=0)
    items_listed = Column(Integer, nullable=False, default=0)
    items_borrowed = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship("Item", back_populates="owner")


class UserSession(Base):
    __tablename__ = "sessions"
    __table_args__ = (
        Index("ix_sessions_expires", "expires_at"),
    )

    # sha256 hex of the client-held token
    id = Column(String(64), primary_key=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)


class Item(Base):
    __tablename__ = "items"
    __table_args__ = (
        Index("ix_items_owner", "owner_id"),
        Index("ix_items_created", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=False)
    location = Column(String(255), nullable=False)
    distance = Column(Float, nullable=True)
    status = Column(String(16), nullable=False, default="available")  # available|borrowed|pending
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("User", back_populates="items")
    images = relationship(
        "ItemImage",
        order_by="ItemImage.sort_order",
        cascade="all, delete-orphan",
        back_populates="item",
    )

    @property
    def image_urls(self) -> list[str]:
        return [im.url for im in self.images]


class ItemImage(Base):
    __tablename__ = "item_images"
    __table_args__ = (
        Index("ix_item_images_item", "item_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    item_id = Column(UUID(as_uuid=True), ForeignKey("items.id"), nullable=False)
    url = Column(String(1024), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)

    item = relationship("Item", back_populates="images")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_borrower", "borrower_id"),
        Index("ix_bookings_owner", "owner_id"),
        Index("ix_bookings_item", "item_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    # Nulled when the item is deleted; the booking and its ratings stay.
    item_id = Column(UUID(as_uuid=True), ForeignKey("items.id"), nullable=True)
    borrower_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    pickup_date = Column(DateTime, nullable=False)
    return_date = Column(DateTime, nullable=False)
    status = Column(String(16), nullable=False, default="pending")  # pending|accepted|declined|completed
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation", "conversation_id"),
        Index("ix_messages_sender", "sender_id"),
        Index("ix_messages_receiver", "receiver_id"),
        Index("ix_messages_created", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    conversation_id = Column(String(80), nullable=False)
    sender_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    receiver_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    item_id = Column(UUID(as_uuid=True), ForeignKey("items.id"), nullable=True)
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    sender = relationship("User", foreign_keys=[sender_id])


class Rating(Base):
    __tablename__ = "ratings"
    __table_args__ = (
        UniqueConstraint("booking_id", "rater_id", name="uq_rating_booking_rater"),
        Index("ix_ratings_rated_user", "rated_user_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    rater_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    rated_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    review = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    rater = relationship("User", foreign_keys=[rater_id])


class WishlistEntry(Base):
    __tablename__ = "wishlist"
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_wishlist_user_item"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    item_id = Column(UUID(as_uuid=True), ForeignKey("items.id"), nullable=False)
    alerts_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    item = relationship("Item")


class ImpactStats(Base):
    __tablename__ = "impact_stats"

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, unique=True)
    items_reused = Column(Integer, nullable=False, default=0)
    co2_saved = Column(Float, nullable=False, default=0.0)
    waste_prevented = Column(Float, nullable=False, default=0.0)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
