from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from ..errors import Conflict, Forbidden, ValidationError
from ..models import Booking, Rating, User


class RatingRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_for_user(self, user_id) -> list[Rating]:
        return (
            self.db.query(Rating)
            .options(joinedload(Rating.rater))
            .filter(Rating.rated_user_id == user_id)
            .order_by(Rating.created_at.desc())
            .all()
        )

    def create(self, rater: User, rated_user_id, booking: Booking, score: int, review: str | None = None) -> Rating:
        if not 1 <= int(score) <= 5:
            raise ValidationError("rating must be between 1 and 5")
        participants = (booking.borrower_id, booking.owner_id)
        if rater.id not in participants:
            raise Forbidden("Only booking participants can rate each other")
        if rated_user_id == rater.id or rated_user_id not in participants:
            raise ValidationError("ratedUserId must be the other participant of the booking", code="invalid_rated_user")
        if booking.status != "completed":
            raise Conflict("Ratings are only accepted for completed bookings", code="booking_not_completed")

        # Serialize raters of the same user on the user row; the aggregate below
        # then reads every committed rating, including concurrent ones.
        rated = (
            self.db.query(User)
            .filter(User.id == rated_user_id)
            .with_for_update()
            .one()
        )
        existing = (
            self.db.query(Rating.id)
            .filter(Rating.booking_id == booking.id, Rating.rater_id == rater.id)
            .first()
        )
        if existing is not None:
            raise Conflict("You already rated this booking", code="already_rated")
        r = Rating(
            rater_id=rater.id,
            rated_user_id=rated.id,
            booking_id=booking.id,
            rating=int(score),
            review=(review or None),
        )
        self.db.add(r)
        self.db.flush()
        self.recompute_aggregate(rated.id)
        self.db.refresh(rated)
        return r

    def recompute_aggregate(self, user_id) -> None:
        """Store-side mean and count of every rating the user received."""
        avg_q = select(func.coalesce(func.avg(Rating.rating), 0.0)).where(Rating.rated_user_id == user_id).scalar_subquery()
        cnt_q = select(func.count(Rating.id)).where(Rating.rated_user_id == user_id).scalar_subquery()
        self.db.query(User).filter(User.id == user_id).update(
            {User.rating: avg_q, User.total_ratings: cnt_q}, synchronize_session=False
        )
        self.db.flush()
