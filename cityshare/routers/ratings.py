from typing import List

from fastapi import APIRouter, Depends

from ..auth import get_current_user
from ..deps import get_bookings, get_ratings, get_users
from ..errors import ValidationError
from ..models import User
from ..schemas import RatingCreateIn, RatingOut, rating_out
from ..storage import BookingRepository, RatingRepository, UserRepository
from ..utils.ids import parse_uuid


router = APIRouter(prefix="/api/ratings", tags=["ratings"])


@router.get("/user/{user_id}", response_model=List[RatingOut])
def user_ratings(user_id: str, users: UserRepository = Depends(get_users), ratings: RatingRepository = Depends(get_ratings)):
    rated = users.get_or_404(user_id)
    return [rating_out(r, with_rater=True) for r in ratings.list_for_user(rated.id)]


@router.post("", response_model=RatingOut)
def create_rating(
    payload: RatingCreateIn,
    user: User = Depends(get_current_user),
    bookings: BookingRepository = Depends(get_bookings),
    ratings: RatingRepository = Depends(get_ratings),
):
    booking = bookings.get_or_404(payload.booking_id)
    rated_user_id = parse_uuid(payload.rated_user_id)
    if rated_user_id is None:
        raise ValidationError("ratedUserId is not a valid id", code="invalid_rated_user")
    r = ratings.create(user, rated_user_id, booking, payload.rating, payload.review)
    return rating_out(r)
