from fastapi import APIRouter, Depends

from ..deps import get_users
from ..schemas import UserSummaryOut, user_summary_out
from ..storage import UserRepository


router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/{user_id}", response_model=UserSummaryOut)
def get_user(user_id: str, users: UserRepository = Depends(get_users)):
    return user_summary_out(users.get_or_404(user_id))
