from fastapi import APIRouter, Depends

from ..auth import get_current_user
from ..deps import get_impact
from ..models import User
from ..schemas import ImpactStatsOut, impact_stats_out
from ..storage import ImpactStatsRepository


router = APIRouter(prefix="/api/impact", tags=["impact"])


@router.get("/stats", response_model=ImpactStatsOut)
def my_impact(user: User = Depends(get_current_user), impact: ImpactStatsRepository = Depends(get_impact)):
    return impact_stats_out(impact.get_or_create(user.id))
