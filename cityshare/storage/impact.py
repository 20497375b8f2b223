from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import ImpactStats


COUNTER_FIELDS = ("items_reused", "co2_saved", "waste_prevented")


class ImpactStatsRepository:
    def __init__(self, db: Session):
        self.db = db

    def _find(self, user_id) -> ImpactStats | None:
        return self.db.query(ImpactStats).filter(ImpactStats.user_id == user_id).one_or_none()

    def get_or_create(self, user_id) -> ImpactStats:
        stats = self._find(user_id)
        if stats is not None:
            return stats
        stats = ImpactStats(user_id=user_id, items_reused=0, co2_saved=0.0, waste_prevented=0.0)
        try:
            with self.db.begin_nested():
                self.db.add(stats)
                self.db.flush()
        except IntegrityError:
            # Another first read inserted the row; unique user_id
            existing = self._find(user_id)
            if existing is None:
                raise
            return existing
        return stats

    def apply(self, user_id, **counters) -> ImpactStats:
        """Overwrite the given counters.

        Nothing in the request path calls this yet; completed bookings do not
        feed impact stats.
        """
        unknown = set(counters) - set(COUNTER_FIELDS)
        if unknown:
            raise ValueError(f"Unknown impact counters: {sorted(unknown)}")
        stats = self.get_or_create(user_id)
        for key, value in counters.items():
            setattr(stats, key, value)
        stats.updated_at = datetime.utcnow()
        self.db.flush()
        return stats
