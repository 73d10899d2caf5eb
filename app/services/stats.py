"""
Derived launch statistics.

Both views are computed from the stored launches with count queries and kept
in the shared ``StatsCache`` until a synchronization pass invalidates it.
Values are cached in their JSON form so the Redis tier can hold them too.
"""

import logging
from datetime import datetime, timezone, tzinfo
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import sessionmaker

from app.api.schemas import LaunchOut, LaunchStats, YearlyStats
from app.core.cache import StatsCache
from app.db import SessionLocal, session_scope
from app.services.repository import LaunchRepository

logger = logging.getLogger(__name__)

GLOBAL_STATS_KEY = "launch_stats"
YEARLY_STATS_KEY = "yearly_stats"


def success_rate(successful: int, total: int) -> float:
    """Percentage of successful launches, 0 when there are none."""
    if total <= 0:
        return 0.0
    return successful / total * 100


def calendar_zone(name: Optional[str]) -> Optional[tzinfo]:
    """Zone used to assign launches to years; ``None`` means the system local zone."""
    return ZoneInfo(name) if name else None


def _to_calendar(moment_utc: datetime, zone: Optional[tzinfo]) -> datetime:
    aware = moment_utc.replace(tzinfo=timezone.utc)
    return aware.astimezone(zone) if zone is not None else aware.astimezone()


def year_start_utc(year: int, zone: Optional[tzinfo]) -> datetime:
    """Naive UTC instant of Jan 1 00:00:00 of ``year`` in the calendar zone."""
    local = datetime(year, 1, 1, tzinfo=zone) if zone is not None else datetime(year, 1, 1).astimezone()
    return local.astimezone(timezone.utc).replace(tzinfo=None)


class StatisticsEngine:
    def __init__(
        self,
        cache: StatsCache,
        session_factory: sessionmaker = SessionLocal,
        zone: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.cache = cache
        self.session_factory = session_factory
        self.zone = zone
        self.clock = clock or datetime.utcnow

    def get_global_stats(self) -> LaunchStats:
        data = self.cache.get_or_compute(
            GLOBAL_STATS_KEY, lambda: self.compute_global_stats().model_dump(mode="json")
        )
        return LaunchStats.model_validate(data)

    def get_yearly_stats(self) -> List[YearlyStats]:
        data = self.cache.get_or_compute(
            YEARLY_STATS_KEY, lambda: [s.model_dump(mode="json") for s in self.compute_yearly_stats()]
        )
        return [YearlyStats.model_validate(item) for item in data]

    def compute_global_stats(self) -> LaunchStats:
        logger.debug("Calculating global launch statistics")
        with session_scope(self.session_factory) as db:
            launches = LaunchRepository(db)
            total = launches.count()
            successful = launches.count_where(success=True)
            next_launch = launches.find_next_launch(self.clock())
            next_out = LaunchOut.model_validate(next_launch) if next_launch is not None else None

        stats = LaunchStats(
            total_launches=total,
            success_rate=success_rate(successful, total),
            next_launch=next_out,
        )
        logger.debug(f"Global stats: total={total}, successRate={stats.success_rate:.2f}%")
        return stats

    def compute_yearly_stats(self) -> List[YearlyStats]:
        logger.debug("Calculating yearly statistics")
        with session_scope(self.session_factory) as db:
            launches = LaunchRepository(db)
            years = sorted({_to_calendar(ts, self.zone).year for ts in launches.list_timestamps()})

            result = []
            for year in years:
                # Half-open bounds in the same zone, so every launch lands in exactly one year
                start = year_start_utc(year, self.zone)
                end = year_start_utc(year + 1, self.zone)
                total = launches.count_where(start=start, end=end)
                successful = launches.count_where(success=True, start=start, end=end)
                result.append(YearlyStats(year=year, total_launches=total,
                                          success_rate=success_rate(successful, total)))
        return result
