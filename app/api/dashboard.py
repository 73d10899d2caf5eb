"""
Dashboard API

Launch KPIs, yearly statistics and the paginated launch listing. Every
endpoint requires an authenticated user (ROLE_USER or ROLE_ADMIN).
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query

from app.api.deps import get_launch_service, get_stats_engine
from app.api.schemas import LaunchOut, LaunchPage, LaunchStats, YearlyStats
from app.core.auth import require_user
from app.core.errors import not_found_error
from app.services.launches import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, LaunchQueryService
from app.services.stats import StatisticsEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/kpis", response_model=LaunchStats)
def get_kpis(
    user: dict = Depends(require_user),
    stats: StatisticsEngine = Depends(get_stats_engine),
) -> LaunchStats:
    """Total launches, overall success rate and the next scheduled launch."""
    logger.debug(f"User '{user['sub']}' fetching KPIs")
    return stats.get_global_stats()


@router.get("/stats/yearly", response_model=List[YearlyStats])
def get_yearly_stats(
    user: dict = Depends(require_user),
    stats: StatisticsEngine = Depends(get_stats_engine),
) -> List[YearlyStats]:
    logger.debug(f"User '{user['sub']}' fetching yearly stats")
    return stats.get_yearly_stats()


@router.get("/launches", response_model=LaunchPage)
def get_launches(
    year: Optional[int] = Query(None, ge=1900, le=2999, description="Calendar year filter"),
    success: Optional[bool] = Query(None, description="Outcome filter"),
    page: int = Query(0, ge=0),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: dict = Depends(require_user),
    launches: LaunchQueryService = Depends(get_launch_service),
) -> LaunchPage:
    """Launches sorted by date, newest first; ``year`` and ``success`` combine."""
    logger.info(f"User '{user['sub']}' fetching launches (year={year}, success={success}, page={page})")
    return launches.get_launches(year=year, success=success, page=page, size=size)


@router.get("/launches/{launch_id}", response_model=LaunchOut)
def get_launch_detail(
    launch_id: str = Path(..., min_length=1),
    user: dict = Depends(require_user),
    launches: LaunchQueryService = Depends(get_launch_service),
) -> LaunchOut:
    logger.debug(f"User '{user['sub']}' fetching launch detail for id: {launch_id}")
    launch = launches.get_launch_by_id(launch_id)
    if launch is None:
        raise not_found_error("Launch", launch_id)
    return launch
