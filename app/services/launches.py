"""Read-only queries behind the dashboard listing and detail views."""

import logging
import math
from datetime import tzinfo
from typing import Optional

from sqlalchemy.orm import sessionmaker

from app.api.schemas import LaunchOut, LaunchPage
from app.db import SessionLocal, session_scope
from app.services.repository import LaunchRepository
from app.services.stats import year_start_utc

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


class LaunchQueryService:
    def __init__(self, session_factory: sessionmaker = SessionLocal, zone: Optional[tzinfo] = None) -> None:
        self.session_factory = session_factory
        self.zone = zone

    def get_launches(
        self,
        year: Optional[int] = None,
        success: Optional[bool] = None,
        page: int = 0,
        size: int = DEFAULT_PAGE_SIZE,
    ) -> LaunchPage:
        """
        One page of launches, newest first.

        ``year`` uses the same calendar zone as the yearly statistics, so a
        year's page totals match its ``YearlyStats`` entry. Both filters may
        be combined.
        """
        if page < 0:
            raise ValueError("page must be >= 0")
        if not 1 <= size <= MAX_PAGE_SIZE:
            raise ValueError(f"size must be between 1 and {MAX_PAGE_SIZE}")

        start = end = None
        if year is not None:
            start = year_start_utc(year, self.zone)
            end = year_start_utc(year + 1, self.zone)

        logger.debug(f"Fetching launches (year={year}, success={success}, page={page}, size={size})")
        with session_scope(self.session_factory) as db:
            items, total = LaunchRepository(db).find_page(page * size, size, success=success, start=start, end=end)
            content = [LaunchOut.model_validate(item) for item in items]

        total_pages = math.ceil(total / size) if total else 0
        return LaunchPage(
            content=content,
            number=page,
            size=size,
            total_elements=total,
            total_pages=total_pages,
            number_of_elements=len(content),
            first=page == 0,
            last=page >= total_pages - 1,
            empty=not content,
        )

    def get_launch_by_id(self, launch_id: str) -> Optional[LaunchOut]:
        logger.debug(f"Fetching launch by id: {launch_id}")
        with session_scope(self.session_factory) as db:
            launch = LaunchRepository(db).find_by_id(launch_id)
            return LaunchOut.model_validate(launch) if launch is not None else None
