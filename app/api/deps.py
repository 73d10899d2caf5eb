"""Service wiring for the routers; tests swap these out with ``app.dependency_overrides``."""

from typing import Iterator

from app.core.cache import get_stats_cache
from app.core.config import get_settings
from app.data.fetchers.spacex import SpaceXClient
from app.db import SessionLocal
from app.services.launches import LaunchQueryService
from app.services.stats import StatisticsEngine, calendar_zone
from app.services.sync import SyncOrchestrator


def get_stats_engine() -> StatisticsEngine:
    settings = get_settings()
    return StatisticsEngine(get_stats_cache(), SessionLocal, zone=calendar_zone(settings.stats_timezone))


def get_launch_service() -> LaunchQueryService:
    settings = get_settings()
    return LaunchQueryService(SessionLocal, zone=calendar_zone(settings.stats_timezone))


def get_sync_orchestrator() -> Iterator[SyncOrchestrator]:
    settings = get_settings()
    with SpaceXClient() as client:
        yield SyncOrchestrator(client, get_stats_cache(), SessionLocal, max_workers=settings.sync_max_workers)
