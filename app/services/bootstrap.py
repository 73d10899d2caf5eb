"""Startup tasks: schema, seed accounts and the initial synchronization."""

import logging
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.core.auth import ROLE_ADMIN, ROLE_USER
from app.core.cache import StatsCache
from app.core.config import Settings
from app.core.errors import LaunchDataError
from app.db import Base, session_scope
from app.services.sync import LaunchSource, SyncOrchestrator, SyncReport
from app.services.users import ensure_role, ensure_user

logger = logging.getLogger(__name__)


def create_schema(engine: Engine) -> None:
    import app.models  # noqa: F401  (register tables on Base.metadata)
    Base.metadata.create_all(bind=engine)


def seed_accounts(session_factory: sessionmaker, settings: Settings) -> None:
    with session_scope(session_factory) as db:
        ensure_role(db, ROLE_ADMIN)
        ensure_role(db, ROLE_USER)
        ensure_user(db, settings.admin_email, settings.admin_password, [ROLE_ADMIN, ROLE_USER])
        ensure_user(db, settings.user_email, settings.user_password, [ROLE_USER])
    logger.info("Roles and seed accounts ready")


def initial_sync(
    source: LaunchSource,
    cache: StatsCache,
    session_factory: sessionmaker,
    max_workers: int = 1,
) -> Optional[SyncReport]:
    """Run the startup pass; a failure is logged and the service starts with what it has."""
    logger.info("Starting initial synchronization with SpaceX API")
    try:
        report = SyncOrchestrator(source, cache, session_factory, max_workers=max_workers).run_pass()
    except LaunchDataError as e:
        logger.error(f"Initial synchronization failed, dashboard will start empty: {e}")
        return None
    logger.info(f"Initial synchronization completed: {report.processed} launches")
    return report
