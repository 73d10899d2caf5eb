import os

# Settings are read once on first import of app; keep tests off the network and the dev database
os.environ["SLD_ENV"] = "test"
os.environ["SLD_DATABASE_URL"] = "sqlite://"
os.environ["SLD_SYNC_ON_STARTUP"] = "false"
os.environ.pop("SLD_REDIS_URL", None)
os.environ.pop("SLD_JWT_ISSUER", None)

import threading
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy.orm import sessionmaker

from app.core.cache import StatsCache
from app.core.errors import SourceUnavailable
from app.data.fetchers.spacex import FetchOutcome
from app.data.records import parse_launch_pad, parse_rocket
from app.db import Base, create_database_engine
from app.services.bootstrap import create_schema

NOW = datetime(2024, 6, 1, 12, 0, 0)


def launch_json(
    launch_id: str,
    date_utc: Optional[datetime] = None,
    success: Optional[bool] = None,
    rocket: Optional[str] = None,
    launchpad: Optional[str] = None,
    payloads: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Raw launch object shaped like GET /v5/launches items."""
    return {
        "id": launch_id,
        "name": f"Mission {launch_id}",
        "date_utc": date_utc.strftime("%Y-%m-%dT%H:%M:%S.000Z") if date_utc else None,
        "success": success,
        "details": None,
        "rocket": rocket,
        "launchpad": launchpad,
        "payloads": payloads or [],
        "flight_number": 1,
        "upcoming": date_utc is not None and date_utc > NOW,
    }


def rocket_json(rocket_id: str, name: str = "Falcon 9") -> Dict[str, Any]:
    return {
        "id": rocket_id,
        "name": name,
        "type": "rocket",
        "active": True,
        "country": "United States",
        "company": "SpaceX",
        "stages": 2,
    }


def launch_pad_json(launch_pad_id: str, name: str = "CCSFS SLC 40") -> Dict[str, Any]:
    return {
        "id": launch_pad_id,
        "name": name,
        "locality": "Cape Canaveral",
        "region": "Florida",
        "latitude": 28.5618571,
        "longitude": -80.577366,
    }


class FakeSpaceX:
    """In-memory stand-in for ``SpaceXClient``; unknown ids fail like an unreachable API."""

    def __init__(self, launches=None, rockets=None, launch_pads=None):
        self.launches: List[Any] = list(launches or [])
        self.rockets: Dict[str, Dict[str, Any]] = {r["id"]: r for r in rockets or []}
        self.launch_pads: Dict[str, Dict[str, Any]] = {p["id"]: p for p in launch_pads or []}
        self.launches_error: Optional[Exception] = None
        self.calls = Counter()
        self._lock = threading.Lock()

    def _count(self, key: str) -> None:
        with self._lock:
            self.calls[key] += 1

    def iter_launches(self):
        self._count("launches")
        if self.launches_error is not None:
            raise self.launches_error
        return iter(list(self.launches))

    def fetch_rocket(self, rocket_id: str) -> FetchOutcome:
        self._count(f"rocket:{rocket_id}")
        raw = self.rockets.get(rocket_id)
        if raw is None:
            return FetchOutcome(error=str(SourceUnavailable("HTTP 404", status_code=404)))
        return FetchOutcome(record=parse_rocket(raw))

    def fetch_launch_pad(self, launch_pad_id: str) -> FetchOutcome:
        self._count(f"launchpad:{launch_pad_id}")
        raw = self.launch_pads.get(launch_pad_id)
        if raw is None:
            return FetchOutcome(error="Timed out after 30.0s")
        return FetchOutcome(record=parse_launch_pad(raw))


@pytest.fixture
def session_factory(tmp_path):
    # File-backed so worker threads each get their own connection
    engine = create_database_engine(f"sqlite:///{tmp_path / 'launches.db'}")
    create_schema(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def cache():
    return StatsCache()


@pytest.fixture
def fake_source():
    return FakeSpaceX(
        rockets=[rocket_json("falcon9")],
        launch_pads=[launch_pad_json("slc40")],
    )


@pytest.fixture
def clock():
    return lambda: NOW
