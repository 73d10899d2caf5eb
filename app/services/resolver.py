"""
Reference resolution for the rocket and launch pad a launch points at.

A reference is served from the store when present. Otherwise the SpaceX API is
asked for it; when that fails a placeholder row is written instead, so the
launch can always be saved with a valid foreign key.

The decision itself is ``plan_resolution``: a pure function of the stored row
and the fetch outcome. ``ReferenceResolver`` performs the reads, the fetch and
the resulting write.
"""

import logging
import threading
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Generic, Optional, Protocol, Type, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from app.core.concurrency import KeyedLock
from app.data.fetchers.spacex import FetchOutcome
from app.data.records import LaunchPadRecord, RocketRecord
from app.db import SessionLocal, session_scope
from app.models import LaunchPadModel, RocketModel
from app.services.mapping import (
    launch_pad_from_record,
    placeholder_launch_pad,
    placeholder_rocket,
    rocket_from_record,
)
from app.services.repository import LaunchPadRepository, Repository, RocketRepository

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", RocketModel, LaunchPadModel)
RecordT = TypeVar("RecordT", RocketRecord, LaunchPadRecord)


class ReferenceSource(Protocol):
    def fetch_rocket(self, rocket_id: str) -> FetchOutcome[RocketRecord]: ...

    def fetch_launch_pad(self, launch_pad_id: str) -> FetchOutcome[LaunchPadRecord]: ...


class ResolutionAction(str, Enum):
    CACHED = "cached"            # row already stored, nothing to write
    FETCHED = "fetched"          # fetched from the API, row to insert
    UPGRADED = "upgraded"        # placeholder replaced by fetched data
    PLACEHOLDER = "placeholder"  # fetch failed, placeholder row to insert


@dataclass
class Resolution(Generic[EntityT]):
    entity: EntityT
    action: ResolutionAction
    error: Optional[str] = None

    @property
    def needs_write(self) -> bool:
        return self.action is not ResolutionAction.CACHED


def plan_resolution(
    entity_id: str,
    stored: Optional[EntityT],
    fetch: Callable[[str], FetchOutcome[RecordT]],
    to_entity: Callable[[RecordT], EntityT],
    make_placeholder: Callable[[str], EntityT],
    refresh_placeholders: bool = False,
) -> Resolution[EntityT]:
    """Decide which entity a reference resolves to and whether it must be written."""
    if stored is not None and not (refresh_placeholders and stored.is_placeholder):
        return Resolution(stored, ResolutionAction.CACHED)

    outcome = fetch(entity_id)
    if outcome.ok:
        action = ResolutionAction.UPGRADED if stored is not None else ResolutionAction.FETCHED
        return Resolution(to_entity(outcome.record), action)

    if stored is not None:
        # Refresh of a placeholder failed; keep the row we have
        return Resolution(stored, ResolutionAction.CACHED, outcome.error)
    return Resolution(make_placeholder(entity_id), ResolutionAction.PLACEHOLDER, outcome.error)


# Shared by every resolver in the process so concurrent passes serialize per id
_reference_locks = KeyedLock()


class ReferenceResolver:
    def __init__(
        self,
        source: ReferenceSource,
        session_factory: sessionmaker = SessionLocal,
        refresh_placeholders: bool = False,
        locks: Optional[KeyedLock] = None,
    ) -> None:
        self.source = source
        self.session_factory = session_factory
        self.refresh_placeholders = refresh_placeholders
        self._locks = locks or _reference_locks
        self._counts_lock = threading.Lock()
        self.counts: Dict[str, Counter] = {"rocket": Counter(), "launchpad": Counter()}

    def resolve_rocket(self, rocket_id: str) -> RocketModel:
        return self._resolve(
            "rocket", rocket_id, RocketRepository,
            self.source.fetch_rocket, rocket_from_record, placeholder_rocket,
        )

    def resolve_launch_pad(self, launch_pad_id: str) -> LaunchPadModel:
        return self._resolve(
            "launchpad", launch_pad_id, LaunchPadRepository,
            self.source.fetch_launch_pad, launch_pad_from_record, placeholder_launch_pad,
        )

    def _resolve(self, kind: str, entity_id: str, repository: Type[Repository], fetch, to_entity, make_placeholder):
        with self._locks.hold((kind, entity_id)):
            with session_scope(self.session_factory) as db:
                stored = repository(db).find_by_id(entity_id)

            resolution = plan_resolution(
                entity_id, stored, fetch, to_entity, make_placeholder, self.refresh_placeholders
            )
            if resolution.action is ResolutionAction.PLACEHOLDER:
                logger.warning(f"Failed to fetch {kind} {entity_id}, using placeholder: {resolution.error}")
            elif resolution.error:
                logger.info(f"Placeholder {kind} {entity_id} kept, refresh failed: {resolution.error}")

            entity = resolution.entity
            if resolution.needs_write:
                entity = self._save_if_absent(repository, entity)

        with self._counts_lock:
            self.counts[kind][resolution.action.value] += 1
        return entity

    def _save_if_absent(self, repository: Type[Repository], entity):
        try:
            with session_scope(self.session_factory) as db:
                return repository(db).save(entity)
        except IntegrityError:
            # Another process inserted the same id first; its row is as good as ours
            logger.info(f"{repository.model.__tablename__} row {entity.id} written concurrently, reusing it")
            with session_scope(self.session_factory) as db:
                existing = repository(db).find_by_id(entity.id)
            if existing is None:
                raise
            return existing

    def placeholders_created(self) -> int:
        with self._counts_lock:
            return sum(c[ResolutionAction.PLACEHOLDER.value] for c in self.counts.values())
