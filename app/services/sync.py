"""
Synchronization of the local store with the SpaceX API.

One pass opens the launch collection, resolves each launch's rocket and
launch pad, upserts the launch (payload set replaced) and finally invalidates
the statistics cache. Failing to open the collection aborts the pass before
anything is written; a failure on a single record is logged and the pass
moves on.
"""

import logging
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Protocol, Tuple

from opentelemetry import trace
from prometheus_client import Counter, Histogram
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.core.cache import StatsCache
from app.core.concurrency import KeyedLock
from app.core.errors import MalformedRemoteRecord, RecordPersistenceFailure
from app.data.records import parse_launch
from app.db import SessionLocal, session_scope
from app.models import LaunchModel
from app.services.mapping import launch_from_record
from app.services.repository import LaunchRepository
from app.services.resolver import ReferenceResolver, ReferenceSource

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

SYNC_RECORDS = Counter(
    "sld_sync_records_total",
    "Launch records handled by synchronization passes",
    ["outcome"],
)
SYNC_DURATION = Histogram(
    "sld_sync_duration_seconds",
    "Duration of synchronization passes",
)

# Writes of the same launch id are serialized across every pass in the process
_launch_locks = KeyedLock()


class LaunchSource(ReferenceSource, Protocol):
    def iter_launches(self) -> Iterator[Dict[str, Any]]: ...


class RecordOutcome(str, Enum):
    PROCESSED = "processed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class SyncReport:
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    placeholders: int = 0
    failed_ids: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at or datetime.utcnow()
        return (end - self.started_at).total_seconds()

    def record(self, outcome: RecordOutcome, launch_id: Optional[str]) -> None:
        if outcome is RecordOutcome.PROCESSED:
            self.processed += 1
        elif outcome is RecordOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
            if launch_id:
                self.failed_ids.append(launch_id)
        SYNC_RECORDS.labels(outcome.value).inc()


class SyncOrchestrator:
    def __init__(
        self,
        source: LaunchSource,
        cache: StatsCache,
        session_factory: sessionmaker = SessionLocal,
        max_workers: int = 1,
    ) -> None:
        self.source = source
        self.cache = cache
        self.session_factory = session_factory
        self.max_workers = max(1, max_workers)

    def synchronize(self, refresh_placeholders: bool = False) -> int:
        """Run one pass and return the number of launches persisted."""
        return self.run_pass(refresh_placeholders=refresh_placeholders).processed

    def run_pass(self, refresh_placeholders: bool = False) -> SyncReport:
        """
        Run one synchronization pass.

        Raises ``SourceUnavailable`` when the launch collection cannot be
        opened; in that case the store and the cache are left untouched.
        """
        logger.info("Starting synchronization with SpaceX API")
        with tracer.start_as_current_span("launch_sync.pass") as span:
            started = time.perf_counter()
            try:
                records = self.source.iter_launches()
            except Exception as e:
                logger.error(f"Synchronization failed: {e}")
                span.set_attribute("error", True)
                raise

            report = SyncReport()
            resolver = ReferenceResolver(
                self.source,
                session_factory=self.session_factory,
                refresh_placeholders=refresh_placeholders,
            )
            try:
                if self.max_workers == 1:
                    for raw in records:
                        report.record(*self._process(raw, resolver))
                else:
                    self._run_concurrently(records, resolver, report)
            finally:
                # Partial passes change the store too, so stats are always dropped
                self.cache.invalidate_all()
                report.placeholders = resolver.placeholders_created()
                report.finished_at = datetime.utcnow()
                SYNC_DURATION.observe(time.perf_counter() - started)

            span.set_attribute("sync.processed", report.processed)
            span.set_attribute("sync.failed", report.failed)
            span.set_attribute("sync.skipped", report.skipped)

        logger.info(
            f"Synchronization completed: {report.processed} launches processed, "
            f"{report.failed} failed, {report.skipped} skipped, "
            f"{report.placeholders} placeholders in {report.duration_seconds:.1f}s"
        )
        return report

    def _run_concurrently(self, records: Iterator[Dict[str, Any]], resolver: ReferenceResolver,
                          report: SyncReport) -> None:
        # At most 2 records per worker are in flight; the rest stay in the iterator
        window = self.max_workers * 2
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="launch-sync") as pool:
            pending = set()
            for raw in records:
                pending.add(pool.submit(self._process, raw, resolver))
                if len(pending) >= window:
                    done, pending = wait(pending, return_when=FIRST_COMPLETED)
                    for future in done:
                        report.record(*future.result())
            for future in wait(pending).done:
                report.record(*future.result())

    def _process(self, raw: Any, resolver: ReferenceResolver) -> Tuple[RecordOutcome, Optional[str]]:
        try:
            record = parse_launch(raw)
        except MalformedRemoteRecord as e:
            logger.warning(f"Skipping launch record: {e}")
            return RecordOutcome.SKIPPED, None

        try:
            rocket_id = resolver.resolve_rocket(record.rocket).id if record.rocket else None
            launch_pad_id = resolver.resolve_launch_pad(record.launchpad).id if record.launchpad else None

            self._persist(launch_from_record(record, rocket_id, launch_pad_id))
        except RecordPersistenceFailure as e:
            logger.error(str(e))
            return RecordOutcome.FAILED, record.id
        except SQLAlchemyError as e:
            logger.error(f"Failed to resolve references of launch {record.id}: {e}")
            return RecordOutcome.FAILED, record.id
        except Exception:
            logger.exception(f"Unexpected error while processing launch {record.id}")
            return RecordOutcome.FAILED, record.id

        logger.debug(f"Persisted launch {record.id}")
        return RecordOutcome.PROCESSED, record.id

    def _persist(self, launch: LaunchModel) -> None:
        with _launch_locks.hold(launch.id):
            try:
                with session_scope(self.session_factory) as db:
                    LaunchRepository(db).save(launch)
            except SQLAlchemyError as e:
                raise RecordPersistenceFailure(launch.id, e) from e
