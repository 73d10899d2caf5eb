"""
Entity store access for rockets, launch pads and launches.

Repositories wrap a SQLAlchemy session and never commit; the caller owns the
unit of work (see ``app.db.session_scope``).
"""

from datetime import datetime
from typing import Generic, Iterator, List, Optional, Tuple, Type, TypeVar

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.models import LaunchModel, LaunchPadModel, PayloadModel, RocketModel

ModelT = TypeVar("ModelT", RocketModel, LaunchPadModel, LaunchModel)


class Repository(Generic[ModelT]):
    model: Type[ModelT]

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_id(self, entity_id: str) -> Optional[ModelT]:
        return self.db.get(self.model, entity_id)

    def exists(self, entity_id: str) -> bool:
        return self.db.query(self.model.id).filter(self.model.id == entity_id).first() is not None

    def save(self, entity: ModelT) -> ModelT:
        """Upsert by primary key."""
        merged = self.db.merge(entity)
        self.db.flush()
        return merged

    def count(self) -> int:
        return self.db.query(self.model).count()


class RocketRepository(Repository[RocketModel]):
    model = RocketModel


class LaunchPadRepository(Repository[LaunchPadModel]):
    model = LaunchPadModel


class LaunchRepository(Repository[LaunchModel]):
    model = LaunchModel

    def save(self, launch: LaunchModel) -> LaunchModel:
        """
        Upsert a launch and replace its whole payload set.

        Payload rows previously owned by this launch are deleted, as are rows
        with an incoming payload id that currently belong to another launch,
        before the new set is inserted. The owned set is never merged.
        """
        payload_ids = [payload.id for payload in launch.payloads]
        owned_or_incoming = PayloadModel.launch_id == launch.id
        if payload_ids:
            owned_or_incoming = or_(owned_or_incoming, PayloadModel.id.in_(payload_ids))
        self.db.query(PayloadModel).filter(owned_or_incoming).delete(synchronize_session="fetch")
        self.db.flush()
        return super().save(launch)

    def _filtered(self, success: Optional[bool] = None,
                  start: Optional[datetime] = None, end: Optional[datetime] = None):
        query = self.db.query(LaunchModel)
        if success is not None:
            query = query.filter(LaunchModel.success.is_(success))
        if start is not None:
            query = query.filter(LaunchModel.date_utc >= start)
        if end is not None:
            query = query.filter(LaunchModel.date_utc < end)
        return query

    def count_where(self, success: Optional[bool] = None,
                    start: Optional[datetime] = None, end: Optional[datetime] = None) -> int:
        """Count launches; ``success=None`` means no outcome filter, the range is half-open."""
        return self._filtered(success, start, end).count()

    def find_next_launch(self, now: datetime) -> Optional[LaunchModel]:
        return (
            self.db.query(LaunchModel)
            .filter(LaunchModel.date_utc > now)
            .order_by(LaunchModel.date_utc.asc(), LaunchModel.id.asc())
            .first()
        )

    def list_timestamps(self) -> Iterator[datetime]:
        rows = (
            self.db.query(LaunchModel.date_utc)
            .filter(LaunchModel.date_utc.isnot(None))
            .yield_per(1000)
        )
        for (date_utc,) in rows:
            yield date_utc

    def find_page(self, offset: int, limit: int, success: Optional[bool] = None,
                  start: Optional[datetime] = None, end: Optional[datetime] = None) -> Tuple[List[LaunchModel], int]:
        query = self._filtered(success, start, end)
        total = query.count()
        items = (
            query.order_by(LaunchModel.date_utc.desc().nulls_last(), LaunchModel.id.asc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return items, total
