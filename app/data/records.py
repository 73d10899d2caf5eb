"""
Shapes of the records returned by the SpaceX API.

Only the fields the dashboard stores are declared; everything else in the
payloads is ignored. ``parse_*`` helpers turn a raw JSON object into a record
or raise ``MalformedRemoteRecord``.
"""

from datetime import datetime, timezone
from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.core.errors import MalformedRemoteRecord


class RemoteRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(min_length=1)


class RocketRecord(RemoteRecord):
    name: str
    type: Optional[str] = None
    active: bool = False
    country: Optional[str] = None
    company: Optional[str] = None


class LaunchPadRecord(RemoteRecord):
    name: str
    locality: Optional[str] = None
    region: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class LaunchRecord(RemoteRecord):
    name: Optional[str] = None
    date_utc: Optional[datetime] = None
    success: Optional[bool] = None
    details: Optional[str] = None
    rocket: Optional[str] = None
    launchpad: Optional[str] = None
    payloads: List[str] = Field(default_factory=list)

    @field_validator("date_utc")
    @classmethod
    def _to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Stored as naive UTC so SQLite and PostgreSQL compare the same way
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    @field_validator("payloads", mode="before")
    @classmethod
    def _payload_ids(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, list):
            return value
        # v5 returns ids; tolerate expanded payload objects as well
        ids = (item.get("id") if isinstance(item, dict) else item for item in value)
        return [pid for pid in ids if pid]

    @field_validator("rocket", "launchpad", mode="before")
    @classmethod
    def _reference_id(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return value.get("id")
        return value or None


RecordT = TypeVar("RecordT", bound=RemoteRecord)


def _parse(model: Type[RecordT], kind: str, raw: Any) -> RecordT:
    if not isinstance(raw, dict):
        raise MalformedRemoteRecord(kind, f"expected an object, got {type(raw).__name__}")
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raw_id = raw.get("id")
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise MalformedRemoteRecord(kind, f"invalid fields: {fields}", raw_id if isinstance(raw_id, str) else None)


def parse_launch(raw: Any) -> LaunchRecord:
    return _parse(LaunchRecord, "launch", raw)


def parse_rocket(raw: Any) -> RocketRecord:
    return _parse(RocketRecord, "rocket", raw)


def parse_launch_pad(raw: Any) -> LaunchPadRecord:
    return _parse(LaunchPadRecord, "launchpad", raw)
