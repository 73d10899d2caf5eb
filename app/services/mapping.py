"""Conversions from SpaceX API records to stored entities."""

from datetime import datetime
from typing import Optional

from app.data.records import LaunchPadRecord, LaunchRecord, RocketRecord
from app.models import (
    UNKNOWN_LAUNCH_PAD_NAME,
    UNKNOWN_ROCKET_NAME,
    LaunchModel,
    LaunchPadModel,
    PayloadModel,
    RocketModel,
)


def rocket_from_record(record: RocketRecord) -> RocketModel:
    return RocketModel(
        id=record.id,
        name=record.name,
        type=record.type,
        active=record.active,
        country=record.country,
        company=record.company,
        is_placeholder=False,
        fetched_at=datetime.utcnow(),
    )


def launch_pad_from_record(record: LaunchPadRecord) -> LaunchPadModel:
    return LaunchPadModel(
        id=record.id,
        name=record.name,
        locality=record.locality,
        region=record.region,
        latitude=record.latitude,
        longitude=record.longitude,
        is_placeholder=False,
        fetched_at=datetime.utcnow(),
    )


def placeholder_rocket(rocket_id: str) -> RocketModel:
    return RocketModel(
        id=rocket_id,
        name=UNKNOWN_ROCKET_NAME,
        type="Unknown",
        active=False,
        is_placeholder=True,
        fetched_at=datetime.utcnow(),
    )


def placeholder_launch_pad(launch_pad_id: str) -> LaunchPadModel:
    return LaunchPadModel(
        id=launch_pad_id,
        name=UNKNOWN_LAUNCH_PAD_NAME,
        is_placeholder=True,
        fetched_at=datetime.utcnow(),
    )


def launch_from_record(record: LaunchRecord, rocket_id: Optional[str], launch_pad_id: Optional[str]) -> LaunchModel:
    """Build the launch row with payload stubs (ids only)."""
    # Duplicate payload ids would collide on the primary key
    payload_ids = list(dict.fromkeys(pid for pid in record.payloads if pid))
    return LaunchModel(
        id=record.id,
        name=record.name,
        date_utc=record.date_utc,
        success=record.success,
        details=record.details,
        rocket_id=rocket_id,
        launch_pad_id=launch_pad_id,
        synced_at=datetime.utcnow(),
        payloads=[PayloadModel(id=pid) for pid in payload_ids],
    )
