from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # JSON keys follow the dashboard frontend (camelCase)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class RocketOut(CamelModel):
    id: str
    name: Optional[str] = None
    type: Optional[str] = None
    active: bool = False
    country: Optional[str] = None
    company: Optional[str] = None
    is_placeholder: bool = False


class LaunchPadOut(CamelModel):
    id: str
    name: Optional[str] = None
    locality: Optional[str] = None
    region: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_placeholder: bool = False


class PayloadOut(CamelModel):
    id: str
    name: Optional[str] = None
    type: Optional[str] = None
    mass_kg: Optional[float] = None
    orbit: Optional[str] = None
    customer: Optional[str] = None


class LaunchOut(CamelModel):
    id: str
    name: Optional[str] = None
    date_utc: Optional[datetime] = None
    success: Optional[bool] = None
    details: Optional[str] = None
    rocket: Optional[RocketOut] = None
    launch_pad: Optional[LaunchPadOut] = None
    payloads: List[PayloadOut] = Field(default_factory=list)

    @field_validator("date_utc")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Stored naive; always UTC
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class LaunchStats(CamelModel):
    total_launches: int
    success_rate: float = Field(ge=0, le=100)
    next_launch: Optional[LaunchOut] = None


class YearlyStats(CamelModel):
    year: int
    total_launches: int
    success_rate: float = Field(ge=0, le=100)


class LaunchPage(CamelModel):
    content: List[LaunchOut]
    number: int
    size: int
    total_elements: int
    total_pages: int
    number_of_elements: int
    first: bool
    last: bool
    empty: bool


class SyncResponse(CamelModel):
    success: bool
    message: str
    launches_processed: int
    failed: int = 0
    skipped: int = 0
    placeholders: int = 0
    duration_seconds: float = 0.0


class LoginRequest(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class TokenResponse(BaseModel):
    token: str
    type: str = "Bearer"
    expires_in: int
