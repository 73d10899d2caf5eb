"""
SpaceX public API client.

Bulk launches come from the v5 endpoint, rockets and launch pads from v4.
Every call is bounded by the configured timeout; transport errors, non-2xx
statuses and undecodable bodies all surface as ``SourceUnavailable``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterator, Optional, TypeVar
from urllib.parse import quote

import httpx

from app.core.config import get_settings
from app.core.errors import LaunchDataError, SourceUnavailable
from app.data.records import LaunchPadRecord, RocketRecord, parse_launch_pad, parse_rocket

logger = logging.getLogger(__name__)

T = TypeVar("T")

LAUNCHES_PATH = "/v5/launches"
ROCKET_PATH = "/v4/rockets/{id}"
LAUNCH_PAD_PATH = "/v4/launchpads/{id}"


@dataclass
class FetchOutcome(Generic[T]):
    """Result of a point fetch: either a record or the reason there is none."""
    record: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.record is not None


class SpaceXClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.spacex_api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.spacex_timeout_seconds
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )
        logger.info(f"SpaceX client initialized with base URL: {self.base_url}")

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "SpaceXClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _get_json(self, path: str) -> Any:
        try:
            response = self._client.get(path)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise SourceUnavailable(f"Timed out after {self.timeout}s", url=f"{self.base_url}{path}") from e
        except httpx.HTTPStatusError as e:
            raise SourceUnavailable(
                f"HTTP {e.response.status_code}",
                url=f"{self.base_url}{path}",
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise SourceUnavailable(f"{type(e).__name__}: {e}", url=f"{self.base_url}{path}") from e
        except ValueError as e:
            raise SourceUnavailable(f"Response body is not JSON: {e}", url=f"{self.base_url}{path}") from e

    def iter_launches(self) -> Iterator[Dict[str, Any]]:
        """
        Open the launch collection and yield raw launch objects one by one.

        The request is issued eagerly and the whole body is decoded before the
        first record is yielded, so a failure to reach the API raises here
        rather than mid-pass. Memory use is therefore bounded by the raw
        collection; what the pipeline bounds is the number of enriched
        entities in flight.
        """
        logger.debug("Fetching all launches from SpaceX API")
        payload = self._get_json(LAUNCHES_PATH)
        if not isinstance(payload, list):
            raise SourceUnavailable(
                f"Expected a JSON array of launches, got {type(payload).__name__}",
                url=f"{self.base_url}{LAUNCHES_PATH}",
            )
        logger.info(f"Fetched {len(payload)} launch records")
        return iter(payload)

    def get_rocket(self, rocket_id: str) -> RocketRecord:
        record = parse_rocket(self._get_json(ROCKET_PATH.format(id=quote(rocket_id, safe=""))))
        logger.debug(f"Fetched rocket {rocket_id}: {record.name}")
        return record

    def get_launch_pad(self, launch_pad_id: str) -> LaunchPadRecord:
        record = parse_launch_pad(self._get_json(LAUNCH_PAD_PATH.format(id=quote(launch_pad_id, safe=""))))
        logger.debug(f"Fetched launch pad {launch_pad_id}: {record.name}")
        return record

    def fetch_rocket(self, rocket_id: str) -> FetchOutcome[RocketRecord]:
        return _outcome(self.get_rocket, rocket_id, "rocket")

    def fetch_launch_pad(self, launch_pad_id: str) -> FetchOutcome[LaunchPadRecord]:
        return _outcome(self.get_launch_pad, launch_pad_id, "launchpad")


def _outcome(getter: Callable[[str], T], record_id: str, kind: str) -> FetchOutcome[T]:
    try:
        record = getter(record_id)
    except LaunchDataError as e:
        logger.warning(f"Error fetching {kind} {record_id}: {e}")
        return FetchOutcome(error=str(e))
    if record.id != record_id:
        return FetchOutcome(error=f"{kind} {record_id} answered with id {record.id}")
    return FetchOutcome(record=record)
