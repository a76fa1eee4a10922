"""AirNow station observations and the shared upstream HTTP plumbing."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .entities import (
    FailureKind,
    FetchResult,
    GeoPoint,
    StationObservation,
    UpstreamError,
    UpstreamFailure,
)

logger = logging.getLogger(__name__)

AIRNOW_OBSERVATION_URL = "https://www.airnowapi.org/aq/observation/latLong/current/"
DEFAULT_DISTANCE_MILES = 25.0
BODY_PREVIEW_CHARS = 500


def _build_session() -> requests.Session:
    session = requests.Session()
    # Upstream failures are reported to the caller as-is, not retried.
    retries = Retry(total=0, connect=0, read=0, status=0, raise_on_status=False)
    adapter = HTTPAdapter(max_retries=retries)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def not_configured(message: str) -> UpstreamFailure:
    return UpstreamFailure(kind=FailureKind.NOT_CONFIGURED, message=message)


def request_json(
    session: requests.Session,
    url: str,
    *,
    source: str,
    params: Any = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 10.0,
    error_details: Optional[Callable[[requests.Response], str]] = None,
) -> FetchResult[Any]:
    """GET ``url`` and decode its JSON body, normalizing every failure mode."""
    try:
        response = session.get(url, params=params, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        logger.error("%s request failed: %s", source, exc)
        return FetchResult.failed(
            UpstreamFailure(
                kind=FailureKind.TRANSPORT_ERROR,
                message=f"Failed to request {source} data.",
                details=str(exc),
            )
        )

    if not response.ok:
        details = error_details(response) if error_details else response.text
        logger.error("%s API error %s; body=%s", source, response.status_code, response.text[:BODY_PREVIEW_CHARS])
        return FetchResult.failed(
            UpstreamFailure(
                kind=FailureKind.HTTP_ERROR,
                message=f"Failed to fetch {source} data.",
                status=response.status_code,
                details=details,
            )
        )

    try:
        return FetchResult.success(response.json())
    except ValueError as exc:
        logger.error("%s returned a body that is not JSON: %s", source, exc)
        return FetchResult.failed(
            UpstreamFailure(
                kind=FailureKind.INVALID_RESPONSE,
                message=f"Unable to decode {source} response as JSON.",
                status=response.status_code,
                details=response.text[:BODY_PREVIEW_CHARS],
            )
        )


class AirNowClient:
    """Current observations near a point from the AirNow ``latLong`` endpoint."""

    name = "AirNow"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = AIRNOW_OBSERVATION_URL,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.session = session or _build_session()
        self.timeout = timeout
        if not api_key:
            logger.warning("AIRNOW_API_KEY is not set; station observations are unavailable")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def fetch(self, point: GeoPoint, distance: float = DEFAULT_DISTANCE_MILES) -> FetchResult[List[StationObservation]]:
        if not self.api_key:
            return FetchResult.failed(not_configured("Server is not configured with an AirNow API key."))

        params = {
            "format": "application/json",
            "latitude": point.lat,
            "longitude": point.lon,
            "distance": _format_distance(distance),
            "API_KEY": self.api_key,
        }
        result = request_json(self.session, self.base_url, source=self.name, params=params, timeout=self.timeout)
        if not result.ok:
            return result

        payload = result.value or []
        if not isinstance(payload, list):
            return FetchResult.failed(
                UpstreamFailure(
                    kind=FailureKind.INVALID_RESPONSE,
                    message="AirNow returned an unexpected payload.",
                    details=str(payload)[:BODY_PREVIEW_CHARS],
                )
            )
        try:
            observations = [StationObservation.from_airnow(item) for item in payload]
        except (TypeError, ValueError, AttributeError) as exc:
            return FetchResult.failed(
                UpstreamFailure(
                    kind=FailureKind.INVALID_RESPONSE,
                    message="AirNow returned a malformed observation.",
                    details=str(exc),
                )
            )
        return FetchResult.success(observations)


def _format_distance(distance: float) -> str:
    return str(int(distance)) if float(distance).is_integer() else str(distance)


def fetch_station_observations(
    client: AirNowClient,
    point: GeoPoint,
    radius_ladder: Sequence[float],
) -> List[StationObservation]:
    """Widen the station search rung by rung until something is found.

    Radii are queried strictly in the given order, one request per rung, and
    the first non-empty result wins. An exhausted ladder returns ``[]``. A
    failed rung raises :class:`UpstreamError` immediately instead of moving
    on to the next radius.
    """
    if not radius_ladder:
        raise ValueError("radius_ladder must contain at least one radius")
    if any(later <= earlier for earlier, later in zip(radius_ladder, radius_ladder[1:])):
        raise ValueError("radius_ladder must be strictly increasing")

    for radius in radius_ladder:
        result = client.fetch(point, distance=radius)
        if not result.ok:
            raise UpstreamError(result.failure)
        if result.value:
            logger.info("Found %d AirNow observations within %s miles of %s", len(result.value), radius, point)
            return result.value
        logger.debug("No AirNow observations within %s miles of %s", radius, point)

    logger.info("No AirNow stations found for %s after %d radii", point, len(radius_ladder))
    return []


__all__ = [
    "AIRNOW_OBSERVATION_URL",
    "AirNowClient",
    "DEFAULT_DISTANCE_MILES",
    "fetch_station_observations",
    "not_configured",
    "request_json",
]
