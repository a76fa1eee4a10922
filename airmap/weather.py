"""Google Weather current conditions."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from .data_ingest import _build_session, not_configured, request_json
from .entities import FetchResult, GeoPoint

logger = logging.getLogger(__name__)

GOOGLE_WEATHER_URL = "https://weather.googleapis.com/v1/currentConditions:lookup"


def _google_error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return response.text


class GoogleWeatherClient:
    """Pass-through client for the current conditions lookup."""

    name = "Google Weather"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = GOOGLE_WEATHER_URL,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.session = session or _build_session()
        self.timeout = timeout
        if not api_key:
            logger.warning("GOOGLE_MAPS_API_KEY is not set; weather is unavailable")

    def fetch(self, point: GeoPoint) -> FetchResult[Dict[str, Any]]:
        if not self.api_key:
            return FetchResult.failed(not_configured("Server is not configured with a Maps API key."))

        params = {
            "key": self.api_key,
            "location.latitude": point.lat,
            "location.longitude": point.lon,
        }
        return request_json(
            self.session,
            self.base_url,
            source="weather",
            params=params,
            timeout=self.timeout,
            error_details=_google_error_message,
        )


__all__ = ["GOOGLE_WEATHER_URL", "GoogleWeatherClient"]
