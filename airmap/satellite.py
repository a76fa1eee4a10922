"""TEMPO tropospheric NO2 column through NASA Harmony."""
from __future__ import annotations

import logging
import random
from typing import Any, Optional

import requests

from .config import FailurePolicy
from .data_ingest import _build_session, not_configured, request_json
from .entities import FailureKind, FetchResult, GeoPoint, SatelliteColumnReading, UpstreamFailure

logger = logging.getLogger(__name__)

HARMONY_URL = "https://harmony.earthdata.nasa.gov/harmony"
TEMPO_NO2_COLLECTION = "C2799434144-GES_DISC"
TEMPO_NO2_VARIABLE = "nitrogendioxide_tropospheric_column"
COLUMN_UNIT = "mol/m²"
SIMULATED_MAX = 5e15
NOT_AVAILABLE = "N/A"

SOURCE_LIVE = "live"
SOURCE_SIMULATED = "simulated — no credential"
SOURCE_REQUEST_FAILED = "request failed"


def format_column(value: float) -> str:
    return f"{value:.2e} {COLUMN_UNIT}"


def error_source(status: Any) -> str:
    return f"error: {status}"


def _extract_column(payload: Any) -> Optional[float]:
    try:
        value = payload["features"][0]["properties"]["data"]
    except (KeyError, IndexError, TypeError):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class TempoClient:
    """Point lookup of the latest TEMPO L2 NO2 granule.

    ``fetch`` returns the raw column magnitude (``None`` when the granule has
    no value at the point). ``reading`` formats it for display and, under
    :attr:`FailurePolicy.DEGRADE`, turns every failure into a labelled
    placeholder instead of an error.
    """

    name = "TEMPO"

    def __init__(
        self,
        token: Optional[str],
        *,
        base_url: str = HARMONY_URL,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.token = token
        self.base_url = base_url
        self.session = session or _build_session()
        self.timeout = timeout
        self._rng = rng or random.Random()
        if not token:
            logger.warning("EARTHDATA_TOKEN is not set; satellite readings will be simulated")

    def fetch(self, point: GeoPoint) -> FetchResult[Optional[float]]:
        if not self.token:
            return FetchResult.failed(not_configured("Server is not configured with an Earthdata token."))

        params = [
            ("collectionId", TEMPO_NO2_COLLECTION),
            ("variable", TEMPO_NO2_VARIABLE),
            ("subset", f"lat({point.lat}:{point.lat})"),
            ("subset", f"lon({point.lon}:{point.lon})"),
            ("outputCrs", "EPSG:4326"),
            ("format", "application/json"),
            ("temporal", "latest"),
        ]
        headers = {"Authorization": f"Bearer {self.token}"}
        result = request_json(
            self.session, self.base_url, source=self.name, params=params, headers=headers, timeout=self.timeout
        )
        if not result.ok:
            return result
        return FetchResult.success(_extract_column(result.value))

    def reading(self, point: GeoPoint, policy: FailurePolicy = FailurePolicy.DEGRADE) -> FetchResult[SatelliteColumnReading]:
        result = self.fetch(point)
        if result.ok:
            value = format_column(result.value) if result.value is not None else NOT_AVAILABLE
            return FetchResult.success(SatelliteColumnReading(value=value, source=SOURCE_LIVE))
        if policy is FailurePolicy.FAIL:
            return FetchResult.failed(result.failure)
        return FetchResult.success(self.placeholder(result.failure))

    def placeholder(self, failure: UpstreamFailure) -> SatelliteColumnReading:
        if failure.kind is FailureKind.NOT_CONFIGURED:
            simulated = self._rng.random() * SIMULATED_MAX
            return SatelliteColumnReading(value=format_column(simulated), source=SOURCE_SIMULATED)
        if failure.kind is FailureKind.TRANSPORT_ERROR:
            return SatelliteColumnReading(value=NOT_AVAILABLE, source=SOURCE_REQUEST_FAILED)
        if failure.kind is FailureKind.INVALID_RESPONSE:
            return SatelliteColumnReading(value=NOT_AVAILABLE, source=error_source(failure.kind.value))
        return SatelliteColumnReading(value=NOT_AVAILABLE, source=error_source(failure.status or failure.kind.value))


__all__ = [
    "HARMONY_URL",
    "SOURCE_LIVE",
    "SOURCE_REQUEST_FAILED",
    "SOURCE_SIMULATED",
    "TempoClient",
    "error_source",
    "format_column",
]
