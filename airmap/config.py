"""Environment driven settings for the air map service."""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

DEFAULT_RADIUS_LADDER: Tuple[float, ...] = (10.0, 25.0, 50.0, 100.0)
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class FailurePolicy(str, Enum):
    """What a data domain does when its upstream is missing or failing."""

    FAIL = "fail"
    DEGRADE = "degrade"

    @classmethod
    def parse(cls, value: str) -> "FailurePolicy":
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unknown failure policy {value!r}; use 'fail' or 'degrade'") from exc


def _parse_ladder(raw: str) -> Tuple[float, ...]:
    try:
        radii = tuple(float(part) for part in raw.split(",") if part.strip())
    except ValueError as exc:
        raise ValueError("STATION_RADIUS_LADDER must be comma separated numbers") from exc
    if not radii:
        raise ValueError("STATION_RADIUS_LADDER must contain at least one radius")
    if any(later <= earlier for earlier, later in zip(radii, radii[1:])):
        raise ValueError("STATION_RADIUS_LADDER must be strictly increasing")
    if radii[0] <= 0:
        raise ValueError("STATION_RADIUS_LADDER radii must be positive")
    return radii


@dataclass(frozen=True)
class Settings:
    """Credentials and connection identifiers consumed by the adapters."""

    airnow_api_key: Optional[str] = None
    maps_api_key: Optional[str] = None
    earthdata_token: Optional[str] = None
    bq_project_id: Optional[str] = None
    bq_dataset: Optional[str] = None
    bq_table: Optional[str] = None
    bq_prediction_column: str = "pm25_pred"
    bq_location: str = "US"
    http_timeout: float = 10.0
    radius_ladder: Tuple[float, ...] = DEFAULT_RADIUS_LADDER
    station_policy: FailurePolicy = FailurePolicy.FAIL
    weather_policy: FailurePolicy = FailurePolicy.FAIL
    satellite_policy: FailurePolicy = FailurePolicy.DEGRADE
    geocoder_user_agent: str = "airmap"

    def __post_init__(self) -> None:
        if not _IDENTIFIER.match(self.bq_prediction_column):
            raise ValueError(f"PRED_COL_NAME {self.bq_prediction_column!r} is not a plain column identifier")
        if self.http_timeout <= 0:
            raise ValueError("HTTP_TIMEOUT must be positive")

    @property
    def prediction_store_configured(self) -> bool:
        return bool(self.bq_project_id and self.bq_dataset and self.bq_table)

    @property
    def prediction_table(self) -> str:
        return f"`{self.bq_project_id}.{self.bq_dataset}.{self.bq_table}`"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``environ`` (defaults to ``os.environ`` after loading ``.env``)."""
        if environ is None:
            load_dotenv()
            environ = os.environ

        def get(name: str) -> Optional[str]:
            value = environ.get(name)
            return value.strip() if value and value.strip() else None

        try:
            timeout = float(environ.get("HTTP_TIMEOUT", "10"))
        except ValueError as exc:
            raise ValueError("HTTP_TIMEOUT must be a number of seconds") from exc

        ladder_raw = environ.get("STATION_RADIUS_LADDER")
        ladder = _parse_ladder(ladder_raw) if ladder_raw else DEFAULT_RADIUS_LADDER

        return cls(
            airnow_api_key=get("AIRNOW_API_KEY"),
            maps_api_key=get("GOOGLE_MAPS_API_KEY"),
            earthdata_token=get("EARTHDATA_TOKEN"),
            bq_project_id=get("BQ_PROJECT_ID"),
            bq_dataset=get("BQ_DATASET"),
            bq_table=get("BQ_PRED_TABLE"),
            bq_prediction_column=get("PRED_COL_NAME") or "pm25_pred",
            bq_location=get("BQ_LOCATION") or "US",
            http_timeout=timeout,
            radius_ladder=ladder,
            station_policy=FailurePolicy.parse(environ.get("STATION_FAILURE_POLICY", "fail")),
            weather_policy=FailurePolicy.parse(environ.get("WEATHER_FAILURE_POLICY", "fail")),
            satellite_policy=FailurePolicy.parse(environ.get("SATELLITE_FAILURE_POLICY", "degrade")),
            geocoder_user_agent=get("NOMINATIM_USER_AGENT") or "airmap",
        )


__all__ = ["Settings", "FailurePolicy", "DEFAULT_RADIUS_LADDER"]
