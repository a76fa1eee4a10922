"""Value types shared by the adapters, reducers and the HTTP layer."""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class ValidationError(ValueError):
    """Raised for malformed request parameters, before any upstream call."""


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.lat) and math.isfinite(self.lon)):
            raise ValidationError("Coordinates must be finite numbers.")
        if not -90.0 <= self.lat <= 90.0:
            raise ValidationError(f"Latitude {self.lat} is outside [-90, 90].")
        if not -180.0 <= self.lon <= 180.0:
            raise ValidationError(f"Longitude {self.lon} is outside [-180, 180].")

    def as_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lon": self.lon}


class FailureKind(str, Enum):
    NOT_CONFIGURED = "not_configured"
    HTTP_ERROR = "http_error"
    TRANSPORT_ERROR = "transport_error"
    INVALID_RESPONSE = "invalid_response"


@dataclass(frozen=True)
class UpstreamFailure:
    """Normalized description of why an upstream call produced no data."""

    kind: FailureKind
    message: str
    status: Optional[int] = None
    details: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message, "kind": self.kind.value}
        if self.details is not None:
            payload["details"] = self.details
        if self.status is not None:
            payload["upstream_status"] = self.status
        return payload


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Either a value or an :class:`UpstreamFailure`, never both."""

    value: Optional[T] = None
    failure: Optional[UpstreamFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T) -> "FetchResult[T]":
        return cls(value=value)

    @classmethod
    def failed(cls, failure: UpstreamFailure) -> "FetchResult[T]":
        return cls(failure=failure)


class UpstreamError(RuntimeError):
    """Raised when a fetch failure must abort the request it belongs to."""

    def __init__(self, failure: UpstreamFailure):
        super().__init__(failure.message)
        self.failure = failure


@dataclass(frozen=True)
class StationObservation:
    """One AirNow current observation for one station and one pollutant."""

    parameter: str
    aqi: int
    category_number: int
    category_name: str
    reporting_area: str
    latitude: float
    longitude: float
    date_observed: str = ""
    hour_observed: int = 0
    local_time_zone: str = ""
    state_code: str = ""

    @property
    def observed_at(self) -> str:
        return f"{self.date_observed.strip()} {self.hour_observed:02d}:00 {self.local_time_zone}".strip()

    @classmethod
    def from_airnow(cls, payload: Dict[str, Any]) -> "StationObservation":
        category = payload.get("Category") or {}
        return cls(
            parameter=str(payload.get("ParameterName", "")),
            aqi=int(payload.get("AQI", -1)),
            category_number=int(category.get("Number", 0)),
            category_name=str(category.get("Name", "")),
            reporting_area=str(payload.get("ReportingArea", "")),
            latitude=float(payload.get("Latitude", 0.0)),
            longitude=float(payload.get("Longitude", 0.0)),
            date_observed=str(payload.get("DateObserved", "")),
            hour_observed=int(payload.get("HourObserved", 0)),
            local_time_zone=str(payload.get("LocalTimeZone", "")),
            state_code=str(payload.get("StateCode", "")),
        )

    def to_airnow(self) -> Dict[str, Any]:
        return {
            "DateObserved": self.date_observed,
            "HourObserved": self.hour_observed,
            "LocalTimeZone": self.local_time_zone,
            "ReportingArea": self.reporting_area,
            "StateCode": self.state_code,
            "Latitude": self.latitude,
            "Longitude": self.longitude,
            "ParameterName": self.parameter,
            "AQI": self.aqi,
            "Category": {"Number": self.category_number, "Name": self.category_name},
        }


@dataclass(frozen=True)
class WindSpeed:
    value: Optional[float]
    unit: str


@dataclass(frozen=True)
class WeatherCondition:
    text: str
    icon_uri: str


@dataclass(frozen=True)
class WeatherSnapshot:
    observed_at: Optional[str]
    temperature_c: Optional[float]
    humidity_pct: Optional[int]
    wind_speed: WindSpeed
    condition: WeatherCondition

    @classmethod
    def from_google(cls, payload: Dict[str, Any]) -> "WeatherSnapshot":
        """Map a Google ``currentConditions:lookup`` body onto the snapshot."""
        temperature = payload.get("temperature") or {}
        wind = (payload.get("wind") or {}).get("speed") or {}
        condition = payload.get("weatherCondition") or {}
        description = condition.get("description") or {}
        humidity = payload.get("relativeHumidity")
        degrees = temperature.get("degrees")
        speed = wind.get("value")
        return cls(
            observed_at=payload.get("currentTime"),
            temperature_c=float(degrees) if degrees is not None else None,
            humidity_pct=int(humidity) if humidity is not None else None,
            wind_speed=WindSpeed(value=float(speed) if speed is not None else None, unit=str(wind.get("unit", ""))),
            condition=WeatherCondition(
                text=str(description.get("text", "")),
                icon_uri=str(condition.get("iconBaseUri", "")),
            ),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "observed_at": self.observed_at,
            "temperature_c": self.temperature_c,
            "humidity_pct": self.humidity_pct,
            "wind_speed": {"value": self.wind_speed.value, "unit": self.wind_speed.unit},
            "condition": {"text": self.condition.text, "icon_uri": self.condition.icon_uri},
        }


@dataclass(frozen=True)
class SatelliteColumnReading:
    value: str
    source: str

    def as_dict(self) -> Dict[str, str]:
        return {"value": self.value, "source": self.source}


@dataclass(frozen=True)
class PredictionPoint:
    cell_lat: float
    cell_lon: float
    pm25: float

    def to_feature(self) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [self.cell_lon, self.cell_lat]},
            "properties": {"pm25_pred": self.pm25},
        }


__all__ = [
    "FailureKind",
    "FetchResult",
    "GeoPoint",
    "PredictionPoint",
    "SatelliteColumnReading",
    "StationObservation",
    "UpstreamError",
    "UpstreamFailure",
    "ValidationError",
    "WeatherCondition",
    "WeatherSnapshot",
    "WindSpeed",
]
