import json
from typing import Any, Dict, List, Optional

import pytest

from airmap.config import Settings
from airmap.entities import FailureKind, FetchResult, SatelliteColumnReading, UpstreamFailure
from airmap.predictions import UnavailablePredictionStore
from airmap.services import Services
from airmap.utils_geo import CALIFORNIA


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    """Records GET calls and answers them from a queue of responses or exceptions."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


def airnow_record(parameter="PM2.5", aqi=42, area="Fresno", lat=36.78, lon=-119.77, category=(1, "Good")):
    return {
        "DateObserved": "2024-07-01 ",
        "HourObserved": 14,
        "LocalTimeZone": "PST",
        "ReportingArea": area,
        "StateCode": "CA",
        "Latitude": lat,
        "Longitude": lon,
        "ParameterName": parameter,
        "AQI": aqi,
        "Category": {"Number": category[0], "Name": category[1]},
    }


class FakeStations:
    def __init__(self, by_distance=None, failure: Optional[UpstreamFailure] = None):
        self.by_distance = by_distance or {}
        self.failure = failure
        self.calls: List[float] = []

    def fetch(self, point, distance=25):
        self.calls.append(distance)
        if self.failure is not None:
            return FetchResult.failed(self.failure)
        return FetchResult.success(list(self.by_distance.get(distance, [])))


class FakeWeather:
    def __init__(self, payload=None, failure: Optional[UpstreamFailure] = None):
        self.payload = payload if payload is not None else GOOGLE_WEATHER
        self.failure = failure
        self.calls = []

    def fetch(self, point):
        self.calls.append(point)
        if self.failure is not None:
            return FetchResult.failed(self.failure)
        return FetchResult.success(self.payload)


class FakeSatellite:
    def __init__(self, reading=None, failure: Optional[UpstreamFailure] = None):
        self.reading_value = reading
        self.failure = failure
        self.calls = []

    def reading(self, point, policy=None):
        self.calls.append(point)
        if self.failure is not None:
            return FetchResult.failed(self.failure)
        return FetchResult.success(self.reading_value)


class FakePlaces:
    def __init__(self, name="Fresno, CA, USA"):
        self.name = name
        self.calls = []

    def lookup(self, point):
        self.calls.append(point)
        return self.name


GOOGLE_WEATHER = {
    "currentTime": "2024-07-01T21:00:00Z",
    "temperature": {"degrees": 31.5, "unit": "CELSIUS"},
    "relativeHumidity": 22,
    "wind": {"speed": {"value": 11, "unit": "KILOMETERS_PER_HOUR"}},
    "weatherCondition": {
        "iconBaseUri": "https://maps.gstatic.com/weather/v1/sunny",
        "description": {"text": "Sunny", "languageCode": "en"},
        "type": "CLEAR",
    },
}

HTTP_500 = UpstreamFailure(kind=FailureKind.HTTP_ERROR, message="Failed to fetch AirNow data.", status=503, details="down")


@pytest.fixture()
def make_services():
    def _make(**overrides):
        defaults = dict(
            settings=Settings(),
            stations=FakeStations(),
            weather=FakeWeather(),
            satellite=FakeSatellite(SatelliteColumnReading(value="1.00e+15 mol/m²", source="live")),
            places=FakePlaces(),
            predictions=UnavailablePredictionStore("not configured in tests"),
            region=CALIFORNIA,
        )
        defaults.update(overrides)
        return Services(**defaults)

    return _make


@pytest.fixture()
def make_client(make_services):
    from app import create_app

    def _make(**overrides):
        app = create_app(services=make_services(**overrides))
        app.config["TESTING"] = True
        return app.test_client()

    return _make
