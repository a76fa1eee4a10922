"""Upstream collaborators, constructed once per application."""
from __future__ import annotations

from dataclasses import dataclass, field

from .config import Settings
from .data_ingest import AirNowClient
from .geocode import PlaceNameLookup
from .predictions import PredictionStore, build_prediction_store
from .satellite import TempoClient
from .utils_geo import CALIFORNIA, ServiceRegion
from .weather import GoogleWeatherClient


@dataclass
class Services:
    settings: Settings
    stations: AirNowClient
    weather: GoogleWeatherClient
    satellite: TempoClient
    places: PlaceNameLookup
    predictions: PredictionStore
    region: ServiceRegion = field(default=CALIFORNIA)


def build_services(settings: Settings) -> Services:
    timeout = settings.http_timeout
    return Services(
        settings=settings,
        stations=AirNowClient(settings.airnow_api_key, timeout=timeout),
        weather=GoogleWeatherClient(settings.maps_api_key, timeout=timeout),
        satellite=TempoClient(settings.earthdata_token, timeout=timeout),
        places=PlaceNameLookup(user_agent=settings.geocoder_user_agent, timeout=timeout),
        predictions=build_prediction_store(settings),
    )


__all__ = ["Services", "build_services"]
