"""Reverse geocoding for the panel title."""
from __future__ import annotations

import logging
from typing import Any, Optional

from geopy.exc import GeopyError
from geopy.geocoders import Nominatim

from .entities import GeoPoint

logger = logging.getLogger(__name__)

NAME_NOT_FOUND = "Location name not found"
GEOCODING_ERROR = "Geocoding error"


class PlaceNameLookup:
    def __init__(self, user_agent: str = "airmap", timeout: float = 10.0, geolocator: Optional[Any] = None) -> None:
        self.timeout = timeout
        self.geolocator = geolocator or Nominatim(user_agent=user_agent, timeout=timeout)

    def lookup(self, point: GeoPoint) -> str:
        """Formatted address for ``point``; never raises for service errors."""
        try:
            location = self.geolocator.reverse((point.lat, point.lon), exactly_one=True)
        except GeopyError as exc:
            logger.warning("Reverse geocoding failed for %s: %s", point, exc)
            return GEOCODING_ERROR
        if location is None or not getattr(location, "address", None):
            return NAME_NOT_FOUND
        return location.address


__all__ = ["GEOCODING_ERROR", "NAME_NOT_FOUND", "PlaceNameLookup"]
