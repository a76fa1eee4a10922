"""Combined location panel: region gate, concurrent fan-out, stale-result guard."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .averaging import reduce_observations
from .data_ingest import fetch_station_observations
from .entities import FailureKind, GeoPoint, UpstreamError, UpstreamFailure, WeatherSnapshot
from .services import Services

logger = logging.getLogger(__name__)


class DomainStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"
    NOT_CONFIGURED = "not_configured"


class PanelStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    OK = "ok"
    OUTSIDE_REGION = "outside_region"
    FAILED = "failed"


@dataclass(frozen=True)
class DomainResult:
    status: DomainStatus
    data: Any = None
    error: Optional[Dict[str, Any]] = None

    @classmethod
    def from_failure(cls, failure: UpstreamFailure) -> "DomainResult":
        status = DomainStatus.NOT_CONFIGURED if failure.kind is FailureKind.NOT_CONFIGURED else DomainStatus.FAILED
        return cls(status=status, error=failure.as_dict())

    def as_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "data": self.data, "error": self.error}


@dataclass(frozen=True)
class PanelState:
    status: PanelStatus
    point: Optional[GeoPoint] = None
    place_name: Optional[str] = None
    weather: Optional[DomainResult] = None
    air_quality: Optional[DomainResult] = None
    satellite: Optional[DomainResult] = None
    error: Optional[str] = None
    generation: Optional[int] = field(default=None, compare=False)

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "status": self.status.value,
            "point": self.point.as_dict() if self.point else None,
            "place_name": self.place_name,
        }
        for name in ("weather", "air_quality", "satellite"):
            result = getattr(self, name)
            payload[name] = result.as_dict() if result else None
        if self.error:
            payload["error"] = self.error
        if self.generation is not None:
            payload["generation"] = self.generation
        return payload


class LocationPanel:
    """Everything the side panel shows for one point."""

    def __init__(self, services: Services, max_workers: int = 4) -> None:
        self.services = services
        self.max_workers = max_workers

    def lookup(self, point: GeoPoint) -> PanelState:
        if not self.services.region.contains(point):
            logger.info("Point %s is outside the supported region; skipping enrichment", point)
            return PanelState(status=PanelStatus.OUTSIDE_REGION, point=point)

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="panel") as executor:
            place = executor.submit(self.services.places.lookup, point)
            weather = executor.submit(self.weather, point)
            air_quality = executor.submit(self.air_quality, point)
            satellite = executor.submit(self.satellite, point)
            return PanelState(
                status=PanelStatus.OK,
                point=point,
                place_name=place.result(),
                weather=weather.result(),
                air_quality=air_quality.result(),
                satellite=satellite.result(),
            )

    def weather(self, point: GeoPoint) -> DomainResult:
        result = self.services.weather.fetch(point)
        if not result.ok:
            return DomainResult.from_failure(result.failure)
        try:
            snapshot = WeatherSnapshot.from_google(result.value or {})
        except (TypeError, ValueError, AttributeError) as exc:
            return DomainResult.from_failure(
                UpstreamFailure(kind=FailureKind.INVALID_RESPONSE, message="Unexpected weather payload.", details=str(exc))
            )
        return DomainResult(status=DomainStatus.OK, data=snapshot.as_dict())

    def air_quality(self, point: GeoPoint) -> DomainResult:
        try:
            observations = fetch_station_observations(
                self.services.stations, point, self.services.settings.radius_ladder
            )
        except UpstreamError as exc:
            return DomainResult.from_failure(exc.failure)
        if not observations:
            return DomainResult(status=DomainStatus.EMPTY, data=[])
        return DomainResult(status=DomainStatus.OK, data=[o.to_airnow() for o in reduce_observations(observations)])

    def satellite(self, point: GeoPoint) -> DomainResult:
        result = self.services.satellite.reading(point, policy=self.services.settings.satellite_policy)
        if not result.ok:
            return DomainResult.from_failure(result.failure)
        return DomainResult(status=DomainStatus.OK, data=result.value.as_dict())


class PanelTracker:
    """Keeps the displayed panel in step with the most recent point selection.

    Every ``select`` bumps a generation counter; a lookup that completes
    under an older generation is dropped instead of overwriting the state of
    the newer point.
    """

    def __init__(self, lookup: Callable[[GeoPoint], PanelState], executor: Optional[ThreadPoolExecutor] = None) -> None:
        self._lookup = lookup
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="panel-tracker")
        self._lock = threading.Lock()
        self._generation = 0
        self._state = PanelState(status=PanelStatus.IDLE, generation=0)

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def state(self) -> PanelState:
        with self._lock:
            return self._state

    def select(self, point: GeoPoint) -> Future:
        """Start a lookup for ``point``; the future resolves to whether its result was applied."""
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._state = PanelState(status=PanelStatus.LOADING, point=point, generation=generation)
        return self._executor.submit(self._run, generation, point)

    def apply(self, generation: int, state: PanelState) -> bool:
        """Install ``state`` if ``generation`` is still current; report whether it was."""
        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding panel result for generation %d (current %d)", generation, self._generation)
                return False
            self._state = replace(state, generation=generation)
            return True

    def _run(self, generation: int, point: GeoPoint) -> bool:
        try:
            state = self._lookup(point)
        except Exception as exc:  # noqa: BLE001 - surfaced as the panel's failed state
            logger.exception("Panel lookup for %s failed", point)
            state = PanelState(status=PanelStatus.FAILED, point=point, error=str(exc))
        return self.apply(generation, state)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)


__all__ = [
    "DomainResult",
    "DomainStatus",
    "LocationPanel",
    "PanelState",
    "PanelStatus",
    "PanelTracker",
]
