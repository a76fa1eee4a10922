"""Flask blueprint for the point lookups behind the map panel."""
from __future__ import annotations

import json
import logging
from typing import Any

from flask import Blueprint, Response, current_app, jsonify, request

from airmap.averaging import reduce_observations
from airmap.config import FailurePolicy
from airmap.data_ingest import fetch_station_observations
from airmap.entities import UpstreamError, UpstreamFailure, ValidationError
from airmap.panel import LocationPanel
from airmap.services import Services
from airmap.utils_geo import parse_finite, parse_point

logging.basicConfig(level=logging.INFO)
log = logging.getLogger(__name__)

bp = Blueprint("main", __name__, url_prefix="/api")

SHORT_MAX_AGE = 300
SATELLITE_MAX_AGE = 3600


def _services() -> Services:
    return current_app.extensions["airmap"]


def _json(payload: Any, max_age: int, provenance: str = "") -> Response:
    resp = Response(json.dumps(payload), mimetype="application/json")
    resp.headers["Cache-Control"] = f"public, max-age={max_age}"
    if provenance:
        resp.headers["X-Data-Provenance"] = provenance
    return resp


def _failure(failure: UpstreamFailure):
    body = {"error": failure.message}
    if failure.details is not None:
        body["details"] = failure.details
    if failure.status is not None:
        body["upstream_status"] = failure.status
    return jsonify(body), 500


def _degrade_or_fail(failure: UpstreamFailure, policy: FailurePolicy, placeholder: Any, max_age: int):
    if policy is FailurePolicy.DEGRADE:
        log.warning("Serving placeholder after upstream failure: %s", failure.message)
        return _json(placeholder, max_age, provenance=failure.kind.value)
    return _failure(failure)


@bp.errorhandler(ValidationError)
def _validation_error(exc: ValidationError):
    return jsonify({"error": str(exc)}), 400


@bp.route("/airnow")
def airnow():
    """Station observations near ``lat``/``lon``, one averaged entry per pollutant.

    ``distance`` pins the search to a single radius; without it the
    configured radius ladder is walked until a station answers.
    """
    point = parse_point(request.args)
    services = _services()
    distance_raw = request.args.get("distance")
    ladder = (parse_finite(distance_raw, "distance"),) if distance_raw else services.settings.radius_ladder
    if ladder[0] <= 0:
        raise ValidationError('"distance" must be positive.')

    try:
        observations = fetch_station_observations(services.stations, point, ladder)
    except UpstreamError as exc:
        return _degrade_or_fail(exc.failure, services.settings.station_policy, [], SHORT_MAX_AGE)

    return _json([o.to_airnow() for o in reduce_observations(observations)], SHORT_MAX_AGE)


@bp.route("/weather")
def weather():
    point = parse_point(request.args)
    services = _services()
    result = services.weather.fetch(point)
    if not result.ok:
        return _degrade_or_fail(result.failure, services.settings.weather_policy, {}, SHORT_MAX_AGE)
    return _json(result.value, SHORT_MAX_AGE)


@bp.route("/tempo")
def tempo():
    point = parse_point(request.args)
    services = _services()
    result = services.satellite.reading(point, policy=services.settings.satellite_policy)
    if not result.ok:
        return _failure(result.failure)
    return _json(result.value.as_dict(), SATELLITE_MAX_AGE)


@bp.route("/location")
def location():
    """Everything the panel shows for one point, or ``outside_region``."""
    point = parse_point(request.args)
    state = LocationPanel(_services()).lookup(point)
    payload = state.as_dict()
    generation = request.args.get("generation")
    if generation is not None:
        payload["generation"] = generation
    return _json(payload, SHORT_MAX_AGE)


__all__ = ["bp"]
