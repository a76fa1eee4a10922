"""Flask blueprint exposing the gridded PM2.5 prediction layer."""
from __future__ import annotations

import json
import logging
from flask import Blueprint, current_app, jsonify, request, Response

from airmap.entities import UpstreamError, ValidationError
from airmap.predictions import parse_selector, parse_timestamp, query_predictions

logger = logging.getLogger(__name__)

predict_bp = Blueprint("predictions", __name__, url_prefix="/api")


@predict_bp.route("/predictions")
def predictions() -> Response:
    try:
        ts = parse_timestamp(request.args.get("ts"))
        selector = parse_selector(request.args)
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    store = current_app.extensions["airmap"].predictions
    try:
        geojson = query_predictions(store, ts, selector)
    except UpstreamError as exc:
        body = {"error": exc.failure.message}
        if exc.failure.details:
            body["details"] = exc.failure.details
        return jsonify(body), 500

    response = current_app.response_class(
        response=json.dumps(geojson),
        status=200,
        mimetype="application/geo+json",
    )
    response.headers["Cache-Control"] = "public, max-age=300"
    return response


__all__ = ["predict_bp"]
