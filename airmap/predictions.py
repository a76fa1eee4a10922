"""Gridded PM2.5 predictions from the BigQuery prediction table."""
from __future__ import annotations

import logging
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import requests
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import bigquery

from .config import Settings
from .entities import FailureKind, GeoPoint, PredictionPoint, UpstreamError, UpstreamFailure, ValidationError
from .utils_geo import BBox, parse_bbox, parse_finite

logger = logging.getLogger(__name__)

MAX_RESULTS = 10000


@dataclass(frozen=True)
class RadiusSelector:
    center: GeoPoint
    radius_km: float

    @property
    def radius_m(self) -> float:
        return self.radius_km * 1000


Selector = Union[BBox, RadiusSelector]


@dataclass(frozen=True)
class QueryParam:
    name: str
    type_: str
    value: Any


def parse_timestamp(raw: Optional[str]) -> datetime:
    if not raw:
        raise ValidationError('Missing timestamp parameter "ts".')
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError('Invalid "ts" parameter; expected an ISO-8601 timestamp.') from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_selector(args: Mapping[str, str]) -> Selector:
    """Exactly one of ``bbox`` or ``lat``/``lon``/``radius_km``."""
    bbox_raw = args.get("bbox")
    radius_keys = ("lat", "lon", "radius_km")
    radius_given = [key for key in radius_keys if args.get(key)]

    if bbox_raw and radius_given:
        raise ValidationError('Provide either "bbox" or "lat, lon, and radius_km", not both.')
    if bbox_raw:
        return parse_bbox(bbox_raw)
    if len(radius_given) != len(radius_keys):
        raise ValidationError('Either "bbox" or "lat, lon, and radius_km" must be provided.')

    try:
        center = GeoPoint(parse_finite(args["lat"], "lat"), parse_finite(args["lon"], "lon"))
        radius_km = parse_finite(args["radius_km"], "radius_km")
    except ValidationError as exc:
        raise ValidationError(f'Invalid "lat", "lon", or "radius_km" parameters: {exc}') from exc
    if radius_km < 0:
        raise ValidationError('"radius_km" must not be negative.')
    return RadiusSelector(center=center, radius_km=radius_km)


def build_query(
    table: str,
    prediction_column: str,
    ts: datetime,
    selector: Selector,
    limit: int = MAX_RESULTS,
) -> Tuple[str, List[QueryParam]]:
    params = [QueryParam("ts", "TIMESTAMP", ts)]
    if isinstance(selector, BBox):
        predicate = (
            "lat_cell BETWEEN @minLat AND @maxLat\n"
            "        AND lon_cell BETWEEN @minLng AND @maxLng"
        )
        params += [
            QueryParam("minLat", "FLOAT64", selector.min_lat),
            QueryParam("maxLat", "FLOAT64", selector.max_lat),
            QueryParam("minLng", "FLOAT64", selector.min_lng),
            QueryParam("maxLng", "FLOAT64", selector.max_lng),
        ]
    else:
        # ST_DWITHIN on GEOGRAPHY values measures geodesic metres.
        predicate = "ST_DWITHIN(ST_GEOGPOINT(lon_cell, lat_cell), ST_GEOGPOINT(@lon, @lat), @radius_m)"
        params += [
            QueryParam("lat", "FLOAT64", selector.center.lat),
            QueryParam("lon", "FLOAT64", selector.center.lon),
            QueryParam("radius_m", "FLOAT64", selector.radius_m),
        ]

    sql = (
        f"SELECT lat_cell, lon_cell, {prediction_column} AS pm25_pred\n"
        f"FROM {table}\n"
        f"WHERE ts_utc = @ts\n"
        f"        AND {predicate}\n"
        f"LIMIT {int(limit)}"
    )
    return sql, params


class BigQueryPredictionStore:
    available = True

    def __init__(self, client: Any, table: str, prediction_column: str, location: str = "US") -> None:
        self.client = client
        self.table = table
        self.prediction_column = prediction_column
        self.location = location

    def run(self, sql: str, params: Sequence[QueryParam]) -> Iterable[Mapping[str, Any]]:
        job_config = bigquery.QueryJobConfig(
            query_parameters=[bigquery.ScalarQueryParameter(p.name, p.type_, p.value) for p in params]
        )
        try:
            return list(self.client.query(sql, job_config=job_config, location=self.location).result())
        except GoogleAPIError as exc:
            logger.exception("BigQuery query failed")
            raise UpstreamError(
                UpstreamFailure(
                    kind=FailureKind.HTTP_ERROR,
                    message="Failed to execute query on BigQuery.",
                    status=getattr(exc, "code", None),
                    details=str(exc),
                )
            ) from exc
        except (GoogleAuthError, requests.RequestException, FutureTimeoutError) as exc:
            logger.exception("BigQuery query did not complete")
            raise UpstreamError(
                UpstreamFailure(
                    kind=FailureKind.TRANSPORT_ERROR,
                    message="Failed to execute query on BigQuery.",
                    details=str(exc) or type(exc).__name__,
                )
            ) from exc


@dataclass(frozen=True)
class UnavailablePredictionStore:
    reason: str
    available = False

    @property
    def failure(self) -> UpstreamFailure:
        return UpstreamFailure(
            kind=FailureKind.NOT_CONFIGURED,
            message="Server is not configured to connect to BigQuery.",
            details=self.reason,
        )


PredictionStore = Union[BigQueryPredictionStore, UnavailablePredictionStore]


def build_prediction_store(settings: Settings) -> PredictionStore:
    if not settings.prediction_store_configured:
        logger.warning(
            "BigQuery environment variables (BQ_PROJECT_ID, BQ_DATASET, BQ_PRED_TABLE) are not fully set; "
            "predictions are unavailable"
        )
        return UnavailablePredictionStore("BQ_PROJECT_ID, BQ_DATASET and BQ_PRED_TABLE must all be set.")
    try:
        client = bigquery.Client(project=settings.bq_project_id)
    except (GoogleAuthError, GoogleAPIError) as exc:
        logger.error("Failed to initialize BigQuery client: %s", exc)
        return UnavailablePredictionStore(f"BigQuery client initialization failed: {exc}")
    return BigQueryPredictionStore(
        client,
        table=settings.prediction_table,
        prediction_column=settings.bq_prediction_column,
        location=settings.bq_location,
    )


def rows_to_feature_collection(rows: Iterable[Mapping[str, Any]], limit: int = MAX_RESULTS) -> Dict[str, Any]:
    features = []
    for row in rows:
        if len(features) >= limit:
            break
        if row["pm25_pred"] is None:
            continue
        point = PredictionPoint(
            cell_lat=float(row["lat_cell"]),
            cell_lon=float(row["lon_cell"]),
            pm25=float(row["pm25_pred"]),
        )
        features.append(point.to_feature())
    return {"type": "FeatureCollection", "features": features}


def query_predictions(store: PredictionStore, ts: datetime, selector: Selector) -> Dict[str, Any]:
    """Run the spatial query and return a GeoJSON FeatureCollection of at most ``MAX_RESULTS`` points."""
    if isinstance(store, UnavailablePredictionStore):
        raise UpstreamError(store.failure)
    sql, params = build_query(store.table, store.prediction_column, ts, selector)
    logger.debug("Prediction query %s with %s", sql, params)
    return rows_to_feature_collection(store.run(sql, params))


__all__ = [
    "BigQueryPredictionStore",
    "MAX_RESULTS",
    "PredictionStore",
    "QueryParam",
    "RadiusSelector",
    "UnavailablePredictionStore",
    "build_prediction_store",
    "build_query",
    "parse_selector",
    "parse_timestamp",
    "query_predictions",
    "rows_to_feature_collection",
]
