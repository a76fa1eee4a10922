import pytest

from airmap.config import FailurePolicy, Settings
from airmap.entities import FailureKind, SatelliteColumnReading, StationObservation, UpstreamFailure
from airmap.predictions import MAX_RESULTS

from conftest import HTTP_500, FakeSatellite, FakeStations, FakeWeather, airnow_record

FRESNO = "lat=36.7378&lon=-119.7871"


def _station(parameter, aqi):
    return StationObservation.from_airnow(airnow_record(parameter=parameter, aqi=aqi))


class RowsStore:
    available = True
    table = "`proj.air.grid`"
    prediction_column = "pm25_pred"

    def __init__(self, rows):
        self.rows = rows
        self.calls = 0

    def run(self, sql, params):
        self.calls += 1
        return self.rows


def test_missing_coordinates_is_bad_request(make_client):
    client = make_client()

    for path in ("/api/airnow", "/api/weather", "/api/tempo", "/api/location"):
        resp = client.get(f"{path}?lat=36.7")
        assert resp.status_code == 400
        assert resp.get_json() == {"error": 'Missing "lat" or "lon" parameters.'}


def test_out_of_range_coordinates_are_bad_request(make_client):
    resp = make_client().get("/api/weather?lat=123&lon=-119")

    assert resp.status_code == 400


def test_airnow_returns_averaged_observations(make_client):
    stations = FakeStations({50: [_station("PM2.5", 20), _station("PM2.5", 31), _station("O3", 12)]})
    client = make_client(stations=stations)

    resp = client.get(f"/api/airnow?{FRESNO}")

    assert resp.status_code == 200
    assert resp.headers["Cache-Control"] == "public, max-age=300"
    body = resp.get_json()
    assert [(o["ParameterName"], o["AQI"], o["ReportingArea"]) for o in body] == [
        ("PM2.5", 26, "Average of 2 stations"),
        ("O3", 12, "Average of 1 stations"),
    ]
    assert stations.calls == [10, 25, 50]


def test_airnow_distance_pins_single_radius(make_client):
    stations = FakeStations()
    client = make_client(stations=stations)

    resp = client.get(f"/api/airnow?{FRESNO}&distance=40")

    assert resp.status_code == 200
    assert resp.get_json() == []
    assert stations.calls == [40.0]


def test_airnow_upstream_failure_is_500_with_details(make_client):
    client = make_client(stations=FakeStations(failure=HTTP_500))

    resp = client.get(f"/api/airnow?{FRESNO}")

    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Failed to fetch AirNow data.", "details": "down", "upstream_status": 503}


def test_airnow_degrade_policy_serves_empty_list(make_client):
    client = make_client(
        stations=FakeStations(failure=UpstreamFailure(FailureKind.NOT_CONFIGURED, "no key")),
        settings=Settings(station_policy=FailurePolicy.DEGRADE),
    )

    resp = client.get(f"/api/airnow?{FRESNO}")

    assert resp.status_code == 200
    assert resp.get_json() == []
    assert resp.headers["X-Data-Provenance"] == "not_configured"


def test_weather_passes_upstream_body_through(make_client):
    payload = {"temperature": {"degrees": 20}, "extra": {"kept": True}}
    client = make_client(weather=FakeWeather(payload))

    resp = client.get(f"/api/weather?{FRESNO}")

    assert resp.status_code == 200
    assert resp.get_json() == payload
    assert resp.headers["Cache-Control"] == "public, max-age=300"


def test_weather_not_configured_is_500(make_client):
    failure = UpstreamFailure(FailureKind.NOT_CONFIGURED, "Server is not configured with a Maps API key.")
    client = make_client(weather=FakeWeather(failure=failure))

    resp = client.get(f"/api/weather?{FRESNO}")

    assert resp.status_code == 500
    assert resp.get_json()["error"] == "Server is not configured with a Maps API key."


def test_tempo_reading_has_long_cache_lifetime(make_client):
    reading = SatelliteColumnReading(value="N/A", source="error: 502")
    client = make_client(satellite=FakeSatellite(reading))

    resp = client.get(f"/api/tempo?{FRESNO}")

    assert resp.status_code == 200
    assert resp.get_json() == {"value": "N/A", "source": "error: 502"}
    assert resp.headers["Cache-Control"] == "public, max-age=3600"


def test_tempo_failure_is_500(make_client):
    client = make_client(satellite=FakeSatellite(failure=HTTP_500))

    resp = client.get(f"/api/tempo?{FRESNO}")

    assert resp.status_code == 500


def test_location_outside_region(make_client):
    stations = FakeStations()
    weather = FakeWeather()
    client = make_client(stations=stations, weather=weather)

    resp = client.get("/api/location?lat=30&lon=-40&generation=7")

    body = resp.get_json()
    assert resp.status_code == 200
    assert body["status"] == "outside_region"
    assert body["generation"] == "7"
    assert stations.calls == [] and weather.calls == []


def test_location_inside_region(make_client):
    resp = make_client().get(f"/api/location?{FRESNO}")

    body = resp.get_json()
    assert body["status"] == "ok"
    assert body["air_quality"]["status"] == "empty"
    assert body["weather"]["status"] == "ok"
    assert body["satellite"]["data"]["source"] == "live"


def test_predictions_require_timestamp(make_client):
    resp = make_client().get("/api/predictions?bbox=-122,36,-120,38")

    assert resp.status_code == 400
    assert resp.get_json() == {"error": 'Missing timestamp parameter "ts".'}


def test_predictions_reject_both_selectors_before_querying(make_client):
    store = RowsStore([])
    client = make_client(predictions=store)

    resp = client.get("/api/predictions?ts=2024-07-01T12:00:00Z&bbox=-122,36,-120,38&lat=36&lon=-119&radius_km=5")

    assert resp.status_code == 400
    assert store.calls == 0


def test_predictions_reject_neither_selector(make_client):
    store = RowsStore([])

    resp = make_client(predictions=store).get("/api/predictions?ts=2024-07-01T12:00:00Z")

    assert resp.status_code == 400
    assert store.calls == 0


def test_predictions_reject_malformed_bbox(make_client):
    resp = make_client(predictions=RowsStore([])).get("/api/predictions?ts=2024-07-01T12:00:00Z&bbox=a,b,c,d")

    assert resp.status_code == 400
    assert resp.get_json() == {"error": 'Invalid "bbox" parameter format.'}


def test_predictions_return_capped_geojson(make_client):
    rows = [{"lat_cell": 36.0, "lon_cell": -119.0, "pm25_pred": 8.0}] * (MAX_RESULTS + 5)
    client = make_client(predictions=RowsStore(rows))

    resp = client.get("/api/predictions?ts=2024-07-01T12:00:00Z&bbox=-125,32,-114,42")

    assert resp.status_code == 200
    assert resp.mimetype == "application/geo+json"
    assert resp.headers["Cache-Control"] == "public, max-age=300"
    body = resp.get_json(force=True)
    assert body["type"] == "FeatureCollection"
    assert len(body["features"]) == MAX_RESULTS
    assert body["features"][0]["properties"] == {"pm25_pred": 8.0}


def test_predictions_without_store_is_500(make_client):
    resp = make_client().get("/api/predictions?ts=2024-07-01T12:00:00Z&lat=36&lon=-119&radius_km=5")

    assert resp.status_code == 500
    assert resp.get_json()["error"] == "Server is not configured to connect to BigQuery."


def test_predictions_expired_credentials_is_json_500(make_client):
    from google.auth.exceptions import RefreshError

    from airmap.predictions import BigQueryPredictionStore

    class ExpiredCredentialsClient:
        def query(self, sql, job_config=None, location=None):
            raise RefreshError("Reauthentication is needed")

    store = BigQueryPredictionStore(ExpiredCredentialsClient(), "`proj.air.grid`", "pm25_pred")
    client = make_client(predictions=store)

    resp = client.get("/api/predictions?ts=2024-07-01T12:00:00Z&bbox=-122,36,-120,38")

    assert resp.status_code == 500
    assert resp.get_json() == {
        "error": "Failed to execute query on BigQuery.",
        "details": "Reauthentication is needed",
    }


def test_create_app_rejects_settings_alongside_services(make_services):
    from app import create_app

    with pytest.raises(ValueError):
        create_app(settings=Settings(), services=make_services())
