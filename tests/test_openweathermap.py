from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import aiohttp
import pytest

from snowsense.config import SnowSenseConfig
from snowsense.exceptions import (
    ForecastAuthError,
    ForecastPayloadError,
    ForecastRateLimitError,
    ForecastTransportError,
    LocationNotFoundError,
    SnowSenseError,
)
from snowsense.openweathermap import (
    OpenWeatherMapClient,
    is_lat_long,
    is_zip_code,
    parse_forecast,
    report_from_openweathermap,
)


def _entry(dt: int, condition: int, temp: float = 30.0) -> dict[str, Any]:
    return {"dt": dt, "temp": temp, "weather": [{"id": condition, "main": "x"}]}


_ONECALL = {
    "lat": 40.7143,
    "lon": -74.006,
    "current": _entry(1670879317, 800, 35.24),
    "hourly": [_entry(1670878800, 500), _entry(1670882400, 601, 28.0)],
}


class _FakeResponse:
    def __init__(self, status: int, body: Any) -> None:
        self.status = status
        self._body = body if isinstance(body, str) else json.dumps(body)

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    async def text(self) -> str:
        return self._body


class _FakeSession:
    def __init__(self, routes: Mapping[str, tuple[int, Any]]) -> None:
        self._routes = routes
        self.requests: list[tuple[str, dict[str, Any]]] = []

    def get(self, url: str, params: dict[str, Any] | None = None) -> _FakeResponse:
        self.requests.append((url, dict(params or {})))
        for suffix, (status, body) in self._routes.items():
            if url.endswith(suffix):
                return _FakeResponse(status, body)
        return _FakeResponse(404, {"cod": "404", "message": "not found"})


class _UndecodableResponse(_FakeResponse):
    async def text(self) -> str:
        raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")


class _UndecodableSession:
    def get(self, url: str, params: dict[str, Any] | None = None) -> _FakeResponse:
        return _UndecodableResponse(200, "")


class _BrokenSession:
    def get(self, url: str, params: dict[str, Any] | None = None) -> _FakeResponse:
        raise aiohttp.ClientConnectionError("connection refused")


def _client(session: Any, **config: Any) -> OpenWeatherMapClient:
    config.setdefault("api_key", "secret-key")
    return OpenWeatherMapClient(SnowSenseConfig(**config), session=session)


# ------------------------------------------------------------------
# Parsing
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    ("condition", "snow", "precip"),
    [(200, False, True), (500, False, True), (600, True, True), (622, True, True), (701, False, False), (800, False, False)],
)
def test_condition_mapping(condition: int, snow: bool, precip: bool) -> None:
    report = report_from_openweathermap(_entry(1670879317, condition))

    assert report.has_snow is snow
    assert report.has_precip is precip


def test_report_timestamp_in_millis() -> None:
    report = report_from_openweathermap(_entry(1670879317, 600, 12.5))

    assert report.timestamp_millis == 1670879317000
    assert report.temperature == 12.5


def test_first_condition_with_id_is_used() -> None:
    entry = {"dt": 1670879317, "temp": 30.0, "weather": [{"main": "no id"}, {"id": 601}, {"id": 800}]}

    assert report_from_openweathermap(entry).has_snow is True


def test_parse_forecast() -> None:
    forecast = parse_forecast(_ONECALL)

    assert forecast.current.has_snow is False
    assert [h.has_snow for h in forecast.hourly] == [False, True]
    assert forecast.hourly[0].has_precip is True


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"hourly": []},
        {"current": _entry(1, 800)},
        {"current": {"dt": 1, "temp": 1.0}, "hourly": []},
        {"current": {"dt": 1, "weather": [{"id": 800}]}, "hourly": []},
    ],
)
def test_malformed_payload(payload: Any) -> None:
    with pytest.raises(ForecastPayloadError):
        parse_forecast(payload)


def test_location_patterns() -> None:
    assert is_lat_long("40.7143,-74.006")
    assert is_lat_long("40, -74")
    assert not is_lat_long("New York,NY,US")
    assert is_zip_code("10001")
    assert not is_zip_code("1000")


# ------------------------------------------------------------------
# Client
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_fetch_with_lat_long_skips_geocoding() -> None:
    session = _FakeSession({"/data/3.0/onecall": (200, _ONECALL)})
    client = _client(session, location="40.7143,-74.006", units="metric")

    forecast = await client.fetch_forecast()

    assert len(session.requests) == 1
    url, params = session.requests[0]
    assert url == "https://api.openweathermap.org/data/3.0/onecall"
    assert params["lat"] == 40.7143
    assert params["lon"] == -74.006
    assert params["units"] == "metric"
    assert params["exclude"] == "minutely,alerts,daily"
    assert forecast.hourly[1].has_snow is True


@pytest.mark.asyncio
async def test_zip_code_is_geocoded_once() -> None:
    session = _FakeSession(
        {
            "/geo/1.0/zip": (200, {"zip": "10001", "name": "New York", "lat": 40.75, "lon": -73.99}),
            "/data/2.5/onecall": (200, _ONECALL),
        }
    )
    client = _client(session, location="10001", api_version="2.5")

    await client.fetch_forecast()
    await client.fetch_forecast()

    urls = [url for url, _ in session.requests]
    assert urls.count("https://api.openweathermap.org/geo/1.0/zip") == 1
    assert client.coordinates == (40.75, -73.99)


@pytest.mark.asyncio
async def test_city_is_geocoded() -> None:
    session = _FakeSession(
        {
            "/geo/1.0/direct": (200, [{"name": "Springfield", "lat": 39.92, "lon": -83.81}]),
            "/data/3.0/onecall": (200, _ONECALL),
        }
    )
    client = _client(session, location="Springfield,OH,US")

    await client.fetch_forecast()

    assert session.requests[0][1]["q"] == "Springfield,OH,US"
    assert client.coordinates == (39.92, -83.81)


@pytest.mark.asyncio
async def test_unknown_city_raises_location_not_found() -> None:
    session = _FakeSession({"/geo/1.0/direct": (200, [])})

    with pytest.raises(LocationNotFoundError):
        await _client(session, location="Nowhere,ZZ").fetch_forecast()


@pytest.mark.asyncio
async def test_unknown_zip_raises_location_not_found() -> None:
    session = _FakeSession({})

    with pytest.raises(LocationNotFoundError):
        await _client(session, location="99999").fetch_forecast()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "error"),
    [(401, ForecastAuthError), (403, ForecastAuthError), (429, ForecastRateLimitError), (500, ForecastTransportError)],
)
async def test_http_errors_are_typed(status: int, error: type[Exception]) -> None:
    session = _FakeSession({"/data/3.0/onecall": (status, {"cod": status, "message": "nope"})})

    with pytest.raises(error) as exc_info:
        await _client(session, location="0,0").fetch_forecast()

    assert getattr(exc_info.value, "status_code") == status


@pytest.mark.asyncio
async def test_invalid_json_raises_payload_error() -> None:
    session = _FakeSession({"/data/3.0/onecall": (200, "<html>oops</html>")})

    with pytest.raises(ForecastPayloadError):
        await _client(session, location="0,0").fetch_forecast()


@pytest.mark.asyncio
async def test_network_error_raises_transport_error() -> None:
    with pytest.raises(ForecastTransportError, match="connection refused"):
        await _client(_BrokenSession(), location="0,0").fetch_forecast()


@pytest.mark.asyncio
async def test_api_key_not_in_error_message() -> None:
    session = _FakeSession({"/data/3.0/onecall": (500, "server error")})

    with pytest.raises(ForecastTransportError) as exc_info:
        await _client(session, location="0,0").fetch_forecast()

    assert "secret-key" not in str(exc_info.value)


@pytest.mark.asyncio
async def test_client_requires_session() -> None:
    client = OpenWeatherMapClient(SnowSenseConfig(api_key="k", location="0,0"))

    with pytest.raises(SnowSenseError, match="not initialized"):
        await client.fetch_forecast()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reply",
    [
        {"zip": "12345", "lat": 40.0},
        {"zip": "12345", "lat": "north", "lon": -74.0},
        {"zip": "12345", "lat": None, "lon": -74.0},
    ],
)
async def test_malformed_zip_reply_raises_payload_error(reply: dict[str, Any]) -> None:
    session = _FakeSession({"/geo/1.0/zip": (200, reply)})

    with pytest.raises(ForecastPayloadError, match="12345"):
        await _client(session, location="12345").fetch_forecast()


@pytest.mark.asyncio
async def test_malformed_city_reply_raises_payload_error() -> None:
    session = _FakeSession({"/geo/1.0/direct": (200, [{"name": "Denver", "lon": -104.9}])})

    with pytest.raises(ForecastPayloadError, match="Denver"):
        await _client(session, location="Denver,CO,US").fetch_forecast()


@pytest.mark.asyncio
async def test_undecodable_body_raises_payload_error() -> None:
    with pytest.raises(ForecastPayloadError) as exc_info:
        await _client(_UndecodableSession(), location="0,0").fetch_forecast()

    assert exc_info.value.status_code == 200
