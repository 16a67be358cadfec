"""OpenWeatherMap forecast client.

Resolves the configured location to coordinates once, then fetches the
One Call forecast and reduces every hour to a :class:`SnowReport`.
Condition ids follow https://openweathermap.org/weather-conditions:
``6xx`` is snow, anything from ``2xx`` through ``6xx`` is precipitation.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from typing import Any

import aiohttp

from snowsense._redact import redact_params
from snowsense.config import SnowSenseConfig
from snowsense.exceptions import (
    ForecastAuthError,
    ForecastPayloadError,
    ForecastRateLimitError,
    ForecastTransportError,
    LocationNotFoundError,
    SnowSenseError,
)
from snowsense.models import SnowForecast, SnowReport, to_epoch_millis

_logger = logging.getLogger(__name__)

BASE_URL = "https://api.openweathermap.org"
REQUEST_TIMEOUT_SECONDS = 30.0

_LAT_LONG_RE = re.compile(r"^(-?\d+(\.\d+)?),\s*(-?\d+(\.\d+)?)$")
_ZIP_CODE_RE = re.compile(r"^\d{5}$")


def is_lat_long(location: str) -> bool:
    return _LAT_LONG_RE.match(location) is not None


def is_zip_code(location: str) -> bool:
    return _ZIP_CODE_RE.match(location) is not None


def _condition_id(entry: Mapping[str, Any]) -> int:
    weather = entry.get("weather")
    if not isinstance(weather, list):
        raise ForecastPayloadError("Forecast entry has no weather conditions")
    for condition in weather:
        if isinstance(condition, Mapping) and condition.get("id"):
            try:
                return int(condition["id"])
            except (TypeError, ValueError) as exc:
                raise ForecastPayloadError(f"Invalid condition id {condition['id']!r}") from exc
    raise ForecastPayloadError("Forecast entry has no condition id")


def report_from_openweathermap(entry: Any) -> SnowReport:
    """Reduce one ``current`` or ``hourly`` entry to a snow report."""
    if not isinstance(entry, Mapping):
        raise ForecastPayloadError(f"Expected forecast entry object, got {type(entry).__name__}")
    condition = _condition_id(entry)
    if "dt" not in entry or "temp" not in entry:
        raise ForecastPayloadError("Forecast entry is missing dt or temp")
    try:
        return SnowReport(
            timestamp_millis=to_epoch_millis(entry["dt"]),
            temperature=entry["temp"],
            has_snow=600 <= condition < 700,
            has_precip=200 <= condition < 700,
        )
    except ValueError as exc:
        raise ForecastPayloadError(f"Invalid forecast entry: {exc}") from exc


def _coordinates_of(result: Any, location: str) -> tuple[float, float]:
    try:
        return float(result["lat"]), float(result["lon"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ForecastPayloadError(f"Unexpected geocoding result for ({location}): {exc!r}") from exc


def parse_forecast(data: Any) -> SnowForecast:
    """Convert a One Call response into a :class:`SnowForecast`."""
    if not isinstance(data, Mapping) or "current" not in data:
        raise ForecastPayloadError("Forecast response has no 'current' section")
    hourly = data.get("hourly")
    if not isinstance(hourly, list):
        raise ForecastPayloadError("Forecast response has no 'hourly' section")
    return SnowForecast(
        current=report_from_openweathermap(data["current"]),
        hourly=[report_from_openweathermap(entry) for entry in hourly],
    )


class OpenWeatherMapClient:
    """Async forecast provider backed by the OpenWeatherMap APIs.

    Usage::

        async with OpenWeatherMapClient(config) as client:
            forecast = await client.fetch_forecast()

    An externally managed ``aiohttp.ClientSession`` may be passed in, in
    which case the client never closes it.
    """

    def __init__(
        self,
        config: SnowSenseConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        base_url: str = BASE_URL,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._base_url = base_url.rstrip("/")
        self._coordinates: tuple[float, float] | None = None

    async def __aenter__(self) -> OpenWeatherMapClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_SECONDS),
            )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    @property
    def coordinates(self) -> tuple[float, float] | None:
        """Resolved ``(lat, lon)``, once known."""
        return self._coordinates

    def _require_session(self) -> aiohttp.ClientSession:
        if self._http_session is None:
            raise SnowSenseError("Client not initialized. Use 'async with OpenWeatherMapClient(...) as client:'")
        return self._http_session

    async def _get_json(self, path: str, params: Mapping[str, Any]) -> Any:
        http = self._require_session()
        url = f"{self._base_url}{path}"
        _logger.debug("GET %s params=%s", url, redact_params(params))

        try:
            async with http.get(url, params=dict(params)) as resp:
                status = resp.status
                text = await resp.text()
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise ForecastTransportError(f"Request to {url} failed: {exc!r}", url=url) from exc
        except UnicodeDecodeError as exc:
            raise ForecastPayloadError(f"Undecodable response body from {url}", status_code=status, url=url) from exc

        if status in (401, 403):
            raise ForecastAuthError(
                f"HTTP {status} from {url}: check the API key",
                status_code=status,
                url=url,
            )
        if status == 429:
            raise ForecastRateLimitError(
                f"HTTP 429 from {url}: API call limit reached",
                status_code=status,
                url=url,
            )
        if status != 200:
            raise ForecastTransportError(
                f"HTTP {status} from {url}: {text[:200]}",
                status_code=status,
                url=url,
            )

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ForecastPayloadError(f"Invalid JSON from {url}: {text[:200]}", url=url) from exc

    async def _geocode(self, path: str, params: dict[str, Any], location: str) -> Any:
        try:
            return await self._get_json(path, params)
        except ForecastTransportError as exc:
            if exc.status_code == 404:
                raise LocationNotFoundError(
                    f"No location found for ({location})",
                    status_code=404,
                    url=exc.url,
                ) from exc
            raise

    async def _location_from_zip(self, zip_code: str) -> tuple[float, float]:
        data = await self._geocode(
            "/geo/1.0/zip",
            {"zip": zip_code, "limit": 1, "appid": self._config.api_key},
            zip_code,
        )
        if not isinstance(data, Mapping) or data.get("cod") or "lat" not in data:
            raise LocationNotFoundError(f"No location found for zip code ({zip_code})")
        return _coordinates_of(data, zip_code)

    async def _location_from_city(self, city: str) -> tuple[float, float]:
        data = await self._geocode(
            "/geo/1.0/direct",
            {"q": city, "limit": 1, "appid": self._config.api_key},
            city,
        )
        if not isinstance(data, list) or not data:
            raise LocationNotFoundError(f"No location found for city ({city})")
        return _coordinates_of(data[0], city)

    async def resolve_location(self) -> tuple[float, float]:
        """Convert the configured location to ``(lat, lon)``, once."""
        if self._coordinates is not None:
            return self._coordinates

        location = self._config.location.strip()
        if is_lat_long(location):
            lat, lon = (float(part) for part in location.split(","))
            coordinates = (lat, lon)
        elif is_zip_code(location):
            coordinates = await self._location_from_zip(location)
        else:
            coordinates = await self._location_from_city(location)

        _logger.debug("Resolved location %r to %s", location, coordinates)
        self._coordinates = coordinates
        return coordinates

    async def fetch_forecast(self) -> SnowForecast:
        """Fetch current and hourly conditions for the configured location."""
        lat, lon = await self.resolve_location()
        data = await self._get_json(
            f"/data/{self._config.api_version}/onecall",
            {
                "lat": lat,
                "lon": lon,
                "appid": self._config.api_key,
                "units": self._config.units,
                "exclude": "minutely,alerts,daily",
            },
        )
        return parse_forecast(data)
