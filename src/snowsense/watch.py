"""Snow prediction engine.

:class:`SnowWatch` combines the live hourly forecast with the recent
observation history to decide, per sensor, whether a location "is snowy".
One instance watches one location.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import aiohttp

from snowsense.config import SnowSenseConfig
from snowsense.exceptions import FetchLockedError, SnowSenseError
from snowsense.forecast_cache import ForecastCache, ForecastProvider
from snowsense.history import HistoryStore
from snowsense.models import (
    MILLIS_PER_HOUR,
    DeviceConfig,
    SnowForecast,
    SnowReport,
    SnowWatchValues,
    epoch_millis,
)
from snowsense.openweathermap import OpenWeatherMapClient
from snowsense.window import find_snowy_run

_logger = logging.getLogger(__name__)

# Window shown on either side of now in the debug report table.
_DEBUG_WINDOW_MILLIS = 6 * MILLIS_PER_HOUR


class SnowWatch:
    """Snow prediction engine for a single location.

    Parameters
    ----------
    config : SnowSenseConfig
        Classification thresholds, throttle and storage settings.
    provider : ForecastProvider
        Upstream forecast source.
    history : HistoryStore or None
        Observation history. Defaults to a store at ``config.history_path``.
    clock : callable
        Returns the current epoch time in milliseconds.
    monotonic : callable
        Monotonic clock in seconds, used for the fetch throttle.
    """

    def __init__(
        self,
        config: SnowSenseConfig,
        provider: ForecastProvider,
        *,
        history: HistoryStore | None = None,
        clock: Callable[[], int] = epoch_millis,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._clock = clock
        self._forecasts = ForecastCache(
            provider,
            throttle_seconds=config.api_throttle_seconds,
            lock_timeout=config.lock_timeout,
            clock=monotonic,
        )
        self._history = history if history is not None else HistoryStore(config.history_path, clock=clock)
        self._current: SnowReport | None = None
        self._future: list[SnowReport] = []

    @classmethod
    def from_config(
        cls,
        config: SnowSenseConfig,
        session: aiohttp.ClientSession,
    ) -> SnowWatch:
        """Build an engine backed by OpenWeatherMap over *session*."""
        return cls(config, OpenWeatherMapClient(config, session=session))

    @property
    def config(self) -> SnowSenseConfig:
        return self._config

    @property
    def is_ready(self) -> bool:
        """Whether at least one forecast has been absorbed."""
        return self._current is not None

    @property
    def current_report(self) -> SnowReport | None:
        return self._current

    @property
    def future_reports(self) -> list[SnowReport]:
        return list(self._future)

    @property
    def past_reports(self) -> list[SnowReport]:
        return self._history.reports

    def is_snowy_enough(self, report: SnowReport) -> bool:
        """Classify *report* as snowy.

        Snow always counts. Precipitation counts when it falls below
        ``cold_precipitation_threshold``. With ``only_when_cold`` the hour
        must also be at or below ``cold_temperature_threshold``.
        """
        config = self._config
        cold_precip = (
            config.cold_precipitation_threshold is not None
            and report.temperature < config.cold_precipitation_threshold
            and report.has_precip
        )
        snowy = report.has_snow or cold_precip
        if config.only_when_cold and config.cold_temperature_threshold is not None:
            return snowy and report.temperature <= config.cold_temperature_threshold
        return snowy

    async def update_prediction_status(self) -> None:
        """Pull the forecast and absorb it.

        On failure the error is logged and re-raised, and the previous
        current/future/history state is kept as-is.
        """
        try:
            forecast = await self._forecasts.get_forecast()
        except FetchLockedError:
            _logger.debug("Forecast fetch already in progress; keeping previous state")
            raise
        except SnowSenseError as exc:
            _logger.error("Error getting updated weather: %s", exc)
            raise

        self._absorb(forecast)

        if self._config.debug:
            _logger.debug("reports %s", self._report_table())
            _logger.debug("values %s", self.get_snow_sense_values())

    def _absorb(self, forecast: SnowForecast) -> None:
        self._history.add_observation(forecast.current)
        self._current = forecast.current
        self._future = list(forecast.hourly)

    def get_snow_sense_values(self) -> SnowWatchValues:
        """Compute the snow snapshot from history, the current report and the forecast."""
        now_ms = self._clock()
        snowing_now = self._current is not None and self.is_snowy_enough(self._current)

        future = find_snowy_run(self._future, self.is_snowy_enough, now_ms=now_ms)
        past = find_snowy_run(self._history.reports, self.is_snowy_enough, now_ms=now_ms, reverse=True)

        next_snow = None if future.hours_until_start is None else max(0.0, future.hours_until_start)
        last_snow = None if past.hours_until_start is None else max(0.0, past.hours_until_start)
        if snowing_now:
            last_snow = 0.0

        return SnowWatchValues(
            snowing_now=snowing_now,
            last_snow_time=last_snow,
            past_consecutive_hours=past.consecutive_hours,
            next_snow_time=next_snow,
            future_consecutive_hours=future.consecutive_hours,
        )

    def snow_sensor_value(self, device: DeviceConfig) -> bool:
        """Evaluate one sensor's thresholds against the current snapshot."""
        values = self.get_snow_sense_values()

        enough_future_hours = (
            not values.future_consecutive_hours
            or values.future_consecutive_hours >= device.consecutive_hours_future_is_snowy
        )
        snow_soon = values.next_snow_time is not None and values.next_snow_time <= device.hours_before_snow_is_snowy
        snowed_recently = (
            values.last_snow_time is not None and values.last_snow_time <= device.hours_after_snow_is_snowy
        )

        result = values.snowing_now or (snow_soon and enough_future_hours) or snowed_recently
        if self._config.debug:
            _logger.debug("result for %s: %s", device.display_name, result)
        return result

    def _report_table(self) -> str:
        now_ms = self._clock()
        reports = [
            *(r for r in self._history.reports if now_ms - r.timestamp_millis <= _DEBUG_WINDOW_MILLIS),
            *([self._current] if self._current is not None else []),
            *(r for r in self._future if 0 <= r.timestamp_millis - now_ms <= _DEBUG_WINDOW_MILLIS),
        ]
        rows = [("ΔHour", "Snow")]
        for report in reports:
            delta = round((report.timestamp_millis - now_ms) / MILLIS_PER_HOUR, 3)
            rows.append((f"{delta}", "SNOW" if self.is_snowy_enough(report) else "no"))
        width = max(len(row[0]) for row in rows) + 1
        return "\n" + "\n".join(f"{hour.ljust(width)} {snow}" for hour, snow in rows)
