"""Throttled, single-flight access to the upstream forecast."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Protocol

from snowsense.exceptions import FetchLockedError
from snowsense.models import SnowForecast

_logger = logging.getLogger(__name__)

DEFAULT_THROTTLE_SECONDS = 15 * 60.0
DEFAULT_LOCK_TIMEOUT = 2.0


class ForecastProvider(Protocol):
    """Structural interface for anything that can fetch a forecast.

    Implemented by :class:`~snowsense.openweathermap.OpenWeatherMapClient`;
    tests pass simple doubles.
    """

    async def fetch_forecast(self) -> SnowForecast:
        ...


class ForecastCache:
    """Rate-limit and serialize calls to a :class:`ForecastProvider`.

    At most one upstream fetch is in flight. Callers arriving while a
    fetch runs wait up to *lock_timeout* seconds for it and then receive
    the freshly cached result; if the lock is still held after that they
    get :class:`~snowsense.exceptions.FetchLockedError`.

    Parameters
    ----------
    provider : ForecastProvider
        Upstream forecast source.
    throttle_seconds : float
        A cached forecast younger than this is returned without a fetch.
    lock_timeout : float
        Seconds to wait for a concurrent fetch.
    clock : callable
        Monotonic clock in seconds.
    """

    def __init__(
        self,
        provider: ForecastProvider,
        *,
        throttle_seconds: float = DEFAULT_THROTTLE_SECONDS,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._throttle_seconds = throttle_seconds
        self._lock_timeout = lock_timeout
        self._clock = clock
        self._lock = asyncio.Lock()
        self._forecast: SnowForecast | None = None
        self._fetched_at: float | None = None

    @property
    def cached_at(self) -> float | None:
        """Clock reading of the last successful fetch."""
        return self._fetched_at

    @property
    def is_locked(self) -> bool:
        return self._lock.locked()

    def invalidate(self) -> None:
        """Drop the cached forecast so the next call fetches."""
        self._forecast = None
        self._fetched_at = None

    def _fresh(self) -> SnowForecast | None:
        if self._forecast is None or self._fetched_at is None:
            return None
        if self._clock() - self._fetched_at >= self._throttle_seconds:
            return None
        return self._forecast

    async def get_forecast(self) -> SnowForecast:
        """Return the cached forecast or fetch a new one.

        Raises
        ------
        FetchLockedError
            Another fetch held the lock for longer than ``lock_timeout``.
        ForecastError
            The provider failed. Nothing is cached in that case.
        """
        cached = self._fresh()
        if cached is not None:
            _logger.debug("Using cached weather")
            return cached

        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=self._lock_timeout)
        except TimeoutError as exc:
            raise FetchLockedError() from exc

        try:
            # A fetch we waited on may have just filled the cache.
            cached = self._fresh()
            if cached is not None:
                _logger.debug("Using weather fetched by a concurrent caller")
                return cached

            _logger.debug("Fetching new weather")
            forecast = await self._provider.fetch_forecast()
            self._forecast = forecast
            self._fetched_at = self._clock()
            hours = ",".join(str(hour.has_snow) for hour in forecast.hourly[:4])
            _logger.debug("Cur and 3 hours snow: %s", hours)
            return forecast
        finally:
            self._lock.release()
