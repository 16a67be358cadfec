"""snowsense - Decide whether a location "is snowy" from forecast and recent history."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pysnowsense")
except PackageNotFoundError:
    __version__ = "0+local"
from snowsense.config import HISTORY_FILE, SnowSenseConfig
from snowsense.exceptions import (
    FetchLockedError,
    ForecastAuthError,
    ForecastError,
    ForecastPayloadError,
    ForecastRateLimitError,
    ForecastTransportError,
    LocationNotFoundError,
    SnowSenseConfigError,
    SnowSenseError,
)
from snowsense.forecast_cache import ForecastCache, ForecastProvider
from snowsense.history import HistoryStore, bucket_reports, read_history, write_history
from snowsense.models import DeviceConfig, SnowForecast, SnowReport, SnowWatchValues
from snowsense.monitor import SnowSenseMonitor
from snowsense.openweathermap import OpenWeatherMapClient
from snowsense.watch import SnowWatch
from snowsense.window import SnowyRun, find_snowy_run

__all__ = [
    "__version__",
    "DeviceConfig",
    "FetchLockedError",
    "ForecastAuthError",
    "ForecastCache",
    "ForecastError",
    "ForecastPayloadError",
    "ForecastProvider",
    "ForecastRateLimitError",
    "ForecastTransportError",
    "HISTORY_FILE",
    "HistoryStore",
    "LocationNotFoundError",
    "OpenWeatherMapClient",
    "SnowForecast",
    "SnowReport",
    "SnowSenseConfig",
    "SnowSenseConfigError",
    "SnowSenseError",
    "SnowSenseMonitor",
    "SnowWatch",
    "SnowWatchValues",
    "SnowyRun",
    "bucket_reports",
    "find_snowy_run",
    "read_history",
    "write_history",
]
