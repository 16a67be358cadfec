"""Engine configuration for snowsense."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from snowsense.exceptions import SnowSenseConfigError
from snowsense.models import DeviceConfig

HISTORY_FILE = "snowsense-history.json"
DEFAULT_LOCATION = "New York,NY,US"
DEFAULT_THROTTLE_MINUTES = 15
MIN_THROTTLE_MINUTES = 5
VALID_UNITS: frozenset[str] = frozenset({"imperial", "metric", "standard"})
VALID_API_VERSIONS: frozenset[str] = frozenset({"2.5", "3.0"})


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_float(value: str | None) -> float | None:
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise SnowSenseConfigError(f"Expected a number, got {value!r}") from exc


def sanitize_units(units: str | None) -> str:
    """Return *units* when the weather API supports it, otherwise ``imperial``."""
    if units in VALID_UNITS:
        return units
    return "imperial"


def parse_devices(raw: Any) -> tuple[DeviceConfig, ...]:
    """Validate a list of sensor configs in either camelCase or snake_case form."""
    if raw is None:
        return ()
    if not isinstance(raw, (list, tuple)):
        raise SnowSenseConfigError(f"Expected a list of sensors, got {type(raw).__name__}")
    devices: list[DeviceConfig] = []
    for item in raw:
        if isinstance(item, DeviceConfig):
            devices.append(item)
            continue
        try:
            devices.append(DeviceConfig.model_validate(item))
        except ValidationError as exc:
            raise SnowSenseConfigError(f"Invalid sensor config: {exc}") from exc
    return tuple(devices)


@dataclasses.dataclass(frozen=True)
class SnowSenseConfig:
    """Engine configuration.

    Parameters
    ----------
    api_key : str
        OpenWeatherMap API key.
    location : str
        ``"city,state,country"``, a five digit zip code, or ``"lat,lon"``.
    units : str
        ``imperial``, ``metric`` or ``standard``. Temperature thresholds
        are interpreted in these units.
    api_version : str
        One Call API version, ``"2.5"`` or ``"3.0"``.
    api_throttle_minutes : float or None
        Minimum minutes between upstream forecast calls. Defaults to 15,
        never less than 5.
    lock_timeout : float
        Seconds to wait for a concurrent forecast fetch before failing
        with :class:`~snowsense.exceptions.FetchLockedError`.
    cold_precipitation_threshold : float or None
        Treat any precipitation below this temperature as snow.
    only_when_cold : bool
        Only count an hour as snowy when it is at or below
        ``cold_temperature_threshold``.
    cold_temperature_threshold : float or None
        Upper temperature bound used by ``only_when_cold``.
    storage_path : str or None
        Directory for the observation history file. ``None`` keeps
        history in memory only.
    history_file : str
        File name of the history file inside ``storage_path``.
    debug : bool
        Emit the per-update report table at DEBUG level.
    sensors : tuple of DeviceConfig
        Sensors evaluated against this engine.
    """

    api_key: str = ""
    location: str = DEFAULT_LOCATION
    units: str = "imperial"
    api_version: str = "3.0"
    api_throttle_minutes: float | None = DEFAULT_THROTTLE_MINUTES
    lock_timeout: float = 2.0
    cold_precipitation_threshold: float | None = None
    only_when_cold: bool = False
    cold_temperature_threshold: float | None = None
    storage_path: str | None = None
    history_file: str = HISTORY_FILE
    debug: bool = False
    sensors: tuple[DeviceConfig, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "units", sanitize_units(self.units))
        if self.api_version not in VALID_API_VERSIONS:
            raise SnowSenseConfigError(
                f"api_version must be one of {sorted(VALID_API_VERSIONS)}, got {self.api_version!r}"
            )
        if self.lock_timeout <= 0:
            raise SnowSenseConfigError(f"lock_timeout must be positive, got {self.lock_timeout}")
        if not self.history_file:
            raise SnowSenseConfigError("history_file must be non-empty")

    @property
    def api_throttle_seconds(self) -> float:
        """Throttle window in seconds, with the default and floor applied."""
        minutes = self.api_throttle_minutes or DEFAULT_THROTTLE_MINUTES
        return max(minutes, MIN_THROTTLE_MINUTES) * 60.0

    @property
    def history_path(self) -> str | None:
        if not self.storage_path:
            return None
        return os.path.join(self.storage_path, self.history_file)

    @classmethod
    def from_env(cls, **overrides: Any) -> SnowSenseConfig:
        """Create configuration from ``SNOWSENSE_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "SNOWSENSE_API_KEY": "api_key",
            "SNOWSENSE_LOCATION": "location",
            "SNOWSENSE_UNITS": "units",
            "SNOWSENSE_API_VERSION": "api_version",
            "SNOWSENSE_STORAGE_PATH": "storage_path",
            "SNOWSENSE_HISTORY_FILE": "history_file",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_FLOAT_MAP = {
            "SNOWSENSE_API_THROTTLE_MINUTES": "api_throttle_minutes",
            "SNOWSENSE_LOCK_TIMEOUT": "lock_timeout",
            "SNOWSENSE_COLD_PRECIPITATION_THRESHOLD": "cold_precipitation_threshold",
            "SNOWSENSE_COLD_TEMPERATURE_THRESHOLD": "cold_temperature_threshold",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            parsed = _env_float(env.get(env_key))
            if parsed is not None and field_name not in overrides:
                config_kwargs[field_name] = parsed

        if "only_when_cold" not in overrides:
            config_kwargs["only_when_cold"] = _env_bool(env.get("SNOWSENSE_ONLY_WHEN_COLD"), False)
        if "debug" not in overrides:
            config_kwargs["debug"] = _env_bool(env.get("SNOWSENSE_DEBUG"), False)

        if "sensors" in overrides:
            overrides["sensors"] = parse_devices(overrides["sensors"])

        config_kwargs.update(overrides)
        return cls(**config_kwargs)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], **overrides: Any) -> SnowSenseConfig:
        """Create configuration from a host platform config in camelCase form.

        Unknown keys are ignored.
        """
        _KEY_MAP = {
            "apiKey": "api_key",
            "location": "location",
            "units": "units",
            "apiVersion": "api_version",
            "apiThrottleMinutes": "api_throttle_minutes",
            "lockTimeout": "lock_timeout",
            "coldPrecipitationThreshold": "cold_precipitation_threshold",
            "onlyWhenCold": "only_when_cold",
            "coldTemperatureThreshold": "cold_temperature_threshold",
            "storagePath": "storage_path",
            "historyFile": "history_file",
            "debugOn": "debug",
        }
        config_kwargs: dict[str, Any] = {}
        for key, field_name in _KEY_MAP.items():
            value = data.get(key)
            if value is not None:
                config_kwargs[field_name] = value
        if "api_version" in config_kwargs:
            config_kwargs["api_version"] = str(config_kwargs["api_version"])
        if "only_when_cold" in config_kwargs:
            config_kwargs["only_when_cold"] = bool(config_kwargs["only_when_cold"])
        if "debug" in config_kwargs:
            config_kwargs["debug"] = bool(config_kwargs["debug"])
        config_kwargs["sensors"] = parse_devices(data.get("sensors"))
        config_kwargs.update(overrides)
        return cls(**config_kwargs)
