"""Data models for hourly snow reports, forecasts and sensor configuration.

Every report carries its timestamp in epoch **milliseconds**. Weather
APIs hand out epoch seconds as ``dt``; :func:`to_epoch_millis` converts
those when a forecast entry or a legacy ``dt`` history record is read.
``timestampMillis`` values are always taken as milliseconds.
"""

from __future__ import annotations

import time
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

MILLIS_PER_HOUR = 60 * 60 * 1000

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def to_epoch_millis(value: Any) -> Any:
    """Convert an epoch timestamp (seconds **or** milliseconds) to milliseconds.

    Non-numeric values are passed through so pydantic reports them.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return value
    ts = int(value)
    if ts < _MS_THRESHOLD:
        ts *= 1000
    return ts


def epoch_millis() -> int:
    """Current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


def hour_of(timestamp_millis: int) -> int:
    """Return the hour-of-epoch bucket a timestamp falls in."""
    return timestamp_millis // MILLIS_PER_HOUR


class SnowReport(BaseModel):
    """One hour's observed or predicted weather, reduced to what matters for snow.

    Parameters
    ----------
    timestamp_millis : int
        Epoch milliseconds. A legacy ``dt`` key is read as epoch seconds
        or milliseconds.
    temperature : float
        Temperature in the configured units.
    has_snow : bool
        The weather condition is a snow condition.
    has_precip : bool
        The weather condition is any kind of precipitation.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    timestamp_millis: int = Field(
        validation_alias=AliasChoices("timestampMillis", "timestamp_millis"),
        serialization_alias="timestampMillis",
    )
    temperature: float = Field(validation_alias=AliasChoices("temperature", "temp"))
    has_snow: bool = Field(
        validation_alias=AliasChoices("hasSnow", "has_snow"),
        serialization_alias="hasSnow",
    )
    has_precip: bool = Field(
        default=False,
        validation_alias=AliasChoices("hasPrecip", "has_precip"),
        serialization_alias="hasPrecip",
    )

    @model_validator(mode="before")
    @classmethod
    def _legacy_dt(cls, values: Any) -> Any:
        if not isinstance(values, dict) or "dt" not in values:
            return values
        if "timestampMillis" in values or "timestamp_millis" in values:
            return values
        values = dict(values)
        values["timestampMillis"] = to_epoch_millis(values.pop("dt"))
        return values

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize in the persisted camelCase shape."""
        return self.model_dump(mode="json", by_alias=True)


class SnowForecast(BaseModel):
    """Snow reports for the current moment and each upcoming hour."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    current: SnowReport
    hourly: list[SnowReport] = Field(default_factory=list)


class SnowWatchValues(BaseModel):
    """Derived snapshot of the snow situation around *now*.

    Hour values are non-negative magnitudes. ``None`` means no snowy hour
    was found in that direction.
    """

    model_config = ConfigDict(frozen=True)

    snowing_now: bool = False
    last_snow_time: float | None = None
    past_consecutive_hours: float = 0
    next_snow_time: float | None = None
    future_consecutive_hours: float = 0


class DeviceConfig(BaseModel):
    """Thresholds for one boolean "is snowy" sensor.

    Validates from the host's camelCase config (``displayName``,
    ``hoursBeforeSnowIsSnowy``...) as well as snake_case keywords.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    display_name: str = "Snowy"
    hours_before_snow_is_snowy: float = Field(default=0, ge=0)
    hours_after_snow_is_snowy: float = Field(default=0, ge=0)
    consecutive_hours_future_is_snowy: float = Field(default=0, ge=0)
