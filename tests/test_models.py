"""Tests for snow report, forecast and device models."""

from __future__ import annotations

import pydantic
import pytest

from snowsense.models import DeviceConfig, SnowForecast, SnowReport, hour_of, to_epoch_millis


class TestToEpochMillis:
    def test_seconds_are_converted(self) -> None:
        assert to_epoch_millis(1670879317) == 1670879317000

    def test_millis_are_kept(self) -> None:
        assert to_epoch_millis(1670879317000) == 1670879317000

    def test_float_seconds(self) -> None:
        assert to_epoch_millis(1670879317.9) == 1670879317000

    def test_non_numeric_passes_through(self) -> None:
        assert to_epoch_millis("soon") == "soon"


class TestSnowReport:
    def test_accepts_persisted_keys(self) -> None:
        report = SnowReport.model_validate(
            {"timestampMillis": 1670879317000, "temperature": 30.5, "hasSnow": True, "hasPrecip": True}
        )
        assert report.timestamp_millis == 1670879317000
        assert report.has_snow is True

    def test_accepts_weather_keys_in_seconds(self) -> None:
        report = SnowReport.model_validate({"dt": 1670879317, "temp": 30.5, "hasSnow": False, "hasPrecip": True})
        assert report.timestamp_millis == 1670879317000
        assert report.temperature == 30.5

    def test_millisecond_keys_are_never_rescaled(self) -> None:
        assert SnowReport(timestamp_millis=3_600_000, temperature=1.0, has_snow=False).timestamp_millis == 3_600_000
        report = SnowReport.model_validate({"timestampMillis": 3_600_000, "temperature": 1.0, "hasSnow": False})
        assert report.timestamp_millis == 3_600_000
        assert SnowReport.model_validate(report.to_json_dict()) == report

    def test_explicit_millis_wins_over_dt(self) -> None:
        report = SnowReport.model_validate({"timestampMillis": 3_600_000, "dt": 5, "temp": 1.0, "hasSnow": False})
        assert report.timestamp_millis == 3_600_000

    def test_json_dict_uses_camel_case(self) -> None:
        report = SnowReport(timestamp_millis=1670879317000, temperature=1.0, has_snow=True, has_precip=False)
        assert report.to_json_dict() == {
            "timestampMillis": 1670879317000,
            "temperature": 1.0,
            "hasSnow": True,
            "hasPrecip": False,
        }

    def test_missing_snow_flag_is_invalid(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            SnowReport.model_validate({"timestampMillis": 1670879317000, "temperature": 1.0})

    def test_is_frozen(self) -> None:
        report = SnowReport(timestamp_millis=1670879317000, temperature=1.0, has_snow=True)
        with pytest.raises(pydantic.ValidationError):
            report.has_snow = False  # type: ignore[misc]


def test_hour_of_buckets_by_hour() -> None:
    assert hour_of(1670878800000) == hour_of(1670882399999)
    assert hour_of(1670882400000) == hour_of(1670878800000) + 1


def test_forecast_from_payload() -> None:
    forecast = SnowForecast.model_validate(
        {
            "current": {"dt": 1670879317, "temp": 30.0, "hasSnow": False, "hasPrecip": False},
            "hourly": [{"dt": 1670878800, "temp": 30.0, "hasSnow": True, "hasPrecip": True}],
        }
    )
    assert forecast.hourly[0].timestamp_millis == 1670878800000


class TestDeviceConfig:
    def test_camel_case(self) -> None:
        device = DeviceConfig.model_validate(
            {
                "displayName": "Snowy",
                "hoursBeforeSnowIsSnowy": 3,
                "hoursAfterSnowIsSnowy": 2,
                "consecutiveHoursFutureIsSnowy": 1,
            }
        )
        assert device.hours_before_snow_is_snowy == 3
        assert device.hours_after_snow_is_snowy == 2
        assert device.consecutive_hours_future_is_snowy == 1

    def test_defaults_disable_branches(self) -> None:
        device = DeviceConfig()
        assert device.hours_before_snow_is_snowy == 0
        assert device.hours_after_snow_is_snowy == 0
        assert device.consecutive_hours_future_is_snowy == 0

    def test_negative_threshold_rejected(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            DeviceConfig(hours_after_snow_is_snowy=-1)
