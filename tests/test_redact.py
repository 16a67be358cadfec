from __future__ import annotations

from snowsense._redact import redact_params


def test_redact_params_masks_api_key() -> None:
    params = {"lat": 40.7, "lon": -74.0, "appid": "secret", "units": "imperial"}

    redacted = redact_params(params)
    assert redacted == {"lat": 40.7, "lon": -74.0, "appid": "<redacted>", "units": "imperial"}
    assert params["appid"] == "secret"


def test_redact_params_matches_key_case_insensitively() -> None:
    assert redact_params({"AppId": "secret"}) == {"AppId": "<redacted>"}
