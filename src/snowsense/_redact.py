"""Query-parameter redaction for debug logs.

OpenWeatherMap takes the API key as the ``appid`` query parameter.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_SECRET_PARAMS = frozenset({"appid"})


def redact_params(params: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of *params* with the API key masked."""
    return {key: "<redacted>" if key.lower() in _SECRET_PARAMS else value for key, value in params.items()}
