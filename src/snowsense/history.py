"""Disk-backed rolling history of observed snow reports.

The store keeps one report per clock hour for the last 24 hours so that
"did it snow recently" survives a process restart. The history file is a
plain JSON array of ``{timestampMillis, temperature, hasSnow, hasPrecip}``
objects, rewritten in full after every observation.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import Callable, Iterable, Sequence

from pydantic import TypeAdapter, ValidationError

from snowsense.models import MILLIS_PER_HOUR, SnowReport, epoch_millis, hour_of

_logger = logging.getLogger(__name__)

HISTORY_MAX_AGE_MILLIS = 24 * MILLIS_PER_HOUR

_REPORT_LIST = TypeAdapter(list[SnowReport])


def _delete_file(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        return
    except OSError as exc:
        _logger.warning("Could not delete history file %s: %s", path, exc)


def read_history(path: str) -> list[SnowReport]:
    """Load persisted reports from *path*.

    A missing file is a cold start and yields an empty list. Content that
    is not a JSON array of snow reports is logged, deleted and also yields
    an empty list, so a corrupt file never blocks startup twice.
    """
    if not os.path.exists(path):
        return []

    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError) as exc:
        _logger.error("Error reading history from %s: %s", path, exc)
        _delete_file(path)
        return []

    if not isinstance(data, list):
        _logger.error("Expected array in %s, got %s", path, type(data).__name__)
        _delete_file(path)
        return []

    try:
        return _REPORT_LIST.validate_python(data)
    except ValidationError as exc:
        _logger.error("Expected snow reports in %s: %s", path, exc)
        _delete_file(path)
        return []


def write_history(path: str, reports: Sequence[SnowReport]) -> bool:
    """Persist *reports* to *path*, replacing the whole file.

    The data is written to a sibling temporary file and moved into place,
    so readers never see a half-written array. Failures are logged and
    reported through the return value; they never raise.
    """
    directory = os.path.dirname(path)
    tmp_path = f"{path}.tmp"
    payload = json.dumps([report.to_json_dict() for report in reports], separators=(",", ":"))
    try:
        if directory:
            os.makedirs(directory, mode=0o755, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as fh:
            fh.write(payload)
        os.replace(tmp_path, path)
    except OSError as exc:
        _logger.error("Error writing history to %s: %s", path, exc)
        _delete_file(tmp_path)
        return False
    return True


def bucket_reports(
    reports: Iterable[SnowReport],
    *,
    now_ms: int,
    max_age_millis: int = HISTORY_MAX_AGE_MILLIS,
) -> list[SnowReport]:
    """Drop stale reports and merge the rest into one report per hour.

    Each bucket is stamped with the start of its hour. Within an hour
    ``has_snow``/``has_precip`` are ORed and the lowest temperature wins,
    so a short burst of snow inside an hour is never lost.
    """
    recent = sorted(
        (report for report in reports if now_ms - report.timestamp_millis < max_age_millis),
        key=lambda report: report.timestamp_millis,
    )

    buckets: list[SnowReport] = []
    for report in recent:
        hour = hour_of(report.timestamp_millis)
        if buckets and hour_of(buckets[-1].timestamp_millis) == hour:
            previous = buckets[-1]
            buckets[-1] = SnowReport(
                timestamp_millis=hour * MILLIS_PER_HOUR,
                temperature=min(previous.temperature, report.temperature),
                has_snow=previous.has_snow or report.has_snow,
                has_precip=previous.has_precip or report.has_precip,
            )
        else:
            buckets.append(
                SnowReport(
                    timestamp_millis=hour * MILLIS_PER_HOUR,
                    temperature=report.temperature,
                    has_snow=report.has_snow,
                    has_precip=report.has_precip,
                )
            )
    return buckets


class HistoryStore:
    """Hourly-bucketed record of what the weather actually did.

    Parameters
    ----------
    path : str or None
        History file location. ``None`` keeps the history in memory only.
    clock : callable
        Returns the current epoch time in milliseconds.
    load : bool
        Hydrate from *path* on construction.
    """

    def __init__(
        self,
        path: str | None = None,
        *,
        clock: Callable[[], int] = epoch_millis,
        load: bool = True,
    ) -> None:
        self._path = path
        self._clock = clock
        self._lock = threading.Lock()
        self._reports: list[SnowReport] = []
        if path is not None and load:
            self._reports = read_history(path)
            if self._reports:
                _logger.debug("Loaded %d history reports from %s", len(self._reports), path)

    @property
    def path(self) -> str | None:
        return self._path

    @property
    def reports(self) -> list[SnowReport]:
        """Bucketed reports, oldest first."""
        return list(self._reports)

    def add_observation(self, report: SnowReport) -> list[SnowReport]:
        """Absorb *report*, prune and re-bucket, then persist.

        Persistence is best-effort; the in-memory history is updated even
        when the write fails. The file is written synchronously while the
        lock is held, which blocks the event loop for one small write per
        forecast fetch.
        """
        with self._lock:
            self._reports = bucket_reports([*self._reports, report], now_ms=self._clock())
            if self._path is not None:
                write_history(self._path, self._reports)
            return list(self._reports)

    def clear(self) -> None:
        """Forget all history, including the persisted file."""
        with self._lock:
            self._reports = []
            if self._path is not None:
                _delete_file(self._path)
