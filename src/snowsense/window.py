"""Sliding-window search for the snowy run nearest to now."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from snowsense.models import MILLIS_PER_HOUR, SnowReport

SnowyPredicate = Callable[[SnowReport], bool]


@dataclass(frozen=True, slots=True)
class SnowyRun:
    """Location and length of a contiguous run of snowy hours.

    ``hours_until_start`` is ``None`` when no snowy report was found.
    Scanning forward it is the hours from now until the run starts
    (zero or negative when already started). Scanning in reverse it is
    the hours elapsed since the most recent snowy report.
    """

    hours_until_start: float | None = None
    consecutive_hours: float = 0

    @property
    def found(self) -> bool:
        return self.hours_until_start is not None


def find_snowy_run(
    reports: Sequence[SnowReport],
    is_snowy_enough: SnowyPredicate,
    *,
    now_ms: int,
    reverse: bool = False,
) -> SnowyRun:
    """Find the snowy run closest to *now_ms* in *reports*.

    *reports* must be ordered ascending by timestamp. With ``reverse``
    the scan starts at the newest report and walks into the past.
    Leading non-snowy reports are skipped; the first non-snowy report
    after the run started ends it, so runs never contain gaps and a
    longer run further away is never considered.
    """
    ordered = reversed(reports) if reverse else iter(reports)

    start: int | None = None
    last: int | None = None
    for report in ordered:
        if is_snowy_enough(report):
            if start is None:
                start = report.timestamp_millis
            last = report.timestamp_millis
        elif start is not None:
            break

    if start is None or last is None:
        return SnowyRun()

    consecutive_hours = abs(last - start) / MILLIS_PER_HOUR + 1
    if reverse:
        hours = (now_ms - start) / MILLIS_PER_HOUR
    else:
        hours = (start - now_ms) / MILLIS_PER_HOUR
    return SnowyRun(hours_until_start=hours, consecutive_hours=consecutive_hours)
