"""Periodic driver that keeps sensor values in step with the engine."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Sequence

from snowsense.exceptions import SnowSenseError
from snowsense.models import DeviceConfig
from snowsense.watch import SnowWatch

_logger = logging.getLogger(__name__)

SensorCallback = Callable[[DeviceConfig, bool], None]


class SnowSenseMonitor:
    """Refresh a :class:`SnowWatch` on a timer and publish sensor changes.

    ``on_change`` is called with the device and its new value whenever a
    sensor flips, and once per device on the first successful refresh.
    A failed refresh leaves every sensor at its previous value.
    """

    def __init__(
        self,
        watch: SnowWatch,
        devices: Sequence[DeviceConfig] | None = None,
        *,
        interval: float | None = None,
        on_change: SensorCallback | None = None,
    ) -> None:
        self._watch = watch
        self._devices = tuple(devices if devices is not None else watch.config.sensors)
        self._interval = interval if interval is not None else watch.config.api_throttle_seconds
        self._on_change = on_change
        self._values: dict[str, bool] = {}
        self._task: asyncio.Task[None] | None = None

    @property
    def values(self) -> dict[str, bool]:
        """Latest value per device display name."""
        return dict(self._values)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self) -> bool:
        """Run one update and publish changed sensor values.

        Returns ``False`` when the forecast could not be refreshed.
        """
        try:
            await self._watch.update_prediction_status()
        except SnowSenseError:
            return False

        for device in self._devices:
            value = self._watch.snow_sensor_value(device)
            previous = self._values.get(device.display_name)
            if previous == value:
                continue
            self._values[device.display_name] = value
            _logger.debug("Changing value of %s to: %s", device.display_name, value)
            if self._on_change is not None:
                try:
                    self._on_change(device, value)
                except Exception:
                    _logger.exception("on_change callback failed for %s", device.display_name)
        return True

    async def _run(self) -> None:
        while True:
            try:
                await self.refresh()
            except Exception:
                _logger.exception("Unexpected error refreshing snow sensors")
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        """Start refreshing in the background; must be called from a running loop."""
        if self.is_running:
            return
        _logger.debug("Updating weather every %.0f seconds", self._interval)
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
