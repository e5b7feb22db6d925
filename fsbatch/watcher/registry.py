from __future__ import annotations

from typing import Dict, Type

from fsbatch.core.errors import ConfigError
from .drivers import ExecDriver, FswatchDriver, InotifywaitDriver, WatcherDriver


class WatcherDriverRegistry:
    """
    Maps driver keys -> WatcherDriver classes.

    - NO process spawning
    - NO YAML
    """

    def __init__(self, drivers: Dict[str, Type[WatcherDriver]]):
        # normalize keys to be case-insensitive
        self._drivers: Dict[str, Type[WatcherDriver]] = {k.lower(): v for k, v in drivers.items()}

    @classmethod
    def default(cls) -> "WatcherDriverRegistry":
        return cls(
            drivers={
                "fswatch": FswatchDriver,
                "inotifywait": InotifywaitDriver,
                "exec": ExecDriver,
            }
        )

    def names(self) -> list[str]:
        return sorted(self._drivers)

    def has(self, driver: str) -> bool:
        return driver.lower() in self._drivers

    def get_class(self, driver: str) -> Type[WatcherDriver]:
        key = driver.lower()
        if key not in self._drivers:
            raise ConfigError(
                f"Watcher driver '{driver}' not registered.",
                hint="Available drivers: " + ", ".join(self.names()),
                details={"driver": driver},
            )
        return self._drivers[key]

    def create(self, driver: str, **params) -> WatcherDriver:
        """
        Instantiate a watcher driver by key.
        """
        driver_cls = self.get_class(driver)
        try:
            return driver_cls(**params)
        except TypeError as e:
            raise ConfigError(
                f"Invalid parameters for watcher driver '{driver}'.",
                hint=str(e),
                details={"driver": driver, "params": sorted(params)},
            ) from None
