"""
ConfigProvider -- hot-reloadable holder for the active RoutingConfig.

The routing service never caches configuration: it calls
``provider.current`` once per decision.  Reloads build a complete new
``RoutingConfig`` first and then swap the reference, so a decision sees
either the old or the new configuration, never a mix.  A reload that
fails validation leaves the previous configuration active.
"""

from __future__ import annotations

import threading
from pathlib import Path

from routing_config.loader import load_routing_config
from routing_config.schema import RoutingConfig
from routing_kernel.logging_config import get_logger

_logger = get_logger("config")


class ConfigProvider:
    """Holds the active configuration and swaps it atomically."""

    def __init__(self, config: RoutingConfig, source_path: Path | None = None):
        self._config = config
        self._source_path = source_path
        self._reload_lock = threading.Lock()

    @classmethod
    def from_file(cls, path: Path) -> ConfigProvider:
        return cls(load_routing_config(path), source_path=path)

    def current(self) -> RoutingConfig:
        return self._config

    def replace(self, config: RoutingConfig) -> RoutingConfig:
        """Install a new configuration; returns the previous one."""
        with self._reload_lock:
            previous = self._config
            self._config = config
        _logger.info(
            "routing_config_replaced",
            extra={
                "previous_checksum": previous.checksum,
                "checksum": config.checksum,
                "version": config.version,
            },
        )
        return previous

    def reload(self) -> RoutingConfig:
        """
        Re-read the source file and install it.

        Raises:
            RuntimeError: if the provider was not built from a file.
            FileNotFoundError, yaml.YAMLError, ValueError: propagated from
                the loader; the previous configuration stays active.
        """
        if self._source_path is None:
            raise RuntimeError("ConfigProvider has no source file to reload from")
        try:
            config = load_routing_config(self._source_path)
        except Exception:
            _logger.error(
                "routing_config_reload_failed",
                extra={"path": str(self._source_path)},
                exc_info=True,
            )
            raise
        self.replace(config)
        return config
