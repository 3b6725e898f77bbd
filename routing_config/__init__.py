"""
routing_config -- public entrypoint for routing configuration.

Responsibility:
    Provides ``get_active_config()`` which loads, validates and traces the
    active ``RoutingConfig``, and ``ConfigProvider`` for hot reload.  The
    routing kernel never reads configuration files itself; the routing
    service receives a ``config_source`` callable (usually
    ``ConfigProvider.current``).

Failure modes:
    - ``FileNotFoundError`` -- configuration file missing.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``ValueError`` -- schema or range validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``ROUTING_CONFIG_TRACE`` log entry containing version and checksum, so
    that every routing decision can be tied to the configuration that
    governed it.
"""

from __future__ import annotations

from pathlib import Path

from routing_config.loader import load_routing_config
from routing_config.provider import ConfigProvider
from routing_config.schema import RoutingConfig
from routing_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ConfigProvider",
    "RoutingConfig",
    "get_active_config",
]


def get_active_config(config_path: Path | None = None) -> RoutingConfig:
    """Load the routing configuration and emit ``ROUTING_CONFIG_TRACE``.

    Args:
        config_path: Override path. Defaults to routing_config/sets/default.yaml.

    Returns:
        A validated, frozen RoutingConfig.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    config = load_routing_config(path)

    _logger.info(
        "ROUTING_CONFIG_TRACE",
        extra={
            "trace_type": "ROUTING_CONFIG_TRACE",
            "path": str(path),
            "version": config.version,
            "checksum": config.checksum,
            "high_value_brand_ratio": config.high_value_brand_ratio,
            "heavy_weight_threshold_ounces": config.heavy_weight_threshold_ounces,
            "blocked_amazon_brand_count": len(config.blocked_amazon_brands),
        },
    )
    return config
