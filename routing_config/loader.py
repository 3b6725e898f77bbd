"""
Configuration Loader (``routing_config.loader``).

Responsibility
--------------
Loads a routing configuration YAML document and parses it into a
``RoutingConfig``.  Callers should go through
``routing_config.get_active_config()`` or a ``ConfigProvider``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong types / out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from routing_config.schema import RoutingConfig

_KNOWN_KEYS = frozenset({
    "version",
    "heavy_weight_threshold_ounces",
    "high_value_brand_ratio",
    "blocked_amazon_brands",
})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Routing config {path} must be a mapping, got {type(data).__name__}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a parsed config document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_routing_config(data: dict[str, Any]) -> RoutingConfig:
    """
    Parse a ``RoutingConfig`` from a dict.

    Absent keys take the ``RoutingConfig`` defaults.  Unknown keys are
    rejected so that typos do not silently fall back to defaults.
    """
    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        raise ValueError(f"Unknown routing config keys: {', '.join(unknown)}")

    kwargs: dict[str, Any] = {"checksum": compute_checksum(data)}
    if "version" in data:
        kwargs["version"] = int(data["version"])
    if "heavy_weight_threshold_ounces" in data:
        threshold = data["heavy_weight_threshold_ounces"]
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
            raise ValueError(
                f"heavy_weight_threshold_ounces must be a number, got {threshold!r}"
            )
        kwargs["heavy_weight_threshold_ounces"] = float(threshold)
    if "high_value_brand_ratio" in data:
        kwargs["high_value_brand_ratio"] = data["high_value_brand_ratio"]
    if "blocked_amazon_brands" in data:
        brands = data["blocked_amazon_brands"] or []
        if not isinstance(brands, list) or not all(isinstance(b, str) for b in brands):
            raise ValueError("blocked_amazon_brands must be a list of strings")
        kwargs["blocked_amazon_brands"] = frozenset(brands)

    return RoutingConfig(**kwargs)


def load_routing_config(path: Path) -> RoutingConfig:
    """Load and parse a routing configuration file."""
    return parse_routing_config(load_yaml_file(path))
