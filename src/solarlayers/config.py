"""Immutable runtime configuration for solarlayers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

from solarlayers.contracts import validate_config

LOGGER = logging.getLogger(__name__)

ENV_CONFIG_PATH = "SOLARLAYERS_CONFIG"
ENV_API_KEY = "SOLAR_API_KEY"

QUALITY_LEVELS = ("LOW", "MEDIUM", "HIGH")


@dataclass(frozen=True)
class ApiSettings:
    """Upstream Solar API endpoint and retry policy."""

    base_url: str = "https://solar.googleapis.com/v1"
    api_key: str | None = None
    max_retries: int = 3
    retry_delay: float = 1.0
    request_timeout: float = 30.0
    default_radius: float = 50.0
    default_quality: str = "LOW"


@dataclass(frozen=True)
class VisualizationSettings:
    """Rendering limits and building crop margin."""

    max_dimension: int = 400
    building_margin: int = 20
    palette_size: int = 256


@dataclass(frozen=True)
class CacheSettings:
    """Result cache location and lifetime."""

    enabled: bool = False
    directory: Path | None = None
    expiration_seconds: float = 3600.0
    prefix: str = "solarlayers_"
    store_rasters: bool = False


@dataclass(frozen=True)
class ProcessingSettings:
    """Pixel-level processing constants."""

    no_data_value: float = -9999.0
    mask_threshold: float = 0.0
    connectivity: int = 4
    max_workers: int = 4


@dataclass(frozen=True)
class SolarLayersConfig:
    """Top-level configuration passed explicitly to every component."""

    api: ApiSettings = field(default_factory=ApiSettings)
    visualization: VisualizationSettings = field(default_factory=VisualizationSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    processing: ProcessingSettings = field(default_factory=ProcessingSettings)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["api"].pop("api_key", None)
        directory = payload["cache"].get("directory")
        payload["cache"]["directory"] = str(directory) if directory else None
        return payload


def _section(cls: type, data: Mapping[str, Any] | None) -> Any:
    values = dict(data or {})
    if cls is CacheSettings and values.get("directory"):
        values["directory"] = Path(values["directory"])
    return cls(**values)


def config_from_dict(data: Mapping[str, Any]) -> SolarLayersConfig:
    """Validate a JSON-style mapping and build a SolarLayersConfig."""
    validate_config(data)
    return SolarLayersConfig(
        api=_section(ApiSettings, data.get("api")),
        visualization=_section(VisualizationSettings, data.get("visualization")),
        cache=_section(CacheSettings, data.get("cache")),
        processing=_section(ProcessingSettings, data.get("processing")),
    )


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ValueError(f"Unable to read config {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Config {path} must contain a JSON object")
    return data


def load_config(
    path: Path | None = None,
    *,
    overrides: Mapping[str, Mapping[str, Any]] | None = None,
) -> SolarLayersConfig:
    """Load configuration from JSON (path or env var), then apply overrides."""
    data: dict[str, Any] = {}
    if path is None:
        env_path = os.environ.get(ENV_CONFIG_PATH)
        if env_path:
            path = Path(env_path)
    if path is not None:
        LOGGER.debug("Loading config from %s", path)
        data = _read_config_file(path)
    config = config_from_dict(data)
    api_key = os.environ.get(ENV_API_KEY)
    if api_key and not config.api.api_key:
        config = replace(config, api=replace(config.api, api_key=api_key))
    for section, values in (overrides or {}).items():
        current = getattr(config, section, None)
        if current is None:
            raise ValueError(f"Unknown config section: {section}")
        changes = {key: value for key, value in values.items() if value is not None}
        if changes:
            config = replace(config, **{section: replace(current, **changes)})
    return config
