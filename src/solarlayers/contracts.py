"""Schema validation helpers for configuration files and layer results."""

from __future__ import annotations

import json
from importlib import resources
from typing import Any, Mapping

import jsonschema

SCHEMA_VERSION = "1"


def _load_schema(name: str) -> dict[str, Any]:
    """Load a JSON schema bundled in the package."""
    with resources.files("solarlayers.schemas").joinpath(name).open("r", encoding="utf-8") as handle:
        return json.load(handle)


def validate_config(config: Mapping[str, Any]) -> None:
    """Validate a configuration mapping against the schema."""
    schema = _load_schema("config.schema.json")
    jsonschema.validate(config, schema)


def validate_layer_result(result: Mapping[str, Any]) -> None:
    """Validate a serialized layer result against the schema."""
    schema = _load_schema("layer_result.schema.json")
    jsonschema.validate(result, schema)
