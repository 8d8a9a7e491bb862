"""Configuration loading with deterministic precedence.

The cascade is always:
1) CLI params
2) Environment variables
3) ~/.config/courier/courier.yaml
4) Model defaults

Environment variable format:
- Prefix: ``COURIER_``
- Nested keys: ``__`` separator
- Values use YAML scalar syntax, the same as the config file
- Example: ``COURIER_RESILIENCE__BREAKER__FAILURE_THRESHOLD=3``
"""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .models import DEFAULT_CONFIG_PATH, CourierSettings

ENV_PREFIX = "COURIER_"
ENV_NESTED_DELIMITER = "__"


def load_settings(
    *,
    cli_params: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    config_path: str | Path | None = None,
) -> CourierSettings:
    """Resolve ``CourierSettings`` from explicit sources.

    ``environ`` defaults to ``os.environ`` and ``config_path`` to the standard
    YAML location; a missing file is treated as empty.
    """
    layers = [
        _read_yaml_file(Path(config_path) if config_path else DEFAULT_CONFIG_PATH),
        *_env_layers(os.environ if environ is None else environ),
        cli_params or {},
    ]
    merged: dict[str, Any] = {}
    for layer in layers:
        _deep_merge(merged, layer)
    return CourierSettings.model_validate(merged)


def _read_yaml_file(path: Path) -> Mapping[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        parsed = yaml.safe_load(handle)
    if parsed is None:
        return {}
    if not isinstance(parsed, Mapping):
        raise ValueError(f"Config file must contain a top-level mapping: {path}")
    return parsed


def _env_layers(environ: Mapping[str, str]) -> list[dict[str, Any]]:
    """Turn each ``COURIER_A__B=value`` into ``{"a": {"b": value}}``.

    Variables are applied in sorted order so overlapping keys resolve the
    same way on every platform.
    """
    layers: list[dict[str, Any]] = []
    for key in sorted(environ):
        if not key.startswith(ENV_PREFIX):
            continue
        path = [
            segment.lower()
            for segment in key[len(ENV_PREFIX) :].split(ENV_NESTED_DELIMITER)
            if segment
        ]
        if not path:
            continue
        node: Any = _parse_env_value(environ[key])
        for segment in reversed(path):
            node = {segment: node}
        layers.append(node)
    return layers


def _parse_env_value(raw: str) -> Any:
    """Parse one environment value as a YAML scalar or flow collection.

    Anything YAML rejects, or parses to nothing, is kept as the raw string.
    """
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw
    return raw if parsed is None else parsed


def _deep_merge(target: dict[str, Any], source: Mapping[str, Any]) -> None:
    """Merge ``source`` into ``target`` in place; mappings merge, leaves replace."""
    for key, value in source.items():
        key = str(key)
        if isinstance(value, Mapping):
            child = target.get(key)
            if not isinstance(child, dict):
                child = target[key] = {}
            _deep_merge(child, value)
        else:
            target[key] = copy.deepcopy(value)
