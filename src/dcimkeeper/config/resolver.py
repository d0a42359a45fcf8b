"""Merge configuration layers into a validated KeeperConfig."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import KeeperConfig

ENV_PREFIX = "DCIMKEEPER__"


def resolve_with_precedence(
    *,
    defaults: KeeperConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> KeeperConfig:
    """Layer overrides on top of defaults: file, then environment, then CLI.

    Keys in any layer may be nested mappings or dotted paths such as
    ``retention.months``.

    Raises:
        ConfigError: If a layer is malformed or the merged values fail validation.
    """
    merged = defaults.model_dump(mode="python")
    layers = (("file", file_overrides), ("environment", env_overrides), ("cli", cli_overrides))
    for layer_name, layer in layers:
        if layer is None:
            continue
        merged = _deep_merge(merged, _expand_dotted(layer, layer_name=layer_name))

    try:
        return KeeperConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def flatten_for_env(config: KeeperConfig) -> Dict[str, str]:
    """Render the config as ``DCIMKEEPER__SECTION__KEY`` environment variables."""
    flat: Dict[str, str] = {}

    def _walk(path: list[str], value: Any) -> None:
        if isinstance(value, dict):
            for key, child in value.items():
                _walk(path + [str(key)], child)
            return
        name = ENV_PREFIX + "__".join(segment.upper() for segment in path)
        if isinstance(value, list):
            flat[name] = yaml.safe_dump(value, default_flow_style=True).strip()
        else:
            flat[name] = "null" if value is None else str(value)

    for section, values in config.model_dump(mode="python").items():
        _walk([section], values)
    return flat


def parse_env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect ``DCIMKEEPER__`` variables into a nested override mapping."""
    overrides: dict[str, Any] = {}
    for key, raw in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        segments = [part.lower() for part in key[len(ENV_PREFIX) :].split("__") if part]
        if not segments:
            continue
        try:
            value: Any = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        assign_path(overrides, segments, value, layer_name="environment")
    return overrides


def assign_path(
    target: dict[str, Any], path: list[str], value: Any, *, layer_name: str = "cli"
) -> None:
    """Set ``value`` at ``path`` inside ``target``, creating intermediate mappings."""
    node = target
    for segment in path[:-1]:
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            raise ConfigError(
                f"{layer_name.capitalize()} override for {'.'.join(path)} "
                "conflicts with existing value."
            )
        node = child
    node[path[-1]] = value


def _expand_dotted(source: Mapping[str, Any], *, layer_name: str) -> dict[str, Any]:
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{layer_name.capitalize()} overrides must be a mapping.")

    expanded: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{layer_name.capitalize()} override keys must be strings.")
        if isinstance(value, MappingABC):
            value = _expand_dotted(value, layer_name=layer_name)
        branch: dict[str, Any] = {}
        assign_path(branch, key.split("."), value, layer_name=layer_name)
        expanded = _deep_merge(expanded, branch)
    return expanded


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = {key: deepcopy(value) for key, value in base.items()}
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(value, MappingABC) and isinstance(current, MappingABC):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = [
    "ENV_PREFIX",
    "resolve_with_precedence",
    "flatten_for_env",
    "parse_env_overrides",
    "assign_path",
]
