"""
Configuration loading for reclaim.

Overrides come from three layers, later layers winning:

1. a YAML file (`--config`)
2. action inputs exported by the Actions runner (`INPUT_KEEP-<TASK>`)
3. command-line flags (`--keep-<task>`, `--remove-<task>`)

The merged result is a single frozen `Configuration`.
"""

import logging
import re
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

import yaml

from reclaim.exceptions import ConfigurationError
from reclaim.registry import Configuration, Override, Registry

logger = logging.getLogger(__name__)

# Values an action forwards for an input the user left at its default
UNSET_VALUES = frozenset({"", "false", "0", "no", "off"})

ENV_OVERRIDE_PATTERN = re.compile(r"^INPUT_(KEEP|REMOVE)[-_](.+)$")


def normalize_task_name(raw: str) -> str:
    return raw.strip().lower().replace("_", "-")


def flag_is_set(value: Optional[str]) -> bool:
    """Whether a keep/remove value requests the override.

    None means the flag was given bare. Empty and falsy strings mean unset.
    """
    if value is None:
        return True
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in UNSET_VALUES


def _add(overrides: dict[str, Override], name: str, override: Override, source: str) -> None:
    existing = overrides.get(name)
    if existing is not None and existing is not override:
        raise ConfigurationError(f"Task '{name}' is both kept and removed in {source}")
    overrides[name] = override


def overrides_from_pairs(
    keep: Iterable[str] = (),
    remove: Iterable[str] = (),
    source: str = "arguments",
) -> dict[str, Override]:
    overrides: dict[str, Override] = {}
    for name in keep:
        _add(overrides, normalize_task_name(name), Override.KEEP, source)
    for name in remove:
        _add(overrides, normalize_task_name(name), Override.REMOVE, source)
    return overrides


def overrides_from_env(environ: Mapping[str, str]) -> dict[str, Override]:
    """Collect overrides from `INPUT_KEEP-*` / `INPUT_REMOVE-*` variables."""
    keep, remove = [], []
    for key, value in environ.items():
        match = ENV_OVERRIDE_PATTERN.match(key.upper())
        if not match or not flag_is_set(value):
            continue
        action, name = match.groups()
        (keep if action == "KEEP" else remove).append(name)
    overrides = overrides_from_pairs(keep, remove, source="environment")
    if overrides:
        logger.debug(f"Overrides from environment: {overrides}")
    return overrides


def load_config_file(path: Path) -> dict[str, Override]:
    """Read overrides from a YAML file.

    Two shapes are accepted::

        keep: [dotnet]
        remove: [gcloud]

        overrides:
          dotnet: keep
          gcloud: remove

    Raises:
        ConfigurationError: unreadable file, invalid YAML or unexpected shape.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping")

    unexpected = set(data) - {"keep", "remove", "overrides"}
    if unexpected:
        raise ConfigurationError(f"{path}: unexpected keys: {', '.join(sorted(unexpected))}")

    keep = data.get("keep") or []
    remove = data.get("remove") or []
    for key, value in (("keep", keep), ("remove", remove)):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigurationError(f"{path}: '{key}' must be a list of task names")

    table = data.get("overrides") or {}
    if not isinstance(table, dict):
        raise ConfigurationError(f"{path}: 'overrides' must be a mapping")
    for name, value in table.items():
        try:
            override = Override(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError(
                f"{path}: override for '{name}' must be 'keep', 'remove' or 'unset', got {value!r}"
            ) from None
        if override is Override.KEEP:
            keep.append(str(name))
        elif override is Override.REMOVE:
            remove.append(str(name))

    return overrides_from_pairs(keep, remove, source=str(path))


def build_configuration(
    registry: Registry,
    layers: Iterable[Mapping[str, Override]] = (),
    dry_run: bool = False,
    background: bool = True,
    max_workers: int = 4,
    estimate_sizes: bool = True,
) -> Configuration:
    """Merge override layers (later wins) and validate them against the registry.

    Raises:
        UnknownTaskError: an override names a task not in the registry.
        ConfigurationError: `max_workers` is not positive.
    """
    if max_workers < 1:
        raise ConfigurationError("Worker count must be at least 1")

    merged: dict[str, Override] = {}
    for layer in layers:
        merged.update(layer)

    configuration = Configuration(
        overrides=MappingProxyType(merged),
        dry_run=dry_run,
        background=background,
        max_workers=max_workers,
        estimate_sizes=estimate_sizes,
    )
    registry.check_overrides(configuration)
    return configuration
