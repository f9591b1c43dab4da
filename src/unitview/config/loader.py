"""Config loader with schema validation for the unit census core."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

MAX_SEED_BEDS = 100


class ConfigError(ValueError):
    """Raised when a configuration file fails validation."""


@dataclass(frozen=True)
class GridConfig:
    rows: int
    columns: int


@dataclass(frozen=True)
class StorageConfig:
    path: Path


@dataclass(frozen=True)
class CensusConfig:
    default_layout: str
    seed_beds: int
    seed: Optional[int] = None


@dataclass(frozen=True)
class RemoteStoreConfig:
    enabled: bool
    base_url: Optional[str] = None
    collection: str = "assignments"
    timeout_ms: int = 2000


@dataclass(frozen=True)
class AutosaveConfig:
    enabled: bool = True


@dataclass(frozen=True)
class Config:
    source: Path
    config_version: str
    grid: GridConfig
    storage: StorageConfig
    census: CensusConfig
    remote_store: RemoteStoreConfig
    autosave: AutosaveConfig


def load_config(path: str | Path) -> Config:
    """Load and validate a YAML/JSON config file."""
    source = Path(path)
    if not source.exists():
        raise ConfigError(f"Config file not found: {source}")

    data = _deserialize(source)
    if not isinstance(data, dict):
        raise ConfigError("Config root must be a mapping")
    return _parse_config(data, source)


def _deserialize(source: Path) -> Any:
    text = source.read_text(encoding="utf-8")
    suffix = source.suffix.lower()
    if suffix == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def _parse_config(data: Dict[str, Any], source: Path) -> Config:
    config_version = _require_str(data, "config_version")

    grid_section = _optional_dict(data, "grid")
    grid = GridConfig(
        rows=_coerce_int(grid_section.get("rows", 10), "grid.rows", minimum=3),
        columns=_coerce_int(grid_section.get("columns", 17), "grid.columns", minimum=1),
    )

    storage_section = _require_dict(data, "storage")
    storage_path = storage_section.get("path")
    if not isinstance(storage_path, str) or not storage_path.strip():
        raise ConfigError("'storage.path' must be a non-empty string")
    storage = StorageConfig(path=_resolve_path(storage_path, source))

    census_section = _optional_dict(data, "census")
    default_layout = census_section.get("default_layout", "default")
    if not isinstance(default_layout, str) or not default_layout.strip():
        raise ConfigError("'census.default_layout' must be a non-empty string")
    if "/" in default_layout:
        raise ConfigError("'census.default_layout' cannot contain '/'")
    census = CensusConfig(
        default_layout=default_layout.strip(),
        seed_beds=_coerce_int(census_section.get("seed_beds", 48), "census.seed_beds", minimum=0),
        seed=_optional_int(census_section.get("seed"), "census.seed"),
    )
    if census.seed_beds > MAX_SEED_BEDS:
        raise ConfigError(f"'census.seed_beds' must be <= {MAX_SEED_BEDS}")
    perimeter = _perimeter_length(grid)
    if census.seed_beds > perimeter:
        raise ConfigError(
            f"'census.seed_beds' ({census.seed_beds}) exceeds the grid perimeter ({perimeter} cells)"
        )

    remote_section = _optional_dict(data, "remote_store")
    remote_store = RemoteStoreConfig(
        enabled=bool(remote_section.get("enabled", False)),
        base_url=remote_section.get("base_url"),
        collection=str(remote_section.get("collection", "assignments")).strip("/") or "assignments",
        timeout_ms=_coerce_int(remote_section.get("timeout_ms", 2000), "remote_store.timeout_ms", minimum=1),
    )
    if remote_store.enabled and not remote_store.base_url:
        raise ConfigError("remote_store.base_url is required when remote_store.enabled is true")

    autosave_section = _optional_dict(data, "autosave")
    autosave = AutosaveConfig(enabled=bool(autosave_section.get("enabled", True)))

    return Config(
        source=source,
        config_version=config_version,
        grid=grid,
        storage=storage,
        census=census,
        remote_store=remote_store,
        autosave=autosave,
    )


def _perimeter_length(grid: GridConfig) -> int:
    if grid.rows == 1 or grid.columns == 1:
        return grid.rows * grid.columns
    return 2 * (grid.rows + grid.columns) - 4


def _resolve_path(value: str, source: Path) -> Path:
    path = Path(value).expanduser()
    if path.is_absolute():
        return path
    return (source.parent / path).resolve()


def _require_dict(obj: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = obj.get(key)
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return value


def _optional_dict(obj: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = obj.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{key} block must be a mapping if provided")
    return value


def _require_str(obj: Dict[str, Any], key: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{key}' must be a non-empty string")
    return value


def _coerce_int(value: Any, field: str, minimum: Optional[int] = None) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"'{field}' must be an integer, not boolean")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{field}' must be an integer") from exc
    if minimum is not None and parsed < minimum:
        raise ConfigError(f"'{field}' must be >= {minimum}")
    return parsed


def _optional_int(value: Any, field: str, minimum: Optional[int] = None) -> Optional[int]:
    if value in (None, ""):
        return None
    return _coerce_int(value, field, minimum=minimum)


__all__ = [
    "AutosaveConfig",
    "CensusConfig",
    "Config",
    "ConfigError",
    "GridConfig",
    "RemoteStoreConfig",
    "StorageConfig",
    "load_config",
]
