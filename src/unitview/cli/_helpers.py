"""Shared utilities for CLI entrypoints."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from unitview.census.grid import GridSize
from unitview.census.types import OperationResult
from unitview.config.loader import Config, ConfigError, load_config
from unitview.storage.layouts import JsonFileStorage, LayoutStore

DEFAULT_CONFIG_PATH = "config/example.yaml"
LOCAL_CONFIG_PATH = "config/local.yaml"

LOGGER = logging.getLogger(__name__)


def add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        dest="config",
        default=None,
        help=(
            "Path to YAML config file (default: "
            f"{LOCAL_CONFIG_PATH} if present, else {DEFAULT_CONFIG_PATH})"
        ),
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging for troubleshooting",
    )


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")
    if not verbose:
        logging.getLogger("urllib3").setLevel(logging.WARNING)


def load_cli_config(config_path: Optional[str]) -> Config:
    if config_path:
        resolved = config_path
    else:
        local = Path(LOCAL_CONFIG_PATH)
        resolved = str(local) if local.exists() else DEFAULT_CONFIG_PATH
    try:
        return load_config(resolved)
    except ConfigError as exc:
        raise SystemExit(f"Config validation failed: {exc}") from exc


def build_layout_store(config: Config) -> LayoutStore:
    return LayoutStore(
        JsonFileStorage(config.storage.path),
        size=GridSize(rows=config.grid.rows, columns=config.grid.columns),
        seed_beds=config.census.seed_beds,
        seed=config.census.seed,
    )


def report_result(result: OperationResult) -> int:
    """Log an operation outcome and turn it into a process exit code."""
    if result.success:
        if result.message:
            LOGGER.info("%s", result.message)
        return 0
    LOGGER.error("%s", result.error or "Operation failed")
    return 1
