"""hoaretree Configuration — project-level .hoaretreerc.yml support.

Loads configuration from .hoaretreerc.yml (or .hoaretreerc.yaml,
.hoaretreerc.json, hoaretree.config.yml, hoaretree.config.json), found by
walking up from the working directory. Command-line flags override it.

Example .hoaretreerc.yml:
    oracle_timeout_ms: 10000
    boundary_equality: normalized   # or: structural
    check_loop_exit: true
    output_format: json
    log_level: INFO
    max_workers: 4
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

from hoaretree.oracle import DEFAULT_TIMEOUT_MS
from hoaretree.validator import NORMALIZED, STRUCTURAL, ValidationOptions

logger = logging.getLogger("hoaretree.config")


@dataclass
class HoareTreeConfig:
    """Project-level hoaretree configuration."""
    oracle_timeout_ms: int = DEFAULT_TIMEOUT_MS
    # "structural" or "normalized"
    boundary_equality: str = STRUCTURAL
    check_loop_exit: bool = False
    # "pretty" or "json"
    output_format: str = "pretty"
    log_level: str = "WARNING"
    max_workers: int = 2

    def validation_options(self) -> ValidationOptions:
        return ValidationOptions(
            boundary_equality=self.boundary_equality,
            check_loop_exit=self.check_loop_exit,
        )


_CONFIG_FILES = [
    ".hoaretreerc.yml",
    ".hoaretreerc.yaml",
    ".hoaretreerc.json",
    "hoaretree.config.yml",
    "hoaretree.config.json",
]


def find_config(start_dir: str = ".") -> Optional[str]:
    """Find the nearest config file by walking up from start_dir."""
    current = os.path.abspath(start_dir)
    while True:
        for name in _CONFIG_FILES:
            path = os.path.join(current, name)
            if os.path.isfile(path):
                return path
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return None


def load_config(path: Optional[str] = None, start_dir: str = ".") -> HoareTreeConfig:
    """Load configuration from a file.

    If no path is given, searches for a config file starting from start_dir.
    Missing or unreadable files give the defaults.
    """
    if path is None:
        path = find_config(start_dir)

    if path is None:
        return HoareTreeConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as exc:
        logger.warning("cannot read config %s: %s", path, exc)
        return HoareTreeConfig()

    try:
        if path.endswith(".json"):
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        logger.warning("ignoring malformed config %s: %s", path, exc)
        return HoareTreeConfig()

    if not isinstance(data, dict):
        return HoareTreeConfig()
    logger.debug("loaded config from %s", path)
    return _dict_to_config(data)


def _dict_to_config(data: Dict[str, Any]) -> HoareTreeConfig:
    """Convert a parsed dict to HoareTreeConfig; bad values keep the default."""
    config = HoareTreeConfig()

    if "oracle_timeout_ms" in data:
        try:
            config.oracle_timeout_ms = max(1, int(data["oracle_timeout_ms"]))
        except (TypeError, ValueError):
            logger.warning("oracle_timeout_ms must be an integer")
    if data.get("boundary_equality") in (STRUCTURAL, NORMALIZED):
        config.boundary_equality = data["boundary_equality"]
    if "check_loop_exit" in data:
        config.check_loop_exit = bool(data["check_loop_exit"])
    if data.get("output_format") in ("pretty", "json"):
        config.output_format = data["output_format"]
    if "log_level" in data:
        config.log_level = str(data["log_level"]).upper()
    if "max_workers" in data:
        try:
            config.max_workers = max(1, int(data["max_workers"]))
        except (TypeError, ValueError):
            logger.warning("max_workers must be an integer")

    return config
