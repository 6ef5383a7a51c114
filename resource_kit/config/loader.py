from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from resource_kit.core.configs import ListResourceConfig
from resource_kit.core.exceptions import ConfigError

logger = logging.getLogger(__name__)


def _read_json(path: Path) -> Any:
    with path.open() as f:
        return json.load(f)


def _raw_entries_from_dir(root: Path) -> List[Dict[str, Any]]:
    entries: List[Dict[str, Any]] = []
    # Sort files for deterministic loading
    for config_file in sorted(root.glob("*.json")):
        # macOS 'Apple Double' files (._*) are not JSON
        if config_file.name.startswith("._"):
            continue
        logger.info("Loading resource config", extra={"config_file": config_file.name})
        try:
            raw = _read_json(config_file)
        except (OSError, ValueError) as e:
            logger.error("Failed to load resource config", extra={"config_file": config_file.name, "error": str(e)})
            continue
        if isinstance(raw, dict):
            entries.append(raw)
        else:
            logger.warning("Resource config is not an object", extra={"config_file": config_file.name})
    return entries


def _raw_entries_from_file(path: Path) -> List[Dict[str, Any]]:
    try:
        raw = _read_json(path)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Cannot read resource configs from {path}: {e}") from e
    resources = raw.get("resources") if isinstance(raw, dict) else None
    if not isinstance(resources, list):
        raise ConfigError(f"{path} must contain a 'resources' list")
    return [entry for entry in resources if isinstance(entry, dict)]


def load_resource_configs(path: Union[str, Path]) -> Dict[str, ListResourceConfig]:
    """
    Load list-resource configs keyed by id.

    `path` is either a JSON file holding {"resources": [...]} or a directory
    with one resource config per *.json file. Entries without an id and
    duplicate ids are logged and skipped.
    """
    root = Path(path)
    logger.info("Loading resource configs", extra={"config_root": str(root)})

    if root.is_dir():
        raw_entries = _raw_entries_from_dir(root)
    elif root.is_file():
        raw_entries = _raw_entries_from_file(root)
    else:
        raise ConfigError(f"Resource config path not found: {root}")

    cfg_by_id: Dict[str, ListResourceConfig] = {}
    for raw in raw_entries:
        cfg = ListResourceConfig.from_dict(raw)
        if not cfg.id:
            logger.warning("Resource config without id ignored", extra={"config_root": str(root)})
            continue
        if cfg.id in cfg_by_id:
            logger.warning("Duplicate resource id ignored", extra={"resource_id": cfg.id})
            continue
        cfg_by_id[cfg.id] = cfg
    return cfg_by_id
