"""TOML persistence for scan options.

Options come from the user file (``~/.vetree/config.toml``) and may be
overridden by a ``.vetree.toml`` at the root of the scanned project. Both
use a ``[scan]`` table.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import toml

from . import config
from .config import ScanOptions

logger = logging.getLogger(__name__)

SECTION = "scan"


def _read_toml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return {}


def load_full_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    return _read_toml(path or config.CONFIG_FILE)


def load_scan_options(
    project_root: Optional[Path] = None,
    path: Optional[Path] = None,
) -> ScanOptions:
    """Resolve scan options: defaults < user file < project file.

    Raises:
        ValueError: if a configured value is invalid.
    """
    settings: Dict[str, Any] = {}
    settings.update(load_full_config(path).get(SECTION, {}))
    if project_root is not None:
        settings.update(_read_toml(project_root / config.PROJECT_CONFIG_NAME).get(SECTION, {}))
    return ScanOptions.from_mapping(settings)


def save_scan_options(options: ScanOptions, path: Optional[Path] = None) -> Path:
    """Write *options* to the ``[scan]`` table, preserving other sections."""
    target = path or config.CONFIG_FILE
    full = load_full_config(target)
    full[SECTION] = options.to_mapping()
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        toml.dump(full, f)
    return target
