"""Configuration defaults and the scan option set."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Set, Tuple

from .models import ResolveStrategy

BASE_DIR = Path(os.environ.get("VETREE_HOME", str(Path.home() / ".vetree"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"
PROJECT_CONFIG_NAME = ".vetree.toml"

SUPPORTED_EXTENSIONS: Set[str] = {".v", ".sv", ".vh", ".svh"}

SKIP_DIRS: Set[str] = {
    ".git", "node_modules", "out", "dist", "build",
    ".venv", "venv", "__pycache__", ".vetree",
}

# Pause between the last change notification and the rebuild it triggers.
REBUILD_DELAY_SECONDS = 0.3

# camelCase names are the ones used by editor settings files.
_OPTION_ALIASES: Dict[str, str] = {
    "enablePreprocess": "enable_preprocess",
    "maxHierarchyDepth": "max_hierarchy_depth",
    "hierarchyResolve": "hierarchy_resolve",
    "hierarchyTopModule": "hierarchy_top_module",
    "maxFileSizeMB": "max_file_size_mb",
    "extraKeywords": "extra_keywords",
}


@dataclass(frozen=True)
class ScanOptions:
    enable_preprocess: bool = True
    max_hierarchy_depth: int = 32
    hierarchy_resolve: ResolveStrategy = ResolveStrategy.ALL
    hierarchy_top_module: str = ""
    max_file_size_mb: float = 10.0
    extra_keywords: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not isinstance(self.enable_preprocess, bool):
            raise ValueError(
                f"enable_preprocess must be true or false, got {self.enable_preprocess!r}"
            )
        if self.max_hierarchy_depth < 0:
            raise ValueError("max_hierarchy_depth must be >= 0")
        if self.max_file_size_mb <= 0:
            raise ValueError("max_file_size_mb must be positive")
        try:
            resolve = ResolveStrategy(self.hierarchy_resolve)
        except ValueError:
            raise ValueError(
                f"hierarchy_resolve must be 'all' or 'first', got {self.hierarchy_resolve!r}"
            ) from None
        object.__setattr__(self, "hierarchy_resolve", resolve)
        keywords = self.extra_keywords
        if isinstance(keywords, str):
            keywords = (keywords,)
        keywords = tuple(keywords)
        if not all(isinstance(word, str) for word in keywords):
            raise ValueError(f"extra_keywords must be a list of strings, got {self.extra_keywords!r}")
        object.__setattr__(self, "extra_keywords", keywords)

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ScanOptions":
        """Build options from a settings mapping; unknown keys are ignored."""
        known = {f for f in cls.__dataclass_fields__}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            name = _OPTION_ALIASES.get(key, key)
            if name in known:
                values[name] = value
        if "max_hierarchy_depth" in values:
            values["max_hierarchy_depth"] = int(values["max_hierarchy_depth"])
        if "max_file_size_mb" in values:
            values["max_file_size_mb"] = float(values["max_file_size_mb"])
        if "hierarchy_top_module" in values:
            values["hierarchy_top_module"] = str(values["hierarchy_top_module"] or "").strip()
        return cls(**values)

    def to_mapping(self) -> Dict[str, Any]:
        return {
            "enable_preprocess": self.enable_preprocess,
            "max_hierarchy_depth": self.max_hierarchy_depth,
            "hierarchy_resolve": self.hierarchy_resolve.value,
            "hierarchy_top_module": self.hierarchy_top_module,
            "max_file_size_mb": self.max_file_size_mb,
            "extra_keywords": list(self.extra_keywords),
        }

    def merged(self, **overrides: Any) -> "ScanOptions":
        """Copy with every non-``None`` override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
