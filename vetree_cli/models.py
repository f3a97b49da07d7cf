"""Core data models shared by the extractor, index, hierarchy and CLI layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Set, Tuple


class PortDirection(str, Enum):
    INPUT = "input"
    OUTPUT = "output"
    INOUT = "inout"
    REF = "ref"
    UNKNOWN = "unknown"


class ResolveStrategy(str, Enum):
    """How the hierarchy builder treats several modules sharing one name."""

    ALL = "all"
    FIRST = "first"


class NodeKind(str, Enum):
    MODULE = "module"
    CYCLE = "cycle"
    DEPTH_LIMIT = "depth-limit"
    EXTERNAL = "external"


@dataclass(frozen=True)
class SourcePosition:
    """Zero-based line/column pair."""

    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.line + 1}:{self.column + 1}"


@dataclass(frozen=True)
class SourceLocation:
    file_path: str
    start: SourcePosition
    end: Optional[SourcePosition] = None

    def __post_init__(self) -> None:
        if self.end is None:
            object.__setattr__(self, "end", self.start)

    @property
    def line(self) -> int:
        return self.start.line

    @property
    def column(self) -> int:
        return self.start.column

    def __str__(self) -> str:
        return f"{self.file_path}:{self.start}"


@dataclass
class PortDeclaration:
    direction: PortDirection
    name: str
    location: SourceLocation
    range_text: Optional[str] = None


@dataclass
class PortBinding:
    """A named ``.port(expr)`` connection inside an instantiation."""

    port_name: str
    expr: str
    location: SourceLocation


@dataclass
class InstanceReference:
    module_name: str
    instance_name: str
    location: SourceLocation
    bindings: List[PortBinding] = field(default_factory=list)


@dataclass
class ModuleDefinition:
    name: str
    file_path: str
    location: SourceLocation
    ports: List[PortDeclaration] = field(default_factory=list)
    instances: List[InstanceReference] = field(default_factory=list)


class DesignIndex:
    """Immutable snapshot of every module found by one full scan.

    ``modules_by_name`` may map one name to several definitions (duplicates
    across files or conditional variants); no deduplication is applied.
    """

    def __init__(
        self,
        modules: Tuple[ModuleDefinition, ...],
        modules_by_name: Mapping[str, Tuple[ModuleDefinition, ...]],
        modules_by_file: Mapping[str, Tuple[ModuleDefinition, ...]],
    ) -> None:
        self._modules = modules
        self._by_name = MappingProxyType(dict(modules_by_name))
        self._by_file = MappingProxyType(dict(modules_by_file))

    @property
    def modules(self) -> Tuple[ModuleDefinition, ...]:
        return self._modules

    @property
    def modules_by_name(self) -> Mapping[str, Tuple[ModuleDefinition, ...]]:
        return self._by_name

    @property
    def modules_by_file(self) -> Mapping[str, Tuple[ModuleDefinition, ...]]:
        return self._by_file

    @property
    def module_count(self) -> int:
        return len(self._modules)

    def definitions(self, name: str) -> Tuple[ModuleDefinition, ...]:
        return self._by_name.get(name, ())

    def files(self) -> List[str]:
        return list(self._by_file.keys())

    def duplicate_names(self) -> Dict[str, int]:
        """Return ``{name: count}`` for every name defined more than once."""
        return {name: len(mods) for name, mods in self._by_name.items() if len(mods) > 1}

    def instantiated_names(self) -> Set[str]:
        return {inst.module_name for module in self._modules for inst in module.instances}

    def __len__(self) -> int:
        return len(self._modules)

    def __repr__(self) -> str:
        return f"DesignIndex(modules={len(self._modules)}, files={len(self._by_file)})"


@dataclass
class HierarchyNode:
    module_name: str
    label: str
    kind: NodeKind = NodeKind.MODULE
    children: List["HierarchyNode"] = field(default_factory=list)
    definition_location: Optional[SourceLocation] = None
    instance_location: Optional[SourceLocation] = None
    instance_name: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.kind is not NodeKind.MODULE

    @property
    def navigation_target(self) -> Optional[SourceLocation]:
        return self.instance_location or self.definition_location


@dataclass
class HierarchyStats:
    node_count: int = 0
    max_depth: int = 0
    depth_limit_hits: int = 0
    cycle_hits: int = 0
    external_hits: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "nodes": self.node_count,
            "max_depth": self.max_depth,
            "depth_limit_hits": self.depth_limit_hits,
            "cycle_hits": self.cycle_hits,
            "external_hits": self.external_hits,
        }


@dataclass
class ConnectionMatch:
    net: str
    binding_a: PortBinding
    binding_b: PortBinding
    location: SourceLocation


@dataclass
class ScanResult:
    index: DesignIndex
    files: List[str] = field(default_factory=list)
    files_scanned: int = 0
    files_failed: int = 0
    files_skipped: int = 0
    defines: Set[str] = field(default_factory=set)
