"""Aggregation of per-file parse results into a :class:`DesignIndex`."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Set, Tuple

from .models import DesignIndex, ModuleDefinition, PortDeclaration, SourceLocation


def build_design_index(modules: Iterable[ModuleDefinition]) -> DesignIndex:
    """Group *modules* by name and by file, preserving discovery order.

    Several definitions under one name are kept side by side; resolution
    policy belongs to the caller.
    """
    ordered = tuple(modules)
    by_name: Dict[str, List[ModuleDefinition]] = {}
    by_file: Dict[str, List[ModuleDefinition]] = {}
    for module in ordered:
        by_name.setdefault(module.name, []).append(module)
        by_file.setdefault(module.file_path, []).append(module)
    return DesignIndex(
        ordered,
        {name: tuple(mods) for name, mods in by_name.items()},
        {path: tuple(mods) for path, mods in by_file.items()},
    )


def empty_index() -> DesignIndex:
    return build_design_index(())


def find_definitions(index: Optional[DesignIndex], name: str) -> List[SourceLocation]:
    """Definition locations for *name*, one per distinct file position."""
    if index is None:
        return []
    seen: Set[Tuple[str, int, int]] = set()
    locations: List[SourceLocation] = []
    for module in index.definitions(name):
        loc = module.location
        key = (loc.file_path, loc.line, loc.column)
        if key in seen:
            continue
        seen.add(key)
        locations.append(loc)
    return locations


def module_ports(index: DesignIndex, name: str, variant: int = 0) -> Optional[List[PortDeclaration]]:
    """Ports of the *variant*-th definition of *name*, or ``None`` if absent."""
    definitions = index.definitions(name)
    if not 0 <= variant < len(definitions):
        return None
    return list(definitions[variant].ports)
