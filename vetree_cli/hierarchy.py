"""Instantiation hierarchy: root detection and bounded tree expansion.

Trees are rebuilt from scratch for every :class:`DesignIndex`. Each branch
carries its own set of module names on the current path, so a module may
appear in many independent branches while a re-entry along one path stops
with a ``cycle`` node.
"""

from __future__ import annotations

import logging
from typing import FrozenSet, List, Optional

from .models import (
    DesignIndex,
    HierarchyNode,
    HierarchyStats,
    InstanceReference,
    ModuleDefinition,
    NodeKind,
    ResolveStrategy,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32


def compute_roots(index: Optional[DesignIndex], top_module: str = "") -> List[str]:
    """Sorted names of modules that no instance anywhere refers to.

    A non-empty *top_module* known to the index replaces the computed set.
    """
    if index is None:
        return []
    if top_module:
        if index.definitions(top_module):
            return [top_module]
        logger.warning("Top module '%s' not found; using computed roots", top_module)

    instantiated = index.instantiated_names()
    return sorted({m.name for m in index.modules if m.name not in instantiated})


class HierarchyBuilder:
    """Expand the instantiation tree below each root of a design."""

    def __init__(
        self,
        index: Optional[DesignIndex],
        max_depth: int = DEFAULT_MAX_DEPTH,
        resolve: ResolveStrategy = ResolveStrategy.ALL,
        top_module: str = "",
    ) -> None:
        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        self.index = index
        self.max_depth = max_depth
        self.resolve = ResolveStrategy(resolve)
        self.top_module = top_module
        self.stats = HierarchyStats()

    def build(self) -> List[HierarchyNode]:
        self.stats = HierarchyStats()
        if self.index is None:
            return []

        forest: List[HierarchyNode] = []
        for name in compute_roots(self.index, self.top_module):
            definitions = self.index.definitions(name)
            primary = definitions[0] if definitions else None
            forest.append(self._expand(
                name,
                label=name,
                visited=frozenset(),
                depth=0,
                definition=primary,
                instance=None,
            ))

        logger.info("Hierarchy built: %s", self.stats.as_dict())
        return forest

    def _expand(
        self,
        name: str,
        label: str,
        visited: FrozenSet[str],
        depth: int,
        definition: Optional[ModuleDefinition],
        instance: Optional[InstanceReference],
    ) -> HierarchyNode:
        self.stats.node_count += 1
        self.stats.max_depth = max(self.stats.max_depth, depth)
        instance_location = instance.location if instance else None
        instance_name = instance.instance_name if instance else None
        definition_location = definition.location if definition else None

        if depth >= self.max_depth:
            self.stats.depth_limit_hits += 1
            return HierarchyNode(
                module_name=name,
                label=f"{label} (depth limit)",
                kind=NodeKind.DEPTH_LIMIT,
                definition_location=definition_location,
                instance_location=instance_location,
                instance_name=instance_name,
            )

        if name in visited:
            self.stats.cycle_hits += 1
            return HierarchyNode(
                module_name=name,
                label=f"{label} (cycle)",
                kind=NodeKind.CYCLE,
                definition_location=definition_location,
                instance_location=instance_location,
                instance_name=instance_name,
            )

        path = visited | {name}
        node = HierarchyNode(
            module_name=name,
            label=label,
            definition_location=definition_location,
            instance_location=instance_location,
            instance_name=instance_name,
        )

        for module in self.index.definitions(name):
            for inst in module.instances:
                node.children.extend(self._expand_instance(inst, path, depth))
        return node

    def _expand_instance(
        self,
        inst: InstanceReference,
        path: FrozenSet[str],
        depth: int,
    ) -> List[HierarchyNode]:
        targets = self.index.definitions(inst.module_name)
        label = f"{inst.instance_name}: {inst.module_name}"

        if not targets:
            self.stats.node_count += 1
            self.stats.external_hits += 1
            self.stats.max_depth = max(self.stats.max_depth, depth + 1)
            return [HierarchyNode(
                module_name=inst.module_name,
                label=f"{label} (external)",
                kind=NodeKind.EXTERNAL,
                instance_location=inst.location,
                instance_name=inst.instance_name,
            )]

        if self.resolve is ResolveStrategy.FIRST:
            targets = targets[:1]

        return [
            self._expand(
                target.name,
                label=label,
                visited=path,
                depth=depth + 1,
                definition=target,
                instance=inst,
            )
            for target in targets
        ]


def build_hierarchy(
    index: Optional[DesignIndex],
    max_depth: int = DEFAULT_MAX_DEPTH,
    resolve: ResolveStrategy = ResolveStrategy.ALL,
    top_module: str = "",
) -> List[HierarchyNode]:
    return HierarchyBuilder(index, max_depth, resolve, top_module).build()


def iter_nodes(forest: List[HierarchyNode]):
    """Depth-first walk over every node of *forest*."""
    stack = list(reversed(forest))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))
