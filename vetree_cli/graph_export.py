"""Hierarchy export helpers for DOT and JSON outputs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import HierarchyNode, NodeKind, SourceLocation

_DOT_STYLE = {
    NodeKind.MODULE: "shape=box",
    NodeKind.CYCLE: 'shape=box, style=dashed, color="#c0392b"',
    NodeKind.DEPTH_LIMIT: 'shape=box, style=dotted, color="#7f8c8d"',
    NodeKind.EXTERNAL: 'shape=box, style=filled, fillcolor="#ecf0f1"',
}

EXPORT_FORMATS = ("dot", "json")


def hierarchy_to_dot(forest: List[HierarchyNode], name: str = "Hierarchy") -> str:
    lines = [f"digraph {name} {{"]
    lines.append("  rankdir=LR;")
    counter = 0

    def visit(node: HierarchyNode, parent_id: Optional[str]) -> None:
        nonlocal counter
        node_id = f"n{counter}"
        counter += 1
        label = node.module_name if node.kind is NodeKind.MODULE else node.label
        lines.append(f'  {node_id} [label="{_esc(label)}", {_DOT_STYLE[node.kind]}];')
        if parent_id is not None:
            edge_label = node.instance_name or ""
            lines.append(f'  {parent_id} -> {node_id} [label="{_esc(edge_label)}"];')
        for child in node.children:
            visit(child, node_id)

    for root in forest:
        visit(root, None)

    lines.append("}")
    return "\n".join(lines)


def _location_payload(loc: Optional[SourceLocation]) -> Optional[Dict[str, Any]]:
    if loc is None:
        return None
    return {
        "file": loc.file_path,
        "line": loc.start.line,
        "column": loc.start.column,
        "end_line": loc.end.line,
        "end_column": loc.end.column,
    }


def hierarchy_to_payload(node: HierarchyNode) -> Dict[str, Any]:
    return {
        "module": node.module_name,
        "label": node.label,
        "kind": node.kind.value,
        "instance": node.instance_name,
        "definition": _location_payload(node.definition_location),
        "instantiated_at": _location_payload(node.instance_location),
        "children": [hierarchy_to_payload(child) for child in node.children],
    }


def hierarchy_to_json(forest: List[HierarchyNode]) -> str:
    return json.dumps({"roots": [hierarchy_to_payload(root) for root in forest]}, indent=2)


def export_hierarchy(forest: List[HierarchyNode], output_file: Path, fmt: str = "dot") -> None:
    if fmt == "dot":
        output_file.write_text(hierarchy_to_dot(forest), encoding="utf-8")
    elif fmt == "json":
        output_file.write_text(hierarchy_to_json(forest), encoding="utf-8")
    else:
        raise ValueError(f"Unsupported export format '{fmt}' (expected one of {', '.join(EXPORT_FORMATS)})")


def _esc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')
