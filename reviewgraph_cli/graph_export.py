"""Export helpers for resolved orders: Graphviz DOT and JSON."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Set, Tuple

from .loader import result_to_dict
from .models import ChangeSet, ResolutionResult


def render_dot(change_set: ChangeSet, result: ResolutionResult) -> str:
    """Render the change-set as a DOT digraph laid out in review order.

    Cycle groups become clusters; edges point from dependency to dependent
    so the graph reads in presentation order. Edges an override contradicts
    are drawn in red.
    """
    layers = {node.node_id: node.layer.value for node in change_set.nodes}
    position = {node_id: i + 1 for i, node_id in enumerate(result.order)}
    conflicts: Set[Tuple[str, str]] = set(result.override_conflicts)

    lines = ["digraph ReviewOrder {"]
    lines.append("  rankdir=LR;")
    lines.append('  node [shape=box, fontname="monospace"];')

    clustered: Set[str] = set()
    for idx, members in enumerate(result.cycle_groups):
        lines.append(f"  subgraph cluster_{idx} {{")
        lines.append('    label="mutually dependent";')
        lines.append("    style=dashed;")
        for node_id in members:
            lines.append(f"    {_node_stmt(node_id, position, layers)}")
            clustered.add(node_id)
        lines.append("  }")

    for node_id in result.order:
        if node_id not in clustered:
            lines.append(f"  {_node_stmt(node_id, position, layers)}")

    for edge in sorted({e.as_tuple() for e in change_set.edges}):
        src, dst = edge
        attrs = ' [color=red, label="override"]' if edge in conflicts else ""
        lines.append(f'  "{_esc(dst)}" -> "{_esc(src)}"{attrs};')

    lines.append("}")
    return "\n".join(lines) + "\n"


def export_dot(change_set: ChangeSet, result: ResolutionResult, output_file: Path) -> None:
    output_file.write_text(render_dot(change_set, result), encoding="utf-8")


def export_json(result: ResolutionResult, output_file: Path) -> None:
    output_file.write_text(json.dumps(result_to_dict(result), indent=2) + "\n", encoding="utf-8")


def _node_stmt(node_id: str, position: Dict[str, int], layers: Dict[str, str]) -> str:
    label = f"{position[node_id]}. {_esc(node_id)}\\n{_esc(layers.get(node_id, 'unknown'))}"
    return f'"{_esc(node_id)}" [label="{label}"];'


def _esc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')
