"""Read and write change-set documents (JSON or TOML).

Document shape::

    {
      "nodes": ["a.py", {"id": "a.py#f", "parent": "a.py", "layer": "utility"}],
      "edges": [{"from": "b.py", "to": "a.py"}, ["c.py", "a.py"]],
      "override": ["c.py", "b.py"]
    }
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from .errors import ChangeSetFormatError
from .models import ChangeSet, Edge, LayerHint, Node, ResolutionResult


def load_change_set(path: Path) -> ChangeSet:
    """Load a change-set from a ``.json`` or ``.toml`` file."""
    suffix = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ChangeSetFormatError(f"cannot read file: {exc}", source=str(path)) from exc

    try:
        if suffix == ".toml":
            data = toml.loads(text)
        elif suffix == ".json":
            data = json.loads(text)
        else:
            raise ChangeSetFormatError("expected a .json or .toml file", source=str(path))
    except (json.JSONDecodeError, toml.TomlDecodeError) as exc:
        raise ChangeSetFormatError(f"invalid {suffix[1:]}: {exc}", source=str(path)) from exc

    try:
        return change_set_from_dict(data)
    except ChangeSetFormatError as exc:
        raise ChangeSetFormatError(str(exc), source=str(path)) from exc


def change_set_from_dict(data: Any) -> ChangeSet:
    if not isinstance(data, dict):
        raise ChangeSetFormatError("document must be an object with a 'nodes' list")
    raw_nodes = data.get("nodes")
    if not isinstance(raw_nodes, list):
        raise ChangeSetFormatError("'nodes' must be a list")

    nodes = [_node_from_raw(item) for item in raw_nodes]
    edges = [_edge_from_raw(item) for item in _as_list(data.get("edges", []), "edges")]

    override: Optional[List[str]] = None
    if data.get("override") is not None:
        override = [str(item) for item in _as_list(data["override"], "override")]
    return ChangeSet.build(nodes, edges, override)


def change_set_to_dict(change_set: ChangeSet) -> Dict[str, Any]:
    nodes: List[Any] = []
    for node in change_set.nodes:
        item: Dict[str, Any] = {"id": node.node_id, "layer": node.layer.value}
        if node.parent is not None:
            item["parent"] = node.parent
        nodes.append(item)
    data: Dict[str, Any] = {
        "nodes": nodes,
        "edges": [{"from": e.src, "to": e.dst} for e in change_set.edges],
    }
    if change_set.override is not None:
        data["override"] = list(change_set.override)
    return data


def result_to_dict(result: ResolutionResult) -> Dict[str, Any]:
    return {
        "order": result.order,
        "entries": [
            {"kind": entry.kind, "members": list(entry.members), "group": entry.group}
            for entry in result.entries
        ],
        "cycle_groups": [list(group) for group in result.cycle_groups],
        "override_applied": result.override_applied,
        "override_contradicts_dependencies": result.override_contradicts_dependencies,
        "override_conflicts": [{"dependent": a, "dependency": b} for a, b in result.override_conflicts],
        "nesting_conflicts": [{"child": a, "parent": b} for a, b in result.nesting_conflicts],
    }


def _as_list(value: Any, field_name: str) -> List[Any]:
    if not isinstance(value, list):
        raise ChangeSetFormatError(f"'{field_name}' must be a list")
    return value


def _node_from_raw(item: Any) -> Node:
    if isinstance(item, str):
        return Node(item)
    if not isinstance(item, dict) or not isinstance(item.get("id"), str):
        raise ChangeSetFormatError(f"node entries must be strings or objects with an 'id': {item!r}")

    layer = LayerHint.UNKNOWN
    if item.get("layer") is not None:
        try:
            layer = LayerHint.parse(str(item["layer"]))
        except ValueError:
            raise ChangeSetFormatError(
                f"node '{item['id']}' has unknown layer '{item['layer']}'"
            ) from None
    parent = item.get("parent")
    return Node(item["id"], parent=str(parent) if parent is not None else None, layer=layer)


def _edge_from_raw(item: Any) -> Edge:
    if isinstance(item, dict) and "from" in item and "to" in item:
        return Edge(str(item["from"]), str(item["to"]))
    if isinstance(item, (list, tuple)) and len(item) == 2:
        return Edge(str(item[0]), str(item[1]))
    raise ChangeSetFormatError(f"edges must be {{from, to}} objects or pairs: {item!r}")
