"""Tests for change-set documents and exporters."""

import json
from pathlib import Path

import pytest

from reviewgraph_cli.errors import ChangeSetFormatError
from reviewgraph_cli.graph_export import export_dot, export_json, render_dot
from reviewgraph_cli.loader import (
    change_set_from_dict,
    change_set_to_dict,
    load_change_set,
    result_to_dict,
)
from reviewgraph_cli.models import LayerHint
from reviewgraph_cli.resolver import resolve_order


class TestLoadChangeSet:
    """Reading JSON and TOML change-set documents."""

    def test_load_json(self, change_set_json: Path):
        cs = load_change_set(change_set_json)
        nodes = {n.node_id: n for n in cs.nodes}

        assert cs.node_ids == ["A", "B", "C", "C#run"]
        assert nodes["B"].layer == LayerHint.UTILITY
        assert nodes["C#run"].parent == "C"
        assert [e.as_tuple() for e in cs.edges] == [("C", "A"), ("C", "B")]
        assert cs.override is None

    def test_load_json_resolves(self, change_set_json: Path):
        result = resolve_order(load_change_set(change_set_json))
        assert result.order == ["B", "A", "C", "C#run"]

    def test_load_toml(self, temp_dir: Path):
        path = temp_dir / "changes.toml"
        path.write_text(
            'override = ["b.py"]\n'
            "\n"
            "[[nodes]]\n"
            'id = "a.py"\n'
            'layer = "data_structure"\n'
            "\n"
            "[[nodes]]\n"
            'id = "b.py"\n'
            "\n"
            "[[edges]]\n"
            'from = "b.py"\n'
            'to = "a.py"\n',
            encoding="utf-8",
        )
        cs = load_change_set(path)
        assert cs.nodes[0].layer == LayerHint.DATA_STRUCTURE
        assert cs.override == ("b.py",)
        assert resolve_order(cs).override_conflicts == [("b.py", "a.py")]

    def test_unsupported_extension(self, temp_dir: Path):
        path = temp_dir / "changes.yaml"
        path.write_text("nodes: []\n", encoding="utf-8")
        with pytest.raises(ChangeSetFormatError, match="json or .toml"):
            load_change_set(path)

    def test_invalid_json(self, temp_dir: Path):
        path = temp_dir / "broken.json"
        path.write_text("{nodes: ", encoding="utf-8")
        with pytest.raises(ChangeSetFormatError, match="invalid json"):
            load_change_set(path)

    def test_error_mentions_file(self, temp_dir: Path):
        path = temp_dir / "bad.json"
        path.write_text('{"nodes": [{"name": "x"}]}', encoding="utf-8")
        with pytest.raises(ChangeSetFormatError) as exc_info:
            load_change_set(path)
        assert exc_info.value.source == str(path)
        assert str(path) in str(exc_info.value)


class TestChangeSetFromDict:
    """Validation of the document shape."""

    @pytest.mark.parametrize(
        "data",
        [
            [],
            {"edges": []},
            {"nodes": "a.py"},
            {"nodes": [42]},
            {"nodes": ["a"], "edges": [{"from": "a"}]},
            {"nodes": ["a"], "edges": "a->b"},
            {"nodes": ["a"], "override": "a"},
        ],
    )
    def test_malformed(self, data):
        with pytest.raises(ChangeSetFormatError):
            change_set_from_dict(data)

    def test_unknown_layer(self):
        with pytest.raises(ChangeSetFormatError, match="unknown layer"):
            change_set_from_dict({"nodes": [{"id": "a", "layer": "frontend"}]})

    def test_dict_round_trip_keeps_override(self):
        data = {
            "nodes": [{"id": "a", "layer": "test"}, {"id": "a#f", "parent": "a", "layer": "unknown"}],
            "edges": [{"from": "a#f", "to": "a"}],
            "override": ["a"],
        }
        assert change_set_to_dict(change_set_from_dict(data)) == data


class TestExport:
    """JSON envelope and DOT rendering."""

    def test_result_to_dict(self):
        cs = change_set_from_dict(
            {"nodes": ["X", "Y", "Z"], "edges": [["X", "Y"], ["Y", "X"]], "override": ["Z", "Y"]}
        )
        data = result_to_dict(resolve_order(cs))
        assert data["order"] == ["Z", "Y", "X"]
        assert data["override_applied"] is True
        assert data["override_contradicts_dependencies"] is True
        assert data["override_conflicts"] == [{"dependent": "Y", "dependency": "X"}]
        assert data["entries"][0] == {"kind": "node", "members": ["Z"], "group": None}

    def test_export_json(self, change_set_json: Path, temp_dir: Path):
        result = resolve_order(load_change_set(change_set_json))
        out = temp_dir / "order.json"
        export_json(result, out)
        assert json.loads(out.read_text(encoding="utf-8"))["order"] == result.order

    def test_render_dot_clusters_cycles(self):
        cs = change_set_from_dict({"nodes": ["x", "y", "z"], "edges": [["x", "y"], ["y", "x"], ["z", "x"]]})
        dot = render_dot(cs, resolve_order(cs))
        assert dot.startswith("digraph ReviewOrder {")
        assert "subgraph cluster_0" in dot
        assert '"x" -> "z";' in dot
        assert '"z" [label="3. z\\nunknown"];' in dot

    def test_export_dot_marks_override_conflicts(self, temp_dir: Path):
        cs = change_set_from_dict({"nodes": ["a", "b"], "edges": [["b", "a"]], "override": ["b", "a"]})
        out = temp_dir / "order.dot"
        export_dot(cs, resolve_order(cs), out)
        assert '"a" -> "b" [color=red, label="override"];' in out.read_text(encoding="utf-8")

    def test_render_dot_escapes_backslashes(self):
        cs = change_set_from_dict({"nodes": ["a\\", 'q"b'], "edges": [['q"b', "a\\"]]})
        dot = render_dot(cs, resolve_order(cs))
        assert '"a\\\\" -> "q\\"b";' in dot
        assert '"a\\\\" [label="1. a\\\\\\nunknown"];' in dot
