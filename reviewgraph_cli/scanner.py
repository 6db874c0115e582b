"""Build change-sets from Python sources using the built-in ``ast`` module.

File granularity yields one node per file and an edge for every import of
another file in the set. Symbol granularity adds top-level classes and
functions (and methods) as nested nodes, with edges for calls and base
classes that resolve to other symbols in the set.
"""

from __future__ import annotations

import ast
import fnmatch
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from .config import SKIP_DIRS
from .errors import ChangeSetFormatError
from .models import ChangeSet, Edge, LayerHint, Node

logger = logging.getLogger(__name__)

GRANULARITIES = ("file", "symbol")

# Checked in order; the first layer with a matching name token wins.
LAYER_KEYWORDS: List[Tuple[LayerHint, Set[str]]] = [
    (LayerHint.DATA_STRUCTURE, {"models", "model", "schemas", "schema", "types", "entities", "dto"}),
    (LayerHint.CONFIG, {"config", "configs", "settings", "conf", "constants"}),
    (LayerHint.UTILITY, {"utils", "util", "helpers", "helper", "common", "tools"}),
    (LayerHint.DATA_ACCESS, {"db", "database", "repository", "repositories", "storage", "store", "dao", "queries"}),
    (LayerHint.BUSINESS_LOGIC, {"service", "services", "processor", "processors", "logic", "domain", "handlers"}),
    (LayerHint.ORCHESTRATION, {"orchestrator", "workflow", "workflows", "pipeline", "pipelines", "scheduler"}),
    (LayerHint.ENTRY_POINT, {"main", "__main__", "cli", "app", "server", "wsgi", "asgi", "manage"}),
]

CONFIG_SUFFIXES = {".toml", ".yaml", ".yml", ".ini", ".cfg", ".json", ".env"}

DATA_BASES = {"BaseModel", "NamedTuple", "TypedDict", "Enum", "IntEnum", "StrEnum"}

PathLike = Union[str, Path]


def infer_layer(rel_path: str, patterns: Optional[Mapping[str, str]] = None) -> LayerHint:
    """Guess the architectural layer of a file from its path.

    User *patterns* (glob -> layer name) are consulted first, matched
    against both the relative path and the file name.
    """
    name = rel_path.rsplit("/", 1)[-1]
    for pattern, layer in (patterns or {}).items():
        if fnmatch.fnmatch(rel_path, pattern) or fnmatch.fnmatch(name, pattern):
            return LayerHint.parse(layer)

    parts = [p.lower() for p in rel_path.split("/")]
    stem = parts[-1].rsplit(".", 1)[0]
    if (
        stem == "conftest"
        or stem.startswith("test_")
        or stem.endswith("_test")
        or any(p in ("tests", "test") for p in parts[:-1])
    ):
        return LayerHint.TEST

    if "." in name and "." + name.rsplit(".", 1)[1].lower() in CONFIG_SUFFIXES:
        return LayerHint.CONFIG

    # File name first, then enclosing directories from the innermost out.
    for candidate in [stem] + list(reversed(parts[:-1])):
        tokens = set(re.split(r"[_\-.]", candidate)) | {candidate}
        for layer, words in LAYER_KEYWORDS:
            if tokens & words:
                return layer
    return LayerHint.UNKNOWN


@dataclass
class _SourceFile:
    rel_path: str
    module: str
    is_package: bool
    tree: Optional[ast.Module]
    layer: LayerHint


class _ModuleIndex:
    """Maps dotted module names to the scanned files that define them."""

    def __init__(self, sources: Sequence[_SourceFile]) -> None:
        self.by_module = {s.module: s for s in sources if s.module}

    def lookup(self, dotted: str) -> Optional[_SourceFile]:
        if not dotted:
            return None
        hit = self.by_module.get(dotted)
        if hit is not None:
            return hit
        if "." in dotted:
            # src-layout roots: "pkg.models" should match "src.pkg.models"
            suffix = [s for m, s in self.by_module.items() if m.endswith("." + dotted)]
            if len(suffix) == 1:
                return suffix[0]
            return self.lookup(dotted.rsplit(".", 1)[0])
        return None


class ChangeSetScanner:
    """Derives a :class:`ChangeSet` from the Python files under a project root."""

    def __init__(
        self,
        project_root: Path,
        granularity: str = "file",
        layer_patterns: Optional[Mapping[str, str]] = None,
    ) -> None:
        if granularity not in GRANULARITIES:
            raise ValueError(f"granularity must be one of {GRANULARITIES}, got {granularity!r}")
        self.project_root = project_root
        self.granularity = granularity
        self.layer_patterns = {
            pattern: LayerHint.parse(layer).value for pattern, layer in (layer_patterns or {}).items()
        }

    def scan(self, paths: Optional[Sequence[PathLike]] = None) -> ChangeSet:
        """Scan *paths* (default: every Python file under the root)."""
        files = self._collect(paths)
        sources = [self._load(rel) for rel in files]
        index = _ModuleIndex(sources)

        nodes: List[Node] = []
        edges: Set[Tuple[str, str]] = set()
        for src in sources:
            nodes.append(Node(src.rel_path, layer=src.layer))
            for target in self._imported_files(src, index):
                if target != src.rel_path:
                    edges.add((src.rel_path, target))

        if self.granularity == "symbol":
            sym_nodes, sym_edges = self._scan_symbols(sources, index)
            nodes.extend(sym_nodes)
            edges.update(sym_edges)

        logger.info(
            "Scanned %d file(s) under %s: %d node(s), %d edge(s)",
            len(sources),
            self.project_root,
            len(nodes),
            len(edges),
        )
        return ChangeSet.build(nodes, [Edge(src, dst) for src, dst in sorted(edges)])

    # ------------------------------------------------------------------
    # File discovery
    # ------------------------------------------------------------------

    def _collect(self, paths: Optional[Sequence[PathLike]]) -> List[str]:
        root = self.project_root.resolve()
        if paths is None:
            found = []
            for fp in sorted(root.rglob("*.py")):
                rel = fp.relative_to(root)
                if any(part in SKIP_DIRS for part in rel.parts):
                    continue
                found.append(rel.as_posix())
            return found

        selected: List[str] = []
        for raw in paths:
            fp = Path(raw)
            if not fp.is_absolute():
                fp = root / fp
            try:
                rel = fp.resolve().relative_to(root).as_posix()
            except ValueError:
                raise ChangeSetFormatError(f"'{raw}' is outside the project root", source=str(root)) from None
            if rel not in selected:
                selected.append(rel)
        return sorted(selected)

    def _load(self, rel_path: str) -> _SourceFile:
        layer = infer_layer(rel_path, self.layer_patterns)
        if not rel_path.endswith(".py"):
            return _SourceFile(rel_path, "", False, None, layer)

        parts = rel_path[:-3].split("/")
        is_package = parts[-1] == "__init__"
        if is_package:
            parts = parts[:-1]
        module = ".".join(parts)

        fp = self.project_root / rel_path
        tree: Optional[ast.Module] = None
        if not fp.exists():
            logger.info("%s no longer exists; keeping it as an isolated node", rel_path)
        else:
            try:
                tree = ast.parse(fp.read_text(encoding="utf-8", errors="ignore"))
            except (SyntaxError, ValueError, OSError) as exc:
                logger.warning("Failed to parse %s: %s", rel_path, exc)
        return _SourceFile(rel_path, module, is_package, tree, layer)

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------

    def _imported_files(self, src: _SourceFile, index: _ModuleIndex) -> List[str]:
        targets: Set[str] = set()
        for local_target in self._import_table(src, index).values():
            targets.add(local_target[0])
        return sorted(targets)

    def _import_table(self, src: _SourceFile, index: _ModuleIndex) -> Dict[str, Tuple[str, Optional[str]]]:
        """Local name -> (file, imported symbol or ``None`` for a module)."""
        table: Dict[str, Tuple[str, Optional[str]]] = {}
        if src.tree is None:
            return table

        for stmt in ast.walk(src.tree):
            if isinstance(stmt, ast.Import):
                for alias in stmt.names:
                    hit = index.lookup(alias.name)
                    if hit is not None:
                        table[alias.asname or alias.name] = (hit.rel_path, None)
            elif isinstance(stmt, ast.ImportFrom):
                base = _absolute_base(src, stmt.module, stmt.level)
                if base is None:
                    continue
                for alias in stmt.names:
                    local = alias.asname or alias.name
                    submodule = index.by_module.get(f"{base}.{alias.name}" if base else alias.name)
                    if submodule is not None:
                        table[local] = (submodule.rel_path, None)
                        continue
                    hit = index.lookup(base)
                    if hit is not None:
                        symbol = None if alias.name == "*" else alias.name
                        table[local] = (hit.rel_path, symbol)
        return table

    # ------------------------------------------------------------------
    # Symbols
    # ------------------------------------------------------------------

    def _scan_symbols(
        self, sources: Sequence[_SourceFile], index: _ModuleIndex
    ) -> Tuple[List[Node], Set[Tuple[str, str]]]:
        nodes: List[Node] = []
        defs: Dict[str, Dict[str, str]] = {}
        # (node id, definition, enclosing class) for every definition that got a node
        units: Dict[str, List[Tuple[str, ast.AST, Optional[str]]]] = {}

        for src in sources:
            if src.tree is None:
                continue
            table: Dict[str, str] = {}
            found: List[Tuple[str, ast.AST, Optional[str]]] = []
            for stmt in src.tree.body:
                if isinstance(stmt, ast.ClassDef):
                    if stmt.name in table:
                        continue
                    class_id = f"{src.rel_path}#{stmt.name}"
                    table[stmt.name] = class_id
                    found.append((class_id, stmt, None))
                    nodes.append(Node(class_id, parent=src.rel_path, layer=_class_layer(stmt, src.layer)))
                    for item in stmt.body:
                        if not isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
                            continue
                        qual = f"{stmt.name}.{item.name}"
                        if qual in table:
                            continue
                        table[qual] = f"{src.rel_path}#{qual}"
                        found.append((table[qual], item, stmt.name))
                        nodes.append(Node(table[qual], parent=class_id, layer=src.layer))
                elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                    if stmt.name in table:
                        continue
                    table[stmt.name] = f"{src.rel_path}#{stmt.name}"
                    found.append((table[stmt.name], stmt, None))
                    nodes.append(Node(table[stmt.name], parent=src.rel_path, layer=src.layer))
            defs[src.rel_path] = table
            units[src.rel_path] = found

        edges: Set[Tuple[str, str]] = set()
        for src in sources:
            if src.rel_path not in units:
                continue
            table = defs[src.rel_path]
            imported = self._import_table(src, index)
            for owner_id, stmt, owner_class in units[src.rel_path]:
                if isinstance(stmt, ast.ClassDef):
                    names = [n for n in (_ast_name_from_expr(b) for b in stmt.bases) if n]
                else:
                    names = _ast_collect_calls(stmt)
                for name in names:
                    target = _resolve_symbol(name, owner_class, table, imported, defs)
                    if target is not None and target != owner_id:
                        edges.add((owner_id, target))

        return nodes, edges


def _absolute_base(src: _SourceFile, module: Optional[str], level: int) -> Optional[str]:
    """Resolve the package a ``from ... import`` statement reads from."""
    if level == 0:
        return module or ""
    package = src.module.split(".") if src.module else []
    if not src.is_package:
        package = package[:-1]
    if level - 1 > len(package):
        return None
    base = package[: len(package) - (level - 1)]
    if module:
        base = base + module.split(".")
    return ".".join(base)


def _class_layer(node: ast.ClassDef, default: LayerHint) -> LayerHint:
    for deco in node.decorator_list:
        name = _ast_name_from_expr(deco)
        if name and name.split(".")[-1] == "dataclass":
            return LayerHint.DATA_STRUCTURE
    for base in node.bases:
        name = _ast_name_from_expr(base)
        if name and name.split(".")[-1] in DATA_BASES:
            return LayerHint.DATA_STRUCTURE
    return default


def _resolve_symbol(
    name: str,
    owner_class: Optional[str],
    table: Dict[str, str],
    imported: Dict[str, Tuple[str, Optional[str]]],
    defs: Dict[str, Dict[str, str]],
) -> Optional[str]:
    parts = name.split(".")
    if parts[0] in ("self", "cls"):
        if owner_class and len(parts) == 2:
            return table.get(f"{owner_class}.{parts[1]}")
        return None

    if name in table:
        return table[name]
    if len(parts) == 2 and parts[0] in table:
        return table[parts[0]]

    for cut in range(len(parts), 0, -1):
        prefix = ".".join(parts[:cut])
        if prefix not in imported:
            continue
        rel_path, symbol = imported[prefix]
        target = defs.get(rel_path, {})
        remainder = parts[cut:]
        qual = ".".join(([symbol] if symbol else []) + remainder)
        if qual in target:
            return target[qual]
        if symbol and symbol in target:
            return target[symbol]
        if not symbol and remainder and remainder[0] in target:
            return target[remainder[0]]
        return None
    return None


def _ast_collect_calls(node: ast.AST) -> List[str]:
    names: List[str] = []

    class _CV(ast.NodeVisitor):
        def visit_Call(self, call_node: ast.Call) -> None:
            n = _ast_name_from_expr(call_node.func)
            if n:
                names.append(n)
            self.generic_visit(call_node)

    _CV().visit(node)
    return names


def _ast_name_from_expr(expr: ast.AST) -> Optional[str]:
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        parts: List[str] = []
        current: ast.AST = expr
        while isinstance(current, ast.Attribute):
            parts.append(current.attr)
            current = current.value
        if not isinstance(current, ast.Name):
            return None
        parts.append(current.id)
        return ".".join(reversed(parts))
    if isinstance(expr, ast.Call):
        return _ast_name_from_expr(expr.func)
    return None
