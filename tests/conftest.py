"""Pytest configuration and fixtures for ReviewGraph tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from reviewgraph_cli.models import ChangeSet, Edge, LayerHint, Node


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture(autouse=True)
def temp_config(temp_dir: Path, monkeypatch) -> Path:
    """Point the config layer at a throwaway directory.

    Autouse so no test ever reads or writes the real ~/.reviewgraph.
    """
    base_dir = temp_dir / "home"
    config_file = base_dir / "config.toml"

    # config_manager copies the paths at import time
    monkeypatch.setattr("reviewgraph_cli.config.BASE_DIR", base_dir)
    monkeypatch.setattr("reviewgraph_cli.config.CONFIG_FILE", config_file)
    monkeypatch.setattr("reviewgraph_cli.config_manager.BASE_DIR", base_dir)
    monkeypatch.setattr("reviewgraph_cli.config_manager.CONFIG_FILE", config_file)

    return config_file


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to sample test project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def layered_change_set() -> ChangeSet:
    """A small web-app style change-set with one import cycle."""
    nodes = [
        Node("app/main.py", layer=LayerHint.ENTRY_POINT),
        Node("app/models.py", layer=LayerHint.DATA_STRUCTURE),
        Node("app/utils.py", layer=LayerHint.UTILITY),
        Node("app/service.py", layer=LayerHint.BUSINESS_LOGIC),
        Node("app/repo.py", layer=LayerHint.DATA_ACCESS),
        Node("app/cache.py", layer=LayerHint.DATA_ACCESS),
        Node("tests/test_service.py", layer=LayerHint.TEST),
    ]
    edges = [
        Edge("app/main.py", "app/service.py"),
        Edge("app/service.py", "app/repo.py"),
        Edge("app/service.py", "app/utils.py"),
        Edge("app/repo.py", "app/models.py"),
        Edge("app/repo.py", "app/cache.py"),
        Edge("app/cache.py", "app/repo.py"),
        Edge("tests/test_service.py", "app/service.py"),
    ]
    return ChangeSet.build(nodes, edges)


@pytest.fixture
def change_set_json(temp_dir: Path) -> Path:
    """A change-set document on disk."""
    path = temp_dir / "changes.json"
    path.write_text(
        """{
  "nodes": [
    "A",
    {"id": "B", "layer": "utility"},
    {"id": "C", "layer": "entry-point"},
    {"id": "C#run", "parent": "C"}
  ],
  "edges": [{"from": "C", "to": "A"}, ["C", "B"]]
}
""",
        encoding="utf-8",
    )
    return path
