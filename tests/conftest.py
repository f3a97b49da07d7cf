"""Pytest configuration and fixtures for vetree tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator, Iterable, Optional

import pytest

from vetree_cli.config import ScanOptions
from vetree_cli.design_index import build_design_index
from vetree_cli.models import DesignIndex
from vetree_cli.parser import RegexVerilogParser


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture(autouse=True)
def _isolated_user_config(monkeypatch, tmp_path: Path):
    """Point the user config file at an empty temp location.

    A developer's ~/.vetree/config.toml must never change test results.
    """
    monkeypatch.setattr("vetree_cli.config.CONFIG_FILE", tmp_path / "user-config" / "config.toml")


@pytest.fixture
def sample_design_path() -> Path:
    """Get path to the sample HDL design."""
    return Path(__file__).parent / "fixtures" / "sample_design"


@pytest.fixture
def make_index() -> Callable[..., DesignIndex]:
    """Build a DesignIndex from in-memory sources.

    Sources are parsed in dict order with one shared define set, the same
    way a project scan threads defines through its files.
    """

    def _make(
        sources: Dict[str, str],
        defines: Optional[Iterable[str]] = None,
        options: Optional[ScanOptions] = None,
    ) -> DesignIndex:
        parser = RegexVerilogParser(Path("."), options)
        active = set(defines or ())
        modules = []
        for file_id, text in sources.items():
            modules.extend(parser.parse_text(text, file_id, active))
        return build_design_index(modules)

    return _make


@pytest.fixture
def write_sources(temp_dir: Path) -> Callable[[Dict[str, str]], Path]:
    """Write ``{relative_path: text}`` below a fresh project root."""

    def _write(files: Dict[str, str]) -> Path:
        root = temp_dir / "design"
        for rel, text in files.items():
            target = root / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
        root.mkdir(parents=True, exist_ok=True)
        return root

    return _write
