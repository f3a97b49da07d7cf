"""Tests for DesignIndex aggregation and queries."""

import pytest

from vetree_cli.design_index import build_design_index, empty_index, find_definitions, module_ports


SOURCES = {
    "rtl/a.v": "module leaf(input clk);\nendmodule\nmodule top;\n  leaf u_leaf (.clk(clk));\nendmodule\n",
    "alt/b.v": "module leaf(input clk, output q);\nendmodule\n",
    "rtl/c.v": "module lone;\nendmodule\n",
}


@pytest.fixture
def index(make_index):
    return make_index(SOURCES)


def test_modules_keep_discovery_order(index):
    """Test that modules keep file order."""
    assert [(m.name, m.file_path) for m in index.modules] == [
        ("leaf", "rtl/a.v"),
        ("top", "rtl/a.v"),
        ("leaf", "alt/b.v"),
        ("lone", "rtl/c.v"),
    ]
    assert index.module_count == 4
    assert len(index) == 4


def test_duplicates_are_kept_side_by_side(index):
    """Test duplicate module names."""
    definitions = index.definitions("leaf")
    assert [m.file_path for m in definitions] == ["rtl/a.v", "alt/b.v"]
    assert index.duplicate_names() == {"leaf": 2}


def test_modules_by_file(index):
    """Test grouping modules by file."""
    assert [m.name for m in index.modules_by_file["rtl/a.v"]] == ["leaf", "top"]
    assert index.files() == ["rtl/a.v", "alt/b.v", "rtl/c.v"]


def test_unknown_name_has_no_definitions(index):
    """Test lookup of an unknown name."""
    assert index.definitions("missing") == ()


def test_instantiated_names(index):
    """Test the set of instantiated module names."""
    assert index.instantiated_names() == {"leaf"}


def test_index_is_read_only(index):
    """Test that the index cannot be modified."""
    with pytest.raises(TypeError):
        index.modules_by_name["new"] = ()
    with pytest.raises(TypeError):
        index.modules_by_file["new.v"] = ()
    assert isinstance(index.modules, tuple)


def test_empty_index():
    """Test the empty index."""
    index = empty_index()
    assert index.module_count == 0
    assert index.files() == []
    assert index.duplicate_names() == {}
    assert "modules=0" in repr(index)


def test_find_definitions(index):
    """Test definition lookup by name."""
    locations = find_definitions(index, "leaf")
    assert [str(loc) for loc in locations] == ["rtl/a.v:1:1", "alt/b.v:1:1"]


def test_find_definitions_deduplicates_same_position(index):
    """Test that identical positions are reported once."""
    leaf = index.definitions("leaf")[0]
    doubled = build_design_index([leaf, leaf])
    assert len(find_definitions(doubled, "leaf")) == 1


def test_find_definitions_without_index():
    """Test lookup before any scan."""
    assert find_definitions(None, "leaf") == []


def test_module_ports_variants(index):
    """Test ports per duplicate definition."""
    assert [p.name for p in module_ports(index, "leaf")] == ["clk"]
    assert [p.name for p in module_ports(index, "leaf", variant=1)] == ["clk", "q"]
    assert module_ports(index, "leaf", variant=2) is None
    assert module_ports(index, "missing") is None
