"""Typer-based CLI for vetree structural HDL indexing."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from . import __version__
from .config import ScanOptions
from .cli_watch import watch
from .config_manager import load_scan_options
from .connections import find_connections
from .design_index import find_definitions
from .graph_export import EXPORT_FORMATS, export_hierarchy
from .hierarchy import HierarchyBuilder
from .models import DesignIndex, HierarchyNode, NodeKind, ResolveStrategy, ScanResult
from .parser import scan_project
from .preprocessor import parse_define_args, read_filelist_defines

console = Console()

app = typer.Typer(
    help="🌳 vetree: module index and instantiation hierarchy for Verilog/SystemVerilog.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register watch mode as a direct command
app.command("watch")(watch)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"vetree v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable debug logging."),
):
    """vetree: structural indexing without a compiler front end."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


# ===================================================================
# Shared scan plumbing
# ===================================================================

PathArg = typer.Argument(..., exists=True, file_okay=False, help="Root of the HDL source tree.")
DefineOpt = typer.Option(None, "--define", "-D", help="Predefine a preprocessor symbol (repeatable).")
FilelistOpt = typer.Option(
    None, "--filelist", "-f", exists=True, dir_okay=False, help="Filelist with +define+ entries.",
)
NoPreprocessOpt = typer.Option(False, "--no-preprocess", help="Skip conditional compilation (faster, less exact).")
MaxSizeOpt = typer.Option(None, "--max-file-size", help="Skip files larger than this many MB.")
ResolveOpt = typer.Option(
    None, "--resolve", "-r", help="Duplicate module names: expand all definitions or only the first.",
)


def _resolve_options(project_root: Path, **overrides) -> ScanOptions:
    try:
        return load_scan_options(project_root).merged(**overrides)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _collect_defines(defines: Optional[List[str]], filelist: Optional[Path]) -> List[str]:
    names = set(parse_define_args(defines or []))
    if filelist is not None:
        names |= read_filelist_defines(filelist.read_text(encoding="utf-8", errors="replace"))
    return sorted(names)


def _scan(
    project_root: Path,
    defines: Optional[List[str]],
    filelist: Optional[Path],
    no_preprocess: bool,
    max_file_size: Optional[float],
    **overrides,
) -> Tuple[ScanResult, ScanOptions]:
    options = _resolve_options(
        project_root,
        enable_preprocess=False if no_preprocess else None,
        max_file_size_mb=max_file_size,
        **overrides,
    )
    result = scan_project(project_root, options, _collect_defines(defines, filelist))
    return result, options


def _require_module(index: DesignIndex, name: str) -> None:
    if not index.definitions(name):
        raise typer.BadParameter(f"Module '{name}' not found in index.")


# ===================================================================
# Commands
# ===================================================================

@app.command("index")
def index_project(
    project_path: Path = PathArg,
    define: Optional[List[str]] = DefineOpt,
    filelist: Optional[Path] = FilelistOpt,
    no_preprocess: bool = NoPreprocessOpt,
    max_file_size: Optional[float] = MaxSizeOpt,
):
    """Scan a source tree and summarise the module index."""
    result, _ = _scan(project_path, define, filelist, no_preprocess, max_file_size)
    index = result.index

    typer.echo(f"Indexed '{project_path.resolve()}'.")
    typer.echo(f"Modules: {index.module_count} | Files: {len(index.files())}")
    typer.echo(
        f"Scanned: {result.files_scanned} | Failed: {result.files_failed} | Skipped: {result.files_skipped}"
    )
    duplicates = index.duplicate_names()
    if duplicates:
        names = ", ".join(f"{name} ({count})" for name, count in sorted(duplicates.items()))
        typer.echo(f"Warning: {len(duplicates)} module name(s) defined more than once: {names}")


@app.command("modules")
def list_modules(
    project_path: Path = PathArg,
    file_filter: Optional[str] = typer.Option(None, "--file", help="Only modules from files containing this text."),
    define: Optional[List[str]] = DefineOpt,
    filelist: Optional[Path] = FilelistOpt,
    no_preprocess: bool = NoPreprocessOpt,
    max_file_size: Optional[float] = MaxSizeOpt,
):
    """List every indexed module with its ports and instance counts."""
    result, _ = _scan(project_path, define, filelist, no_preprocess, max_file_size)
    modules = [m for m in result.index.modules if not file_filter or file_filter in m.file_path]
    if not modules:
        typer.echo("No modules found.")
        raise typer.Exit(code=0)

    table = Table(title="Modules")
    table.add_column("Module", style="bold cyan")
    table.add_column("File")
    table.add_column("Line", justify="right")
    table.add_column("Ports", justify="right")
    table.add_column("Instances", justify="right")
    for module in modules:
        table.add_row(
            escape(module.name),
            escape(module.file_path),
            str(module.location.line + 1),
            str(len(module.ports)),
            str(len(module.instances)),
        )
    console.print(table)


@app.command("files")
def file_tree(
    project_path: Path = PathArg,
    define: Optional[List[str]] = DefineOpt,
    filelist: Optional[Path] = FilelistOpt,
    no_preprocess: bool = NoPreprocessOpt,
    max_file_size: Optional[float] = MaxSizeOpt,
):
    """Show folders, files and the modules each file defines."""
    result, _ = _scan(project_path, define, filelist, no_preprocess, max_file_size)
    tree = Tree(f"📁 {escape(project_path.resolve().name)}")
    folders: Dict[Tuple[str, ...], Tree] = {(): tree}

    for file_id in sorted(result.files):
        parts = tuple(file_id.split("/"))
        for depth in range(1, len(parts)):
            key = parts[:depth]
            if key not in folders:
                folders[key] = folders[parts[:depth - 1]].add(f"📁 {escape(parts[depth - 1])}")
        file_node = folders[parts[:-1]].add(f"📄 {escape(parts[-1])}")
        for module in result.index.modules_by_file.get(file_id, ()):
            file_node.add(f"[cyan]module[/cyan] {escape(module.name)} [dim]:{module.location.line + 1}[/dim]")

    console.print(tree)


@app.command("ports")
def show_ports(
    project_path: Path = PathArg,
    module_name: str = typer.Argument(..., help="Module whose ports to list."),
    variant: int = typer.Option(0, "--variant", help="Which definition to use when the name is duplicated."),
    define: Optional[List[str]] = DefineOpt,
    filelist: Optional[Path] = FilelistOpt,
    no_preprocess: bool = NoPreprocessOpt,
    max_file_size: Optional[float] = MaxSizeOpt,
):
    """List the header ports of a module."""
    result, _ = _scan(project_path, define, filelist, no_preprocess, max_file_size)
    _require_module(result.index, module_name)
    definitions = result.index.definitions(module_name)
    if not 0 <= variant < len(definitions):
        raise typer.BadParameter(f"Module '{module_name}' has {len(definitions)} definition(s).")

    target = definitions[variant]
    if len(definitions) > 1:
        typer.echo(
            f"Module '{module_name}' has {len(definitions)} definitions; "
            f"showing variant {variant} from {target.file_path}."
        )
    if not target.ports:
        typer.echo(f"Module '{module_name}' has no parsed ports.")
        return

    table = Table(title=f"Ports of {escape(module_name)}")
    table.add_column("Direction")
    table.add_column("Name", style="bold")
    table.add_column("Range")
    table.add_column("Location", style="dim")
    for port in target.ports:
        table.add_row(
            port.direction.value,
            escape(port.name),
            escape(port.range_text or ""),
            escape(str(port.location)),
        )
    console.print(table)


@app.command("definition")
def show_definition(
    project_path: Path = PathArg,
    name: str = typer.Argument(..., help="Module name to locate."),
    define: Optional[List[str]] = DefineOpt,
    filelist: Optional[Path] = FilelistOpt,
    no_preprocess: bool = NoPreprocessOpt,
    max_file_size: Optional[float] = MaxSizeOpt,
):
    """Print every definition site of a module."""
    result, _ = _scan(project_path, define, filelist, no_preprocess, max_file_size)
    locations = find_definitions(result.index, name)
    if not locations:
        typer.echo(f"Module '{name}' definition not found.")
        raise typer.Exit(code=1)
    for loc in locations:
        typer.echo(str(loc))


def _render_node(node: HierarchyNode, branch: Tree) -> None:
    style = {
        NodeKind.MODULE: "bold",
        NodeKind.CYCLE: "red",
        NodeKind.DEPTH_LIMIT: "yellow",
        NodeKind.EXTERNAL: "dim",
    }[node.kind]
    label = f"[{style}]{escape(node.label)}[/{style}]"
    target = node.navigation_target
    if target is not None:
        label += f" [dim]{escape(str(target))}[/dim]"
    child_branch = branch.add(label)
    for child in node.children:
        _render_node(child, child_branch)


@app.command("hierarchy")
def show_hierarchy(
    project_path: Path = PathArg,
    top: Optional[str] = typer.Option(None, "--top", "-t", help="Only expand this top module."),
    depth: Optional[int] = typer.Option(None, "--depth", "-d", min=0, help="Maximum hierarchy depth."),
    resolve: Optional[ResolveStrategy] = ResolveOpt,
    show_stats: bool = typer.Option(False, "--stats", help="Print build statistics."),
    define: Optional[List[str]] = DefineOpt,
    filelist: Optional[Path] = FilelistOpt,
    no_preprocess: bool = NoPreprocessOpt,
    max_file_size: Optional[float] = MaxSizeOpt,
):
    """Show the instantiation tree below every root module."""
    result, options = _scan(
        project_path, define, filelist, no_preprocess, max_file_size,
        hierarchy_top_module=top,
        max_hierarchy_depth=depth,
        hierarchy_resolve=resolve,
    )
    builder = HierarchyBuilder(
        result.index,
        max_depth=options.max_hierarchy_depth,
        resolve=options.hierarchy_resolve,
        top_module=options.hierarchy_top_module,
    )
    forest = builder.build()
    if not forest:
        typer.echo("No root modules found.")
        raise typer.Exit(code=0)

    tree = Tree("🌳 [bold]Hierarchy[/bold]")
    for root in forest:
        _render_node(root, tree)
    console.print(tree)

    duplicates = result.index.duplicate_names()
    if duplicates and options.hierarchy_resolve is ResolveStrategy.ALL:
        typer.echo(f"Note: {len(duplicates)} module name(s) have several definitions; all are expanded.")
    if show_stats:
        stats = builder.stats.as_dict()
        typer.echo(" | ".join(f"{key}: {value}" for key, value in stats.items()))


@app.command("connections")
def show_connections(
    project_path: Path = PathArg,
    parent: str = typer.Argument(..., help="Module containing both instances."),
    instance_a: str = typer.Argument(..., help="First instance name."),
    instance_b: str = typer.Argument(..., help="Second instance name."),
    define: Optional[List[str]] = DefineOpt,
    filelist: Optional[Path] = FilelistOpt,
    no_preprocess: bool = NoPreprocessOpt,
    max_file_size: Optional[float] = MaxSizeOpt,
):
    """Show nets directly shared by two sibling instances."""
    result, _ = _scan(project_path, define, filelist, no_preprocess, max_file_size)
    _require_module(result.index, parent)
    matches = find_connections(result.index, parent, instance_a, instance_b)
    if not matches:
        typer.echo(f"No shared nets between '{instance_a}' and '{instance_b}' in '{parent}'.")
        return

    table = Table(title=f"{escape(instance_a)} ↔ {escape(instance_b)}")
    table.add_column("Net", style="bold cyan")
    table.add_column(escape(instance_a))
    table.add_column(escape(instance_b))
    table.add_column("Location", style="dim")
    for match in matches:
        table.add_row(
            escape(match.net),
            escape(f".{match.binding_a.port_name}"),
            escape(f".{match.binding_b.port_name}"),
            escape(str(match.location)),
        )
    console.print(table)


@app.command("export")
def export_command(
    project_path: Path = PathArg,
    output: Path = typer.Argument(..., dir_okay=False, help="Output file."),
    fmt: str = typer.Option("dot", "--format", help=f"Export format: {', '.join(EXPORT_FORMATS)}."),
    top: Optional[str] = typer.Option(None, "--top", "-t", help="Only expand this top module."),
    depth: Optional[int] = typer.Option(None, "--depth", "-d", min=0, help="Maximum hierarchy depth."),
    resolve: Optional[ResolveStrategy] = ResolveOpt,
    define: Optional[List[str]] = DefineOpt,
    filelist: Optional[Path] = FilelistOpt,
    no_preprocess: bool = NoPreprocessOpt,
    max_file_size: Optional[float] = MaxSizeOpt,
):
    """Write the instantiation hierarchy as DOT or JSON."""
    if fmt not in EXPORT_FORMATS:
        raise typer.BadParameter(f"Unsupported format '{fmt}'.")
    result, options = _scan(
        project_path, define, filelist, no_preprocess, max_file_size,
        hierarchy_top_module=top,
        max_hierarchy_depth=depth,
        hierarchy_resolve=resolve,
    )
    builder = HierarchyBuilder(
        result.index,
        max_depth=options.max_hierarchy_depth,
        resolve=options.hierarchy_resolve,
        top_module=options.hierarchy_top_module,
    )
    export_hierarchy(builder.build(), output, fmt)
    typer.echo(f"Exported hierarchy to {output} ({fmt}).")

