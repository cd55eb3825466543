import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from treedump.config import load_current_path, save_current_path
from treedump.errors import (
    ValidationError,
    show_no_root_help,
    show_no_selection_help,
    validate_line_range,
    validate_relative_id,
)
from treedump.matcher import parse_ignore_patterns
from treedump.models import SelectionRecord, TreeNode
from treedump.scanner import iter_nodes, persist, scan
from treedump.sidecar import parse_sidecar, read_sidecar, sidecar_path

app = typer.Typer(help="treedump: Scan a directory tree and keep a persistent file selection")
console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed output"),
):
    """
    Select files in a directory tree and keep the selection next to it.
    """
    _configure_logging(verbose)


def _resolve_root(path: Optional[str]) -> Path:
    if not path:
        path = load_current_path()
    if not path:
        show_no_root_help()
        raise typer.Exit(code=1)

    root = Path(path).expanduser().absolute()
    if not root.is_dir():
        problem = "not found" if not root.exists() else "is not a directory"
        console.print(f"[bold red]Error:[/bold red] Root directory {problem}: {escape(str(root))}")
        raise typer.Exit(code=1)
    return root


def _node_label(node: TreeNode) -> str:
    mark = "[green]✔[/green]" if node.checked else "[dim]·[/dim]"
    name = escape(node.label)
    if node.is_directory:
        name = f"[bold blue]{name}/[/bold blue]"
    label = f"{mark} {name}"
    if node.line_from is not None or node.line_to is not None:
        label += f" [cyan](lines {node.line_from or '?'}-{node.line_to or '?'})[/cyan]"
    return label


def _add_branch(branch: Tree, nodes) -> None:
    for node in nodes:
        child = branch.add(_node_label(node))
        if node.children:
            _add_branch(child, node.children)


def _save(root: Path, files: List[SelectionRecord], ignore_patterns: str) -> None:
    result = persist(root, files, ignore_patterns)
    if not result.success:
        console.print(f"[bold red]Error:[/bold red] Could not save selection: {result.error}")
        raise typer.Exit(code=1)
    console.print(f"[bold green]✓[/bold green] Saved to: {result.path}")


@app.command("scan")
def scan_command(
    path: Optional[str] = typer.Argument(None, help="Directory to scan (default: last opened)"),
    json_output: bool = typer.Option(False, "--json", help="Print the scan result as JSON"),
):
    """
    Scan a directory and show its tree with the saved selection.
    """
    root = _resolve_root(path)
    result = scan(root)

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return

    tree = Tree(f"[bold]{escape(str(root))}[/bold]")
    _add_branch(tree, result.tree)
    console.print(tree)

    nodes = list(iter_nodes(result.tree))
    directories = sum(1 for node in nodes if node.is_directory)
    stale = result.stale_ids

    console.print(f"\n[bold cyan]Scan Complete![/bold cyan]")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Directories", str(directories))
    table.add_row("Files", str(len(nodes) - directories))
    table.add_row("Selected", str(len(result.selected_ids)))
    table.add_row("  • Missing on disk", f"[yellow]{len(stale)}[/yellow]")
    table.add_row("Ignore Patterns", str(len(parse_ignore_patterns(result.ignore_patterns_text))))

    console.print(table)

    if stale:
        console.print(f"\n[bold yellow]Selected but not found:[/bold yellow]")
        for node_id in stale:
            console.print(f"  [yellow]●[/yellow] {node_id}")

    if not result.selected_ids:
        show_no_selection_help()


@app.command("open")
def open_command(path: str = typer.Argument(..., help="Directory to remember as the root")):
    """
    Remember a directory as the default root for other commands.
    """
    root = _resolve_root(path)
    result = save_current_path(str(root))
    if not result.success:
        console.print(f"[bold red]Error:[/bold red] Could not save config: {result.error}")
        raise typer.Exit(code=1)
    console.print(f"[bold green]✓[/bold green] Current root: {root}")


@app.command()
def select(
    rel_path: str = typer.Argument(..., help="Path relative to the root"),
    root: Optional[str] = typer.Option(None, "--root", help="Root directory (default: last opened)"),
    line_from: Optional[int] = typer.Option(None, "--from", help="First selected line"),
    line_to: Optional[int] = typer.Option(None, "--to", help="Last selected line"),
):
    """
    Add a path to the selection, optionally with a line range.
    """
    root_path = _resolve_root(root)
    try:
        node_id = validate_relative_id(rel_path)
        validate_line_range(line_from, line_to)
    except ValidationError:
        raise typer.Exit(code=1)

    state = parse_sidecar(read_sidecar(root_path))
    files = [record for record in state.files if record.id != node_id]
    files.append(SelectionRecord(id=node_id, line_from=line_from, line_to=line_to))

    present = {node.id for node in iter_nodes(scan(root_path, state.to_dict()).tree)}
    if str(root_path / node_id) not in present:
        console.print(f"[yellow]Warning:[/yellow] {node_id} is not in the scanned tree")

    _save(root_path, files, state.ignore_patterns)


@app.command()
def unselect(
    rel_path: str = typer.Argument(..., help="Path relative to the root"),
    root: Optional[str] = typer.Option(None, "--root", help="Root directory (default: last opened)"),
):
    """
    Remove a path from the selection.
    """
    root_path = _resolve_root(root)
    try:
        node_id = validate_relative_id(rel_path)
    except ValidationError:
        raise typer.Exit(code=1)

    state = parse_sidecar(read_sidecar(root_path))
    files = [record for record in state.files if record.id != node_id]
    if len(files) == len(state.files):
        console.print(f"[yellow]{node_id} was not selected[/yellow]")
        return

    _save(root_path, files, state.ignore_patterns)


@app.command()
def ignore(
    root: Optional[str] = typer.Option(None, "--root", help="Root directory (default: last opened)"),
    add: Optional[List[str]] = typer.Option(None, "--add", help="Pattern to append"),
    clear: bool = typer.Option(False, "--clear", help="Remove all ignore patterns"),
):
    """
    Show or edit the ignore patterns saved for a root.
    """
    root_path = _resolve_root(root)
    state = parse_sidecar(read_sidecar(root_path))

    if not add and not clear:
        if state.ignore_patterns:
            typer.echo(state.ignore_patterns)
        else:
            console.print("[dim]No ignore patterns[/dim]")
        return

    text = "" if clear else state.ignore_patterns
    if add:
        lines = [text] if text else []
        lines.extend(add)
        text = "\n".join(lines)

    _save(root_path, state.files, text)


@app.command()
def status(
    root: Optional[str] = typer.Option(None, "--root", help="Root directory (default: last opened)"),
):
    """
    Print the saved selection without scanning.
    """
    root_path = _resolve_root(root)
    raw = read_sidecar(root_path)
    if raw is None:
        console.print(f"[dim]No sidecar at {sidecar_path(root_path)}[/dim]")
        show_no_selection_help()
        return

    state = parse_sidecar(raw)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Path", style="cyan")
    table.add_column("Lines", style="green")
    for record in state.files:
        lines = ""
        if record.line_from is not None or record.line_to is not None:
            lines = f"{record.line_from or '?'}-{record.line_to or '?'}"
        table.add_row(record.id, lines)
    console.print(table)

    patterns = parse_ignore_patterns(state.ignore_patterns)
    console.print(f"\n[bold]Ignore Patterns:[/bold] {len(patterns)}")
    for pattern in patterns:
        console.print(f"  • {pattern}")


if __name__ == "__main__":
    app()
