"""
User-friendly error messages and validation.
"""

from pathlib import Path
from typing import Optional

from rich.console import Console

console = Console(stderr=True)


class ValidationError(Exception):
    """Base class for validation errors."""

    pass


def validate_relative_id(rel_path: str) -> str:
    """Selection ids are stored relative to the root."""
    if not rel_path or Path(rel_path).is_absolute():
        console.print(f"[red]❌ Error:[/red] {rel_path!r} is not a path relative to the root")
        console.print(
            "\n[yellow]💡 Tip:[/yellow] Give the path as shown under the root, e.g. src/main.py"
        )
        raise ValidationError(f"Not a relative path: {rel_path!r}")
    return Path(rel_path).as_posix()


def validate_line_range(line_from: Optional[int], line_to: Optional[int]) -> None:
    if line_from is None and line_to is None:
        return

    if line_from is None or line_to is None:
        console.print("[red]❌ Error:[/red] --from and --to must be given together")
        raise ValidationError("Incomplete line range")

    if line_from < 1 or line_to < line_from:
        console.print(f"[red]❌ Error:[/red] Invalid line range {line_from}-{line_to}")
        console.print("\n[yellow]💡 Tip:[/yellow] Lines start at 1 and --to must not precede --from")
        raise ValidationError(f"Invalid line range {line_from}-{line_to}")


def show_no_root_help():
    """Show helpful message when no root was given or remembered."""
    console.print("[red]❌ Error:[/red] No root directory given")
    console.print("\n[cyan]Either:[/cyan]")
    console.print("  • Pass the directory: [dim]treedump scan PATH[/dim]")
    console.print("  • Or remember one:    [dim]treedump open PATH[/dim]")


def show_no_selection_help():
    """Show helpful message when nothing is selected."""
    console.print("\n[yellow]ℹ️  Nothing selected yet[/yellow]")
    console.print(
        "\n[yellow]💡 Tip:[/yellow] Select a file with [dim]treedump select REL_PATH[/dim]"
    )
