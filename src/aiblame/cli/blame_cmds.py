"""Blame/prompt commands."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import app

console = Console()


def _parse_line_range(lines: str) -> tuple[int, int]:
    parts = lines.split(",")
    try:
        if len(parts) == 2:
            return int(parts[0]), int(parts[1])
        if len(parts) == 1:
            return int(parts[0]), int(parts[0])
    except ValueError:
        pass
    raise typer.BadParameter("-L expects START,END or LINE")


@app.command("blame")
def blame_cmd(
    file: str = typer.Argument(..., help="File path to show attribution for"),
    rev: str = typer.Option("HEAD", "--rev", "-r", help="Revision to blame"),
    summary: bool = typer.Option(False, "--summary", "-s", help="Show aggregated stats only"),
    lines: Optional[str] = typer.Option(None, "-L", help="Line range (e.g. 10,20)"),
):
    """Show per-line human/AI attribution for a file."""
    from ..core.blame import blame_file, summarize_blame
    from ..core.errors import AiBlameError
    from ..core.git_utils import find_git_root, to_repo_relative

    repo_path = find_git_root()
    if not repo_path:
        console.print("[red]Not in a git repository.[/red]")
        raise typer.Exit(1)

    start_line = end_line = None
    if lines:
        start_line, end_line = _parse_line_range(lines)

    rel_path = to_repo_relative(repo_path, str(Path(file).absolute()))
    try:
        result = list(blame_file(repo_path, rel_path, rev, start_line=start_line, end_line=end_line))
    except AiBlameError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if not result:
        console.print(f"[dim]No lines to blame in {rel_path}[/dim]")
        return

    if summary:
        stats = summarize_blame(result)
        console.print(f"\n[bold]Attribution Summary: {escape(rel_path)}[/bold]")
        console.print(f"  Total lines: {stats['total_lines']}")
        console.print(f"  Human: {stats['human_lines']} ({stats['human_pct']}%)")
        console.print(f"  AI: {stats['ai_lines']} ({stats['ai_pct']}%)")
        if stats["tools"]:
            console.print("\n  [bold]Tool breakdown:[/bold]")
            for tool, count in sorted(stats["tools"].items(), key=lambda kv: -kv[1]):
                console.print(f"    {escape(tool)}: {count} lines")
        return

    table = Table(title=f"Attribution: {rel_path}")
    table.add_column("Line", justify="right", style="dim")
    table.add_column("Commit", style="dim")
    table.add_column("Type")
    table.add_column("Tool", style="cyan")
    table.add_column("Session", style="dim", max_width=12)
    table.add_column("Code", overflow="ellipsis", no_wrap=True)

    for line in result:
        type_style = "[blue]ai[/blue]" if line.is_ai else "[green]human[/green]"
        table.add_row(
            str(line.line_number),
            line.commit[:8],
            type_style,
            escape(line.tool or ""),
            escape((line.session_id or "")[:12]),
            escape(line.content),
        )

    console.print(table)


@app.command("prompt")
def prompt_cmd(
    file: str = typer.Argument(..., help="File path"),
    line: int = typer.Argument(..., help="Line number"),
    rev: str = typer.Option("HEAD", "--rev", "-r", help="Revision to blame"),
):
    """Show the prompt that produced a line."""
    from ..core.blame import blame_file
    from ..core.config import load_config
    from ..core.errors import AiBlameError
    from ..core.git_utils import find_git_root, to_repo_relative

    repo_path = find_git_root()
    if not repo_path:
        console.print("[red]Not in a git repository.[/red]")
        raise typer.Exit(1)

    rel_path = to_repo_relative(repo_path, str(Path(file).absolute()))
    try:
        blame = blame_file(repo_path, rel_path, rev, start_line=line, end_line=line)
        blamed = next(iter(blame), None)
    except AiBlameError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if blamed is None or not blamed.is_ai:
        console.print(f"[dim]{escape(rel_path)}:{line} has no AI attribution.[/dim]")
        return

    console.print(f"[bold]{escape(rel_path)}:{line}[/bold] ({blamed.commit[:8]})")
    console.print(f"  Tool: {escape(blamed.tool or 'unknown')}")
    console.print(f"  Session: {escape(blamed.session_id or 'unknown')}")

    text = blame.prompt_text(blamed)
    if text is None:
        console.print("[yellow]  Prompt text not recorded.[/yellow]")
        return

    max_chars = int(load_config(repo_path)["display"]["max_prompt_chars"])
    if max_chars and len(text) > max_chars:
        text = text[:max_chars] + "…"
    console.print("\n[bold]Prompt:[/bold]")
    console.print(escape(text))
