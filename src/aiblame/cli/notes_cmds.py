"""Note maintenance commands: copy-notes, rewrite, post-rewrite."""

from __future__ import annotations

import sys
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from . import app

console = Console()
err_console = Console(stderr=True)


@app.command("copy-notes")
def copy_notes_cmd(
    source: str = typer.Argument(..., help="Commit whose attribution is copied"),
    target: str = typer.Argument(..., help="Commit that receives the attribution"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be copied without writing"),
):
    """Copy a commit's attribution note verbatim to another commit."""
    from ..core.errors import AiBlameError, MissingRecordError
    from ..core.git_utils import find_git_root
    from ..core.notes import NotesRepository

    repo_path = find_git_root()
    if not repo_path:
        console.print("[red]Not in a git repository.[/red]")
        raise typer.Exit(1)

    notes = NotesRepository.for_repo(repo_path)
    try:
        if dry_run:
            source_oid = notes.resolve(source)
            target_oid = notes.resolve(target)
            record = notes.read(source_oid)
            if record is None:
                raise MissingRecordError(source_oid)
            console.print(
                f"Would copy {record.line_count} line(s) in {len(record.paths)} file(s) "
                f"from {source_oid[:8]} to {target_oid[:8]}"
            )
            if notes.has_record(target_oid):
                console.print(f"[yellow]{target_oid[:8]} already has attribution; it would be replaced.[/yellow]")
            return
        copied = notes.copy(source, target)
    except AiBlameError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    console.print(f"Copied {copied.line_count} line(s) of attribution to {copied.commit[:8]}")


@app.command("rewrite")
def rewrite_cmd(
    old: str = typer.Argument(..., help="Commit before the rewrite"),
    new: str = typer.Argument(..., help="Commit after the rewrite"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Compute the remapped attribution without writing"),
):
    """Carry attribution from a rewritten commit to its replacement."""
    from ..core.errors import AiBlameError
    from ..core.git_utils import find_git_root
    from ..core.rewrite import propagate

    repo_path = find_git_root()
    if not repo_path:
        console.print("[red]Not in a git repository.[/red]")
        raise typer.Exit(1)

    try:
        result = propagate(repo_path, old, new, dry_run=dry_run)
    except AiBlameError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    verb = "Would keep" if dry_run else "Kept"
    console.print(
        f"{verb} {result.kept_lines} of {result.source_lines} line(s) "
        f"({result.source[:8]} -> {result.target[:8]})"
    )
    if result.dropped_lines:
        console.print(f"[dim]{result.dropped_lines} line(s) changed by the rewrite lost attribution.[/dim]")


@app.command("post-rewrite")
def post_rewrite_cmd(
    rewrite_type: Optional[str] = typer.Argument(None, help="amend or rebase (passed by git)"),
):
    """Propagate attribution for the `<old> <new>` pairs git writes to stdin (post-rewrite hook)."""
    from ..core.errors import AiBlameError
    from ..core.git_utils import require_git_root
    from ..core.rewrite import parse_rewrite_pairs, propagate_rewrites

    pairs = parse_rewrite_pairs(sys.stdin)
    if not pairs:
        return

    try:
        repo_path = require_git_root()
        results = propagate_rewrites(repo_path, pairs)
    except AiBlameError as e:
        err_console.print(f"[red]ai-blame:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if results:
        kept = sum(r.kept_lines for r in results)
        label = f" after {rewrite_type}" if rewrite_type else ""
        console.print(f"ai-blame: carried {kept} line(s) onto {len(results)} commit(s){label}")
