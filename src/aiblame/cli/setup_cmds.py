"""Setup and configuration commands."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape

from . import app

console = Console()


@app.command()
def init(
    no_refspecs: bool = typer.Option(False, "--no-refspecs", help="Do not configure push/fetch of the notes ref"),
    no_agent_hooks: bool = typer.Option(False, "--no-agent-hooks", help="Do not register assistant capture hooks"),
    remote: str = typer.Option("origin", "--remote", help="Remote to configure refspecs for"),
):
    """Install git hooks and configure the notes ref in the current repo."""
    from ..core.config import load_config
    from ..core.git_utils import find_git_root
    from ..core.notes import normalize_notes_ref
    from ..core.setup import configure_notes_refspecs, install_agent_hooks, install_git_hooks

    repo_path = find_git_root()
    if not repo_path:
        console.print("[red]Not in a git repository.[/red]")
        raise typer.Exit(1)

    config = load_config(repo_path)
    notes_ref = normalize_notes_ref(config["notes"]["ref"])

    for name, outcome in install_git_hooks(repo_path).items():
        if outcome == "present":
            console.print(f"  {name} hook: already installed")
        else:
            console.print(f"  [green]{name} hook: {outcome}[/green]")

    if not no_refspecs:
        added = configure_notes_refspecs(repo_path, notes_ref, remote=remote)
        for key, was_added in added.items():
            state = "[green]added[/green]" if was_added else "already configured"
            console.print(f"  {key} {escape(notes_ref)}: {state}")

    if not no_agent_hooks:
        path = install_agent_hooks(repo_path, config["capture"]["tools"])
        console.print(f"  [green]Capture hooks registered[/green] in {escape(str(path.relative_to(repo_path)))}")

    console.print(f"[green]ai-blame initialized[/green] in {escape(repo_path)}")


@app.command()
def config(
    key: str | None = typer.Argument(None, help="Config key (dotted notation, e.g. notes.ref)"),
    value: str | None = typer.Argument(None, help="Value to set"),
    global_: bool = typer.Option(False, "--global", help="Write to the user config instead of the repo"),
):
    """Get or set configuration."""
    from ..core.config import get_config_value, load_config, save_config
    from ..core.git_utils import find_git_root

    repo_path = find_git_root()

    if key is None:
        cfg = load_config(repo_path)
        console.print_json(data=cfg)
        return

    if value is None:
        cfg = load_config(repo_path)
        val = get_config_value(cfg, key)
        if val is None:
            console.print(f"[yellow]Key not found:[/yellow] {key}")
        else:
            console.print(f"{key} = {val}")
        return

    save_config(None if global_ else repo_path, key, value)
    console.print(f"[green]Set[/green] {key} = {value}")
