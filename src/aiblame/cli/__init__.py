"""CLI interface using Typer."""

import logging

import typer

app = typer.Typer(name="ai-blame", help="Line-level AI attribution stored in git notes.")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
):
    """Track which lines an AI assistant wrote, per commit."""
    from rich.console import Console
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


# Import subcommand modules to register them
from . import blame_cmds  # noqa: F401, E402
from . import show_cmds  # noqa: F401, E402
from . import capture_cmds  # noqa: F401, E402
from . import notes_cmds  # noqa: F401, E402
from . import setup_cmds  # noqa: F401, E402
