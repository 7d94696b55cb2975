"""Main CLI entry point."""

import typer
from dotenv import load_dotenv
from rich.console import Console

from .refresh import refresh, show, status

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="themes-tree",
    help="Aggregate GitHub issues and Azure DevOps work items into a themes tree",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()


app.command(name="refresh", context_settings={"help_option_names": ["-h", "--help"]})(
    refresh
)
app.command(name="show", context_settings={"help_option_names": ["-h", "--help"]})(
    show
)
app.command(name="status", context_settings={"help_option_names": ["-h", "--help"]})(
    status
)


@app.command(context_settings={"help_option_names": ["-h", "--help"]})
def version() -> None:
    """Show version information."""
    from themes_tree import __version__

    console.print(f"Themes Tree v{__version__}")


if __name__ == "__main__":
    app()
