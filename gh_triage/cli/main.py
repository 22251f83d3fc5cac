"""Main CLI entry point."""

import logging

import typer
from dotenv import load_dotenv
from rich.logging import RichHandler

from .common import console
from .run import run, run_all
from .store_commands import init, status, sync

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="gh-triage",
    help="Mirror GitHub issues locally and enrich them with LLM analyses",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug logging"
    ),
) -> None:
    """Mirror GitHub issues locally and enrich them with LLM analyses."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


app.command(name="init", context_settings={"help_option_names": ["-h", "--help"]})(
    init
)
app.command(name="sync", context_settings={"help_option_names": ["-h", "--help"]})(
    sync
)
app.command(name="status", context_settings={"help_option_names": ["-h", "--help"]})(
    status
)
app.command(name="run", context_settings={"help_option_names": ["-h", "--help"]})(run)
app.command(
    name="run-all", context_settings={"help_option_names": ["-h", "--help"]}
)(run_all)


@app.command(context_settings={"help_option_names": ["-h", "--help"]})
def version() -> None:
    """Show version information."""
    from gh_triage import __version__

    console.print(f"gh-triage v{__version__}")


if __name__ == "__main__":
    app()
