"""
workchat CLI.

This package splits CLI commands into focused modules:
- chat:    interactive multi-turn chat
- session: status, end, clear
"""

import typer

from workchat.cli.chat import register_commands
from workchat.cli.session import session_app
from workchat.config import CONFIG
from workchat.logger import setup_logging

app = typer.Typer(help="workchat - multi-turn chat with a workflow run")


def configure_logging(verbose: bool = False):
    """Configure logging for the CLI."""
    setup_logging(level="DEBUG" if verbose else CONFIG.log_level, log_file=CONFIG.log_file)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging (DEBUG level)"
    ),
):
    """
    workchat - multi-turn chat with a workflow run.
    """
    configure_logging(verbose)


register_commands(app)
app.add_typer(session_app, name="session")

if __name__ == "__main__":
    app()
