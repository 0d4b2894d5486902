"""
CLI subcommands for the persisted session.

Usage:
    workchat session status
    workchat session end
    workchat session clear
"""

import asyncio

import httpx
import typer

from workchat.config import CONFIG
from workchat.session.dispatcher import FollowUpDispatcher
from workchat.session.store import FileSessionStore

session_app = typer.Typer(help="Inspect or end the persisted session")


def _store() -> FileSessionStore:
    return FileSessionStore(CONFIG.state_file)


async def _notify_end(run_id: str) -> bool:
    async with httpx.AsyncClient(
        base_url=CONFIG.server_url, timeout=CONFIG.timeout
    ) as client:
        return await FollowUpDispatcher(client, api=CONFIG.api_path).notify_end(run_id)


@session_app.command("status")
def session_status():
    """Show the persisted run id."""
    run_id = _store().get()
    if not run_id:
        typer.echo("No active session")
        return
    typer.echo(f"🟢 Active run: {run_id}")
    typer.echo(f"   Server: {CONFIG.server_url}{CONFIG.api_path}")
    typer.echo(f"   State file: {CONFIG.state_file}")


@session_app.command("end")
def session_end():
    """Send the end signal to the persisted run and forget it."""
    store = _store()
    run_id = store.get()
    if not run_id:
        typer.echo("No active session")
        return

    if asyncio.run(_notify_end(run_id)):
        typer.echo(f"✅ Run {run_id} ended")
    else:
        typer.secho(
            f"⚠️  Run {run_id} did not acknowledge the end signal",
            fg=typer.colors.YELLOW,
        )
    store.clear()


@session_app.command("clear")
def session_clear():
    """Forget the persisted run id without contacting the server."""
    _store().clear()
    typer.echo("🧹 Session cleared")
