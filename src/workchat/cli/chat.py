"""
Interactive chat command.

Usage:
    workchat chat
    workchat chat "first message"

Inside the prompt, ``/end`` ends the session and ``/quit`` exits while
leaving the run resumable.
"""

import asyncio
from typing import Optional

import typer

from workchat.errors import FollowUpRejected
from workchat.models import Message
from workchat.session.chat import MultiTurnChat, create_chat

END = "/end"
QUIT = "/quit"


class TimelinePrinter:
    """Prints assistant text from the timeline as it grows."""

    def __init__(self):
        self._printed = ""

    @staticmethod
    def transcript(messages: list[Message]) -> str:
        return "\n".join(m.text for m in messages if m.role == "assistant" and m.text)

    def render(self, messages: list[Message]) -> str:
        """Print (and return) the not-yet-printed part of the transcript."""
        text = self.transcript(messages)
        if not text.startswith(self._printed):
            # Timeline was cleared or replayed
            self._printed = ""
        new = text[len(self._printed) :]
        if new:
            typer.secho(new, nl=False, fg=typer.colors.CYAN)
            self._printed = text
        return new


def _prompt() -> Optional[str]:
    try:
        return input("\nyou> ")
    except EOFError:
        return None


def _report_error(error: Exception) -> None:
    typer.secho(f"\n❌ {error}", fg=typer.colors.RED, err=True)


async def run_chat(chat: MultiTurnChat, first_message: Optional[str] = None) -> None:
    """Drive a chat from stdin until /end, /quit or EOF."""
    await chat.initialize()
    if chat.is_active:
        typer.echo(f"🔄 Resumed run {chat.run_id}")

    pending = first_message
    while True:
        text = pending if pending is not None else await asyncio.to_thread(_prompt)
        pending = None

        if text is None or text.strip() == QUIT:
            if chat.is_active:
                typer.echo(f"\n👋 Run {chat.run_id} left running; `workchat chat` resumes it.")
            break

        text = text.strip()
        if not text:
            continue

        if text == END:
            await chat.end_session()
            typer.echo("✅ Session ended")
            break

        try:
            await chat.send_message(text)
        except FollowUpRejected:
            # Already reported through on_error
            continue


def register_commands(app: typer.Typer):
    @app.command("chat")
    def chat_command(
        message: Optional[str] = typer.Argument(None, help="First message to send"),
    ):
        """Chat with the workflow, resuming the persisted run if there is one."""
        printer = TimelinePrinter()
        chat = create_chat(
            on_change=lambda c: printer.render(c.messages),
            on_error=_report_error,
        )

        async def _main():
            try:
                await run_chat(chat, message)
            finally:
                await chat.aclose()

        asyncio.run(_main())
