"""
Unit tests for the CLI commands.
"""

from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from conftest import FakeTransport, assistant, text, user
from workchat.cli import app
from workchat.cli.chat import TimelinePrinter, run_chat
from workchat.config import CONFIG
from workchat.session.chat import MultiTurnChat
from workchat.session.state import SessionState
from workchat.session.store import FileSessionStore, MemorySessionStore

runner = CliRunner()


@pytest.fixture
def file_store(tmp_path):
    store = FileSessionStore(tmp_path / "session.json")
    with patch("workchat.cli.session._store", return_value=store):
        yield store


class TestCLIRoot:
    def test_help_shows_all_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "chat" in result.output
        assert "session" in result.output

    def test_log_level_from_config(self, file_store):
        with patch.object(CONFIG, "log_level", "INFO"), patch(
            "workchat.cli.setup_logging"
        ) as mock_setup:
            runner.invoke(app, ["session", "status"])
        assert mock_setup.call_args.kwargs["level"] == "INFO"

    def test_verbose_forces_debug(self, file_store):
        with patch.object(CONFIG, "log_level", "INFO"), patch(
            "workchat.cli.setup_logging"
        ) as mock_setup:
            runner.invoke(app, ["--verbose", "session", "status"])
        assert mock_setup.call_args.kwargs["level"] == "DEBUG"

    def test_session_help(self):
        result = runner.invoke(app, ["session", "--help"])
        assert result.exit_code == 0
        assert "status" in result.output
        assert "end" in result.output
        assert "clear" in result.output


class TestSessionSubcommand:
    def test_status_without_session(self, file_store):
        result = runner.invoke(app, ["session", "status"])
        assert result.exit_code == 0
        assert "No active session" in result.output

    def test_status_with_session(self, file_store):
        file_store.set("r1")
        result = runner.invoke(app, ["session", "status"])
        assert result.exit_code == 0
        assert "r1" in result.output

    def test_clear(self, file_store):
        file_store.set("r1")
        result = runner.invoke(app, ["session", "clear"])
        assert result.exit_code == 0
        assert file_store.get() is None

    @patch("workchat.cli.session._notify_end", new_callable=AsyncMock)
    def test_end(self, mock_notify, file_store):
        mock_notify.return_value = True
        file_store.set("r1")

        result = runner.invoke(app, ["session", "end"])

        assert result.exit_code == 0
        assert "Run r1 ended" in result.output
        mock_notify.assert_awaited_once_with("r1")
        assert file_store.get() is None

    @patch("workchat.cli.session._notify_end", new_callable=AsyncMock)
    def test_end_unacknowledged_still_clears(self, mock_notify, file_store):
        mock_notify.return_value = False
        file_store.set("r1")

        result = runner.invoke(app, ["session", "end"])

        assert result.exit_code == 0
        assert "did not acknowledge" in result.output
        assert file_store.get() is None

    @patch("workchat.cli.session._notify_end", new_callable=AsyncMock)
    def test_end_without_session(self, mock_notify, file_store):
        result = runner.invoke(app, ["session", "end"])
        assert "No active session" in result.output
        mock_notify.assert_not_called()


class TestTimelinePrinter:
    def test_prints_only_new_text(self, capsys):
        printer = TimelinePrinter()
        assert printer.render([user("u1", "hi"), assistant("a1", text("Hel"))]) == "Hel"
        assert printer.render([user("u1", "hi"), assistant("a1", text("Hello"))]) == "lo"
        assert capsys.readouterr().out == "Hello"

    def test_split_message_does_not_reprint(self):
        printer = TimelinePrinter()
        printer.render([assistant("a1", text("ok"))])
        new = printer.render(
            [
                assistant("a1-part-0", text("ok")),
                user("m1", "more"),
                assistant("a1-part-1", text("sure")),
            ]
        )
        assert new == "\nsure"

    def test_cleared_timeline_starts_over(self):
        printer = TimelinePrinter()
        printer.render([assistant("a1", text("old"))])
        assert printer.render([assistant("a2", text("new"))]) == "new"


class TestRunChat:
    def make_chat(self, store=None):
        dispatcher = AsyncMock()
        dispatcher.reset = lambda: None
        return MultiTurnChat(FakeTransport(), dispatcher, store or MemorySessionStore())

    @pytest.mark.asyncio
    async def test_first_message_then_quit(self):
        chat = self.make_chat()
        with patch("workchat.cli.chat._prompt", return_value="/quit"):
            await run_chat(chat, "hello")
        assert chat.run_id == "r1"
        assert chat.transport.sent[0][0].text == "hello"
        await chat.aclose()

    @pytest.mark.asyncio
    async def test_end_command_ends_session(self):
        store = MemorySessionStore("r-old")
        chat = self.make_chat(store)
        with patch("workchat.cli.chat._prompt", side_effect=["  ", "more", "/end"]):
            await run_chat(chat)
        chat.dispatcher.send_follow_up.assert_awaited_once_with(
            "r-old", "more", idempotency_key=None
        )
        chat.dispatcher.notify_end.assert_awaited_once_with("r-old")
        assert chat.state is SessionState.ABSENT
        assert store.get() is None

    @pytest.mark.asyncio
    async def test_eof_exits(self):
        chat = self.make_chat()
        with patch("workchat.cli.chat._prompt", return_value=None):
            await run_chat(chat)
        assert chat.transport.sent == []
