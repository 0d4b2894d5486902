"""
Abstract transport interface.

A transport turns a "start" or "reconnect" request into a live async
iterator of stream chunks. The chat session plugs its lifecycle handlers
into the transport through ``attach``.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable, Optional

from workchat.errors import NoActiveRun
from workchat.models import Message
from workchat.stream.parser import StreamChunk


class ChatTransport(ABC):
    """
    Abstract base class for chat transports.

    Handlers:
        on_chat_send_message(run_id): a start request succeeded.
        on_chat_end(): the remote signalled the end of the session.
        prepare_reconnect_request() -> run_id: run id to reconnect to,
            read at request time.
    """

    def __init__(
        self,
        on_chat_send_message: Optional[Callable[[str], None]] = None,
        on_chat_end: Optional[Callable[[], None]] = None,
        prepare_reconnect_request: Optional[Callable[[], str]] = None,
    ):
        self.on_chat_send_message = on_chat_send_message
        self.on_chat_end = on_chat_end
        self.prepare_reconnect_request = prepare_reconnect_request

    def attach(
        self,
        on_chat_send_message: Callable[[str], None],
        on_chat_end: Callable[[], None],
        prepare_reconnect_request: Callable[[], str],
    ) -> None:
        """Install session lifecycle handlers."""
        self.on_chat_send_message = on_chat_send_message
        self.on_chat_end = on_chat_end
        self.prepare_reconnect_request = prepare_reconnect_request

    def _started(self, run_id: str) -> None:
        if self.on_chat_send_message:
            self.on_chat_send_message(run_id)

    def _ended(self) -> None:
        if self.on_chat_end:
            self.on_chat_end()

    def _reconnect_run_id(self) -> str:
        if not self.prepare_reconnect_request:
            raise NoActiveRun()
        return self.prepare_reconnect_request()

    @abstractmethod
    async def send_messages(
        self, chat_id: str, messages: list[Message]
    ) -> AsyncIterator[StreamChunk]:
        """
        Start a new run with the given messages.

        Returns:
            Async iterator over the run's stream chunks.

        Raises:
            StreamError: the start request failed.
        """
        pass

    @abstractmethod
    async def reconnect_to_stream(self, chat_id: str) -> AsyncIterator[StreamChunk]:
        """
        Reopen the stream of the run named by ``prepare_reconnect_request``.

        Raises:
            NoActiveRun: no run id is available.
            StreamError: the stream could not be opened.
        """
        pass
