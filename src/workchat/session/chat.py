"""
Multi-turn chat session over a long-running workflow run.

Key features:
- Resumes a run persisted by a previous process and replays its stream
- Routes the first message to the start endpoint (new run) and later
  messages to the run's follow-up endpoint
- Exposes the reconciled timeline, with user messages rebuilt from the
  markers embedded in the stream
- Only the run id is persisted

Example:
    chat = create_chat()
    await chat.initialize()
    await chat.send_message("What's the status of flight UA123?")
    ...
    await chat.end_session()
"""

import asyncio
import time
import uuid
from contextlib import aclosing
from enum import Enum
from typing import AsyncIterator, Callable, Optional

import httpx

from workchat.config import CONFIG, Config
from workchat.errors import FollowUpRejected, StreamError, WorkchatError
from workchat.logger import get_logger
from workchat.models import Message
from workchat.session.dispatcher import FollowUpDispatcher
from workchat.session.reconciler import ContentMatch, reconcile
from workchat.session.state import Route, SessionState, SessionStateMachine
from workchat.session.store import FileSessionStore, SessionStore
from workchat.stream.assembler import MessageAssembler
from workchat.stream.parser import ErrorChunk, MessageStart, StreamChunk
from workchat.transport.base import ChatTransport
from workchat.transport.workflow import WorkflowChatTransport

logger = get_logger(__name__)


class ChatStatus(str, Enum):
    IDLE = "idle"
    SUBMITTED = "submitted"
    STREAMING = "streaming"
    ERROR = "error"


class MultiTurnChat:
    """
    Client-side session manager for one workflow-backed conversation.

    Args:
        transport: Opens and resumes the run's stream.
        dispatcher: Sends follow-ups and the end signal.
        store: Durable run id storage.
        content_match: Marker/content dedup policy for the timeline.
        on_error: Called with every surfaced error.
        on_finish: Called with the timeline when a stream finishes.
        on_change: Called after every change to the timeline or status.
    """

    def __init__(
        self,
        transport: ChatTransport,
        dispatcher: FollowUpDispatcher,
        store: SessionStore,
        chat_id: Optional[str] = None,
        content_match: ContentMatch = ContentMatch.ANY,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_finish: Optional[Callable[[list[Message]], None]] = None,
        on_change: Optional[Callable[["MultiTurnChat"], None]] = None,
    ):
        self.transport = transport
        self.dispatcher = dispatcher
        self.session = SessionStateMachine(store)
        self.chat_id = chat_id or uuid.uuid4().hex
        self.content_match = content_match
        self.on_error = on_error
        self.on_finish = on_finish
        self.on_change = on_change

        self._raw: list[Message] = []
        # Index in _raw where the current run's messages begin
        self._run_start = 0
        self._assembler: Optional[MessageAssembler] = None
        self._assembler_index: Optional[int] = None
        self._status = ChatStatus.IDLE
        self._error: Optional[Exception] = None
        self._stream_task: Optional[asyncio.Task] = None
        self._client: Optional[httpx.AsyncClient] = None

        transport.attach(
            on_chat_send_message=self._handle_chat_started,
            on_chat_end=self._handle_chat_end,
            prepare_reconnect_request=self.session.reconnect_run_id,
        )

    # ─── Exposed state ───────────────────────────────────────────────

    @property
    def messages(self) -> list[Message]:
        """The reconciled timeline."""
        return reconcile(self._raw, self.content_match)

    @property
    def raw_messages(self) -> list[Message]:
        return list(self._raw)

    @property
    def status(self) -> ChatStatus:
        return self._status

    @property
    def error(self) -> Optional[Exception]:
        return self._error

    @property
    def run_id(self) -> Optional[str]:
        return self.session.run_id

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def is_active(self) -> bool:
        return self.session.run_id is not None

    # ─── Operations ──────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Resume the persisted run, if any."""
        if self.session.initialize():
            logger.info(f"Resuming workflow run {self.session.run_id}")
            await self.resume()

    async def send_message(self, text: str, idempotency_key: Optional[str] = None) -> None:
        """
        Send a message. Starts a run if none is known, otherwise sends a
        follow-up to the current run.

        Raises:
            FollowUpRejected: the run refused the follow-up.
        """
        if self.session.next_route() is Route.FOLLOW_UP:
            try:
                await self.dispatcher.send_follow_up(
                    self.session.run_id, text, idempotency_key=idempotency_key
                )
            except FollowUpRejected as e:
                self._record_error(e)
                raise
            return

        await self._start(text)

    async def resume(self) -> None:
        """(Re)open the current run's stream and replay it from the start."""
        self._detach_stream()
        # The replay rebuilds the current run's assistant messages from scratch
        current = self._raw[self._run_start:]
        self._raw = self._raw[: self._run_start] + [m for m in current if m.role == "user"]
        self._assembler = None
        self._assembler_index = None
        self._error = None
        self._set_status(ChatStatus.SUBMITTED)

        try:
            stream = await self.transport.reconnect_to_stream(self.chat_id)
        except WorkchatError as e:
            self._fail(e)
            return

        self.session.confirm_resumed()
        self._consume(stream)

    def stop(self) -> None:
        """Stop consuming the stream. The remote run keeps going."""
        self._detach_stream()
        if self._status in (ChatStatus.SUBMITTED, ChatStatus.STREAMING):
            self._set_status(ChatStatus.IDLE)

    async def end_session(self) -> None:
        """Tell the run to finish, then clear all local session state."""
        run_id = self.session.run_id
        if run_id:
            self.session.begin_end()
            await self.dispatcher.notify_end(run_id)

        self._detach_stream()
        self.session.end()
        self.dispatcher.reset()
        self._raw = []
        self._run_start = 0
        self._assembler = None
        self._assembler_index = None
        self._error = None
        self._set_status(ChatStatus.IDLE)

    async def wait(self) -> None:
        """Wait until the current stream stops (finish, error, or stop())."""
        task = self._stream_task
        if task is not None:
            await asyncio.wait({task})

    async def aclose(self) -> None:
        """Stop streaming and close the owned HTTP client, if any."""
        self.stop()
        if self._client is not None:
            await self._client.aclose()

    # ─── Internals ───────────────────────────────────────────────────

    async def _start(self, text: str) -> None:
        message = Message.user(
            id=f"user-{uuid.uuid4().hex[:12]}",
            text=text,
            createdAt=int(time.time() * 1000),
        )
        self._run_start = len(self._raw)
        self._assembler = None
        self._assembler_index = None
        self._raw.append(message)
        self._error = None
        self._set_status(ChatStatus.SUBMITTED)

        self.session.begin_start()
        try:
            stream = await self.transport.send_messages(self.chat_id, list(self._raw))
        except StreamError as e:
            self.session.abort_start()
            self._fail(e)
            return

        self._consume(stream)

    def _consume(self, stream: AsyncIterator[StreamChunk]) -> None:
        self._stream_task = asyncio.create_task(self._run_stream(stream))

    async def _run_stream(self, stream: AsyncIterator[StreamChunk]) -> None:
        task = asyncio.current_task()
        try:
            async with aclosing(stream):
                async for chunk in stream:
                    if self._stream_task is not task:
                        return
                    if isinstance(chunk, ErrorChunk):
                        raise StreamError(chunk.error_text)
                    self._apply(chunk)
        except WorkchatError as e:
            if self._stream_task is task:
                self._stream_task = None
                self._fail(e)
            return
        except Exception as e:
            logger.exception(f"Unexpected failure while consuming stream: {e}")
            if self._stream_task is task:
                self._stream_task = None
                self._fail(StreamError(f"Stream processing failed: {e}"))
            return

        if self._stream_task is not task:
            return
        self._stream_task = None
        self._set_status(ChatStatus.IDLE)
        if self.on_finish:
            self.on_finish(self.messages)

    def _apply(self, chunk: StreamChunk) -> None:
        if isinstance(chunk, MessageStart):
            if self._assembler is None or (
                chunk.message_id != self._assembler.message_id
                and not self._assembler.is_empty
            ):
                self._assembler = MessageAssembler(chunk.message_id)
                self._assembler_index = None
            else:
                self._assembler.apply(chunk)
            return

        if self._assembler is None:
            self._assembler = MessageAssembler()
            self._assembler_index = None

        if not self._assembler.apply(chunk):
            return

        snapshot = self._assembler.snapshot()
        if self._assembler_index is None:
            if not snapshot.parts:
                return
            self._raw.append(snapshot)
            self._assembler_index = len(self._raw) - 1
        else:
            self._raw[self._assembler_index] = snapshot
        self._set_status(ChatStatus.STREAMING)

    def _detach_stream(self) -> None:
        task = self._stream_task
        self._stream_task = None
        if task is not None and not task.done():
            task.cancel()

    def _handle_chat_started(self, run_id: str) -> None:
        self.session.confirm_started(run_id)

    def _handle_chat_end(self) -> None:
        self.session.end()
        self.dispatcher.reset()

    def _record_error(self, error: Exception) -> None:
        self._error = error
        logger.error(f"Chat error: {error}")
        if self.on_error:
            self.on_error(error)
        self._changed()

    def _fail(self, error: Exception) -> None:
        self._status = ChatStatus.ERROR
        self._record_error(error)

    def _set_status(self, status: ChatStatus) -> None:
        self._status = status
        self._changed()

    def _changed(self) -> None:
        if self.on_change:
            self.on_change(self)


def create_chat(
    config: Optional[Config] = None,
    store: Optional[SessionStore] = None,
    client: Optional[httpx.AsyncClient] = None,
    **kwargs,
) -> MultiTurnChat:
    """
    Build a MultiTurnChat talking HTTP to the configured workflow server.

    An httpx client is created (and closed by ``chat.aclose()``) when none is
    given.
    """
    config = config or CONFIG
    owned = client is None
    if client is None:
        client = httpx.AsyncClient(base_url=config.server_url, timeout=config.timeout)

    transport = WorkflowChatTransport(
        client,
        api=config.api_path,
        max_consecutive_errors=config.max_consecutive_errors,
    )
    chat = MultiTurnChat(
        transport,
        FollowUpDispatcher(client, api=config.api_path),
        store or FileSessionStore(config.state_file),
        **kwargs,
    )
    if owned:
        chat._client = client
    return chat
