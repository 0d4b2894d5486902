"""
HTTP transport for workflow-backed chat.

- Start:      POST {api} -> run id in the ``x-workflow-run-id`` header
- Reconnect:  GET  {api}/{run_id}/stream?startIndex=N

Dropped connections, and streams that close before a ``finish`` chunk, are
resumed from the number of chunks already received.
"""

import asyncio
from typing import AsyncIterator, Optional
from urllib.parse import quote

import httpx

from workchat.config import DEFAULT_API_PATH, RUN_ID_HEADER
from workchat.errors import StreamError
from workchat.logger import get_logger
from workchat.models import Message, StartRequest
from workchat.stream.parser import Finish, StreamChunk, StreamParser
from workchat.transport.base import ChatTransport

logger = get_logger(__name__)

MAX_CONSECUTIVE_ERRORS = 5
RECONNECT_DELAY = 1.0  # seconds between reconnect attempts


async def _error_detail(response: httpx.Response) -> str:
    await response.aread()
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("details") or body.get("error")
        if detail:
            return str(detail)
    return f"Server error: {response.status_code}"


class WorkflowChatTransport(ChatTransport):
    """Streams chat chunks from a workflow server over httpx."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api: str = DEFAULT_API_PATH,
        max_consecutive_errors: int = MAX_CONSECUTIVE_ERRORS,
        reconnect_delay: float = RECONNECT_DELAY,
        run_id_header: str = RUN_ID_HEADER,
        **handlers,
    ):
        super().__init__(**handlers)
        self.client = client
        self.api = api.rstrip("/")
        self.max_consecutive_errors = max_consecutive_errors
        self.reconnect_delay = reconnect_delay
        self.run_id_header = run_id_header
        self.parser = StreamParser()

    def stream_url(self, run_id: str) -> str:
        return f"{self.api}/{quote(run_id, safe='')}/stream"

    async def send_messages(
        self, chat_id: str, messages: list[Message]
    ) -> AsyncIterator[StreamChunk]:
        body = StartRequest(id=chat_id, messages=messages).model_dump(mode="json")
        response = await self._open(self.client.build_request("POST", self.api, json=body))

        run_id = response.headers.get(self.run_id_header)
        if not run_id:
            await response.aclose()
            raise StreamError(f"Start response is missing the {self.run_id_header} header")

        logger.info(f"Started workflow run {run_id}")
        self._started(run_id)
        return self._iterate(response)

    async def reconnect_to_stream(self, chat_id: str) -> AsyncIterator[StreamChunk]:
        response = await self._open(self._reconnect_request(0))
        return self._iterate(response)

    def _reconnect_request(self, start_index: int) -> httpx.Request:
        run_id = self._reconnect_run_id()
        logger.debug(f"Reconnecting to run {run_id} at chunk {start_index}")
        return self.client.build_request(
            "GET", self.stream_url(run_id), params={"startIndex": start_index}
        )

    async def _open(self, request: httpx.Request) -> httpx.Response:
        """Send a streaming request, raising StreamError on failure."""
        try:
            response = await self.client.send(request, stream=True)
        except httpx.TransportError as e:
            raise StreamError(f"Cannot connect to workflow server: {e}") from e

        if not response.is_success:
            detail = await _error_detail(response)
            await response.aclose()
            raise StreamError(detail, status_code=response.status_code)
        return response

    async def _iterate(
        self, response: Optional[httpx.Response]
    ) -> AsyncIterator[StreamChunk]:
        """Yield chunks, reconnecting until a finish chunk or too many consecutive errors."""
        chunk_index = 0
        consecutive_errors = 0

        while True:
            if response is None:
                try:
                    response = await self._open(self._reconnect_request(chunk_index))
                except StreamError as e:
                    consecutive_errors += 1
                    if consecutive_errors >= self.max_consecutive_errors:
                        raise StreamError(
                            f"Stream failed after {consecutive_errors} consecutive errors: {e}"
                        ) from e
                    logger.warning(
                        f"Reconnect failed: {e}. Retrying in {self.reconnect_delay}s..."
                    )
                    await asyncio.sleep(self.reconnect_delay)
                    continue

            received = 0
            finished = False
            try:
                async for chunk in self.parser.parse(response.aiter_lines()):
                    chunk_index += 1
                    received += 1
                    consecutive_errors = 0
                    yield chunk
                    if isinstance(chunk, Finish):
                        finished = True
                        break
            except httpx.TransportError as e:
                logger.warning(f"Stream interrupted after {chunk_index} chunks: {e}")
            finally:
                await response.aclose()
                response = None

            if finished:
                logger.info("Workflow stream finished")
                self._ended()
                return

            if not received:
                consecutive_errors += 1
            if consecutive_errors >= self.max_consecutive_errors:
                raise StreamError(
                    f"Stream failed after {consecutive_errors} consecutive errors"
                )
            logger.debug(f"Stream closed before finish at chunk {chunk_index}")
            if received == 0:
                await asyncio.sleep(self.reconnect_delay)
