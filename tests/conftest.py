"""Shared pytest fixtures and configuration."""

import asyncio
import json

import httpx
import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, StreamingResponse
from starlette.routing import Route as HTTPRoute

from workchat.models import MarkerPart, Message, TextPart
from workchat.session.store import MemorySessionStore
from workchat.stream.parser import Finish
from workchat.transport.base import ChatTransport


def text(value: str) -> TextPart:
    return TextPart(text=value)


def marker(id: str, content: str, timestamp: int = 1700000000000) -> MarkerPart:
    return MarkerPart(id=id, content=content, timestamp=timestamp)


def assistant(id: str, *parts) -> Message:
    return Message(id=id, role="assistant", parts=tuple(parts))


def user(id: str, content: str) -> Message:
    return Message.user(id=id, text=content)


def sse(payload) -> str:
    """Encode one UI message stream chunk as an SSE event."""
    return f"data: {json.dumps(payload)}\n\n"


async def settle(rounds: int = 10):
    """Let background stream tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeTransport(ChatTransport):
    """In-memory transport whose stream is fed chunk by chunk via ``push``."""

    def __init__(self, run_id: str = "r1"):
        super().__init__()
        self.run_id = run_id
        self.queue: asyncio.Queue = asyncio.Queue()
        self.sent: list[list[Message]] = []
        self.reconnects: list[str] = []
        self.start_error: Exception | None = None
        self.closed = 0

    def push(self, *chunks):
        for chunk in chunks:
            self.queue.put_nowait(chunk)

    def close_stream(self):
        self.queue.put_nowait(None)

    async def send_messages(self, chat_id, messages):
        self.sent.append(list(messages))
        if self.start_error:
            raise self.start_error
        self._started(self.run_id)
        return self._stream()

    async def reconnect_to_stream(self, chat_id):
        run_id = self._reconnect_run_id()
        self.reconnects.append(run_id)
        return self._stream()

    async def _stream(self):
        try:
            while True:
                chunk = await self.queue.get()
                if chunk is None:
                    return
                yield chunk
                if isinstance(chunk, Finish):
                    self._ended()
                    return
        finally:
            self.closed += 1


class WorkflowServer:
    """
    Fake workflow server.

    - POST /api/chat            starts run ``run_id`` and streams ``start_events``
    - GET  /api/chat/{id}/stream replays ``events[startIndex:]``
    - POST /api/chat/{id}       records follow-ups
    """

    def __init__(self, run_id: str = "r1"):
        self.run_id = run_id
        self.events: list[dict] = []
        self.start_cutoff: int | None = None
        self.start_status = 200
        self.start_headers = True
        self.follow_up_status = 200
        self.follow_up_details = "Run is not accepting messages"
        self.start_bodies: list[dict] = []
        self.stream_requests: list[tuple[str, int]] = []
        self.follow_ups: list[tuple[str, dict]] = []
        self.reconnect_cutoffs: list[int] = []

        self.app = Starlette(
            routes=[
                HTTPRoute("/api/chat", self.start, methods=["POST"]),
                HTTPRoute("/api/chat/{run_id}/stream", self.stream, methods=["GET"]),
                HTTPRoute("/api/chat/{run_id}", self.follow_up, methods=["POST"]),
            ]
        )

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=self.app), base_url="http://testserver"
        )

    def _events(self, start: int, stop: int | None):
        async def generator():
            for event in self.events[start:stop]:
                yield sse(event)

        return generator()

    async def start(self, request: Request):
        self.start_bodies.append(await request.json())
        if self.start_status != 200:
            return JSONResponse(
                {"error": "Failed to start workflow"}, status_code=self.start_status
            )
        headers = {"x-workflow-run-id": self.run_id} if self.start_headers else {}
        return StreamingResponse(
            self._events(0, self.start_cutoff),
            media_type="text/event-stream",
            headers=headers,
        )

    async def stream(self, request: Request):
        run_id = request.path_params["run_id"]
        start_index = int(request.query_params.get("startIndex", "0"))
        self.stream_requests.append((run_id, start_index))
        if run_id != self.run_id:
            return JSONResponse({"error": "Run not found"}, status_code=404)
        stop = self.reconnect_cutoffs.pop(0) if self.reconnect_cutoffs else None
        return StreamingResponse(
            self._events(start_index, stop), media_type="text/event-stream"
        )

    async def follow_up(self, request: Request):
        run_id = request.path_params["run_id"]
        body = await request.json()
        self.follow_ups.append((run_id, body))
        if self.follow_up_status != 200:
            return JSONResponse(
                {"details": self.follow_up_details}, status_code=self.follow_up_status
            )
        return JSONResponse({"success": True})


@pytest.fixture
def store():
    return MemorySessionStore()


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def server():
    return WorkflowServer()
