"""
Stream Parser for the workflow chat stream.

Handles parsing of Server-Sent Events (SSE) carrying UI message stream
chunks (``data: {"type": "text-delta", ...}``) into typed chunk objects.
"""

import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional, Union

from workchat.logger import get_logger

logger = get_logger(__name__)

DONE_SENTINEL = "[DONE]"


@dataclass
class StreamChunk:
    """Base class for parsed stream chunks."""

    pass


@dataclass
class MessageStart(StreamChunk):
    """A new assistant message begins."""

    message_id: Optional[str] = None


@dataclass
class TextStart(StreamChunk):
    """A text part is opened."""

    id: str


@dataclass
class TextDelta(StreamChunk):
    """More text for an open text part."""

    id: str
    delta: str


@dataclass
class TextEnd(StreamChunk):
    """A text part is complete."""

    id: str


@dataclass
class DataChunk(StreamChunk):
    """A custom ``data-*`` chunk (e.g. ``data-workflow``)."""

    name: str
    data: Any = None
    id: Optional[str] = None


@dataclass
class Finish(StreamChunk):
    """The remote run finished the stream."""

    metadata: dict = field(default_factory=dict)


@dataclass
class ErrorChunk(StreamChunk):
    """An error reported inside the stream."""

    error_text: str


class StreamParser:
    """
    Parser for UI message stream SSE lines.

    Handles:
    - SSE format parsing (data: ...)
    - the ``[DONE]`` sentinel and malformed payloads (skipped)
    - mapping chunk ``type`` values onto StreamChunk classes
    """

    def parse_line(self, line: Union[str, bytes]) -> Optional[StreamChunk]:
        """Parse one SSE line. Returns None for lines that carry no chunk."""
        line_str = (
            line if isinstance(line, str) else line.decode("utf-8", errors="replace")
        )

        if not line_str.startswith("data:"):
            return None

        json_str = line_str[5:].strip()
        if not json_str or json_str == DONE_SENTINEL:
            return None

        try:
            payload = json.loads(json_str)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed stream line: {json_str[:80]}")
            return None

        if not isinstance(payload, dict):
            return None
        return self._to_chunk(payload)

    async def parse(
        self, lines: AsyncIterator[Union[str, bytes]]
    ) -> AsyncIterator[StreamChunk]:
        """Parse an async iterator of lines into StreamChunks."""
        async for line in lines:
            chunk = self.parse_line(line)
            if chunk is not None:
                yield chunk

    def _to_chunk(self, payload: dict) -> Optional[StreamChunk]:
        """Map a single JSON chunk payload onto a StreamChunk."""
        chunk_type = payload.get("type", "")

        if chunk_type == "start":
            return MessageStart(payload.get("messageId"))

        elif chunk_type == "text-start":
            return TextStart(str(payload.get("id", "")))

        elif chunk_type == "text-delta":
            return TextDelta(str(payload.get("id", "")), payload.get("delta", ""))

        elif chunk_type == "text-end":
            return TextEnd(str(payload.get("id", "")))

        elif chunk_type.startswith("data-"):
            return DataChunk(
                name=chunk_type[len("data-") :],
                data=payload.get("data"),
                id=payload.get("id"),
            )

        elif chunk_type == "finish":
            return Finish(payload.get("messageMetadata") or {})

        elif chunk_type == "error":
            return ErrorChunk(str(payload.get("errorText", "Unknown stream error")))

        # start-step, finish-step, reasoning and tool chunks are not rendered
        logger.debug(f"Ignoring stream chunk of type {chunk_type!r}")
        return None
