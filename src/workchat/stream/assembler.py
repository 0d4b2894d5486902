"""
Folds stream chunks into the raw assistant message.

Parts keep chunk arrival order: text deltas extend the part opened by the
matching ``text-start``, and every data chunk becomes its own part. User
messages sent through the side channel arrive as ``data-workflow`` chunks
with ``{"type": "user-message"}`` payloads and are kept as MarkerParts.
"""

import uuid
from typing import Optional

from workchat.logger import get_logger
from workchat.models import DataPart, MarkerPart, Message, TextPart
from workchat.stream.parser import (
    DataChunk,
    MessageStart,
    StreamChunk,
    TextDelta,
    TextStart,
)

logger = get_logger(__name__)

WORKFLOW_DATA_NAME = "workflow"
USER_MESSAGE_TYPE = "user-message"


def _timestamp(value):
    """Marker timestamps are epoch numbers; anything else is dropped."""
    if value is None or (isinstance(value, (int, float)) and not isinstance(value, bool)):
        return value
    logger.debug(f"Dropping non-numeric marker timestamp: {value!r}")
    return None


def to_part(chunk: DataChunk):
    """Convert a data chunk into a MarkerPart or a DataPart."""
    data = chunk.data
    if (
        chunk.name == WORKFLOW_DATA_NAME
        and isinstance(data, dict)
        and data.get("type") == USER_MESSAGE_TYPE
        and data.get("id")
    ):
        return MarkerPart(
            id=str(data["id"]),
            content=str(data.get("content", "")),
            timestamp=_timestamp(data.get("timestamp")),
        )
    return DataPart(name=chunk.name, data=data)


class MessageAssembler:
    """Accumulates the chunks of one assistant message."""

    def __init__(self, message_id: Optional[str] = None):
        self.message_id = message_id or f"msg-{uuid.uuid4().hex[:12]}"
        self._parts: list = []
        self._text_index: dict[str, int] = {}

    @property
    def is_empty(self) -> bool:
        return not self._parts

    def apply(self, chunk: StreamChunk) -> bool:
        """
        Apply a chunk. Returns True if the message content changed.

        ``MessageStart`` only renames an empty message; starting a second
        message is the caller's job.
        """
        if isinstance(chunk, MessageStart):
            if chunk.message_id and self.is_empty:
                self.message_id = chunk.message_id
            return False

        if isinstance(chunk, TextStart):
            self._open_text(chunk.id)
            return True

        if isinstance(chunk, TextDelta):
            if not isinstance(chunk.delta, str):
                logger.debug(f"Skipping non-text delta for {chunk.id}: {chunk.delta!r}")
                return False
            if not chunk.delta:
                return False
            index = self._text_index.get(chunk.id)
            if index is None:
                index = self._open_text(chunk.id)
            current = self._parts[index]
            self._parts[index] = TextPart(text=current.text + chunk.delta)
            return True

        if isinstance(chunk, DataChunk):
            self._parts.append(to_part(chunk))
            return True

        return False

    def _open_text(self, part_id: str) -> int:
        self._parts.append(TextPart(text=""))
        self._text_index[part_id] = len(self._parts) - 1
        return self._text_index[part_id]

    def snapshot(self) -> Message:
        """Current state as an immutable assistant Message."""
        parts = tuple(p for p in self._parts if not (isinstance(p, TextPart) and not p.text))
        return Message(id=self.message_id, role="assistant", parts=parts)
