"""
Pydantic models for conversation messages.

A message is an ordered list of tagged parts. Marker parts stand for user
messages that arrived through the stream itself instead of the local send
path; the reconciler folds them back into the timeline.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

MARKER_KIND = "user-message-marker"


class TextPart(BaseModel):
    """Plain text content."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class MarkerPart(BaseModel):
    """A user message embedded in the assistant stream."""

    model_config = ConfigDict(frozen=True)

    type: Literal["user-message-marker"] = MARKER_KIND
    id: str
    content: str
    timestamp: int | float | None = None


class DataPart(BaseModel):
    """Any other custom data chunk, carried through untouched."""

    model_config = ConfigDict(frozen=True)

    type: Literal["data"] = "data"
    name: str
    data: Any = None


Part = Annotated[Union[TextPart, MarkerPart, DataPart], Field(discriminator="type")]


class Message(BaseModel):
    """A single conversation entry."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: Literal["user", "assistant"]
    parts: tuple[Part, ...] = ()
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    @classmethod
    def user(cls, id: str, text: str, **metadata: Any) -> "Message":
        return cls(id=id, role="user", parts=(TextPart(text=text),), metadata=metadata)


class FollowUpRequest(BaseModel):
    """POST {api}/{run_id} request body."""

    message: str


class StartRequest(BaseModel):
    """POST {api} request body."""

    id: str
    messages: list[Message]
    trigger: str = "submit-message"
