"""
Timeline reconciliation.

The raw message list holds optimistic user messages (sent locally) and
assistant messages whose parts interleave assistant output with markers for
user messages that reached the run through the side channel. ``reconcile``
turns that list into the conversation as it actually happened:

    raw:        [assistant(text "ok", marker "more please", text "sure")]
    reconciled: [assistant "ok", user "more please", assistant "sure"]

Parts inside an assistant message preserve chunk arrival order, so splitting
the message at each marker puts the user turn exactly where it occurred.
"""

from collections import Counter
from enum import Enum
from typing import Iterable

from workchat.models import MarkerPart, Message, TextPart


class ContentMatch(str, Enum):
    """How marker content is matched against already-seen user text."""

    # Any seen user text (optimistic or marker-derived) suppresses a marker.
    ANY = "any"
    # Only optimistic messages suppress markers, one marker each.
    OPTIMISTIC_ONCE = "optimistic-once"


def _split_id(message_id: str, index: int) -> str:
    return f"{message_id}-part-{index}"


def reconcile(
    raw_messages: Iterable[Message],
    content_match: ContentMatch = ContentMatch.ANY,
) -> list[Message]:
    """
    Build the ordered, deduplicated timeline from the raw message list.

    Pure function of its input: seen ids and seen content are rebuilt from
    ``raw_messages`` on every call.
    """
    raw_messages = list(raw_messages)
    result: list[Message] = []
    seen_ids: set[str] = set()
    seen_content: set[str] = set()
    optimistic_content: Counter = Counter()

    for msg in raw_messages:
        if msg.role == "user":
            seen_ids.add(msg.id)
            content = msg.text
            if content:
                seen_content.add(content)
                optimistic_content[content] += 1

    def is_duplicate(marker: MarkerPart) -> bool:
        if marker.id in seen_ids:
            return True
        if content_match is ContentMatch.OPTIMISTIC_ONCE:
            if optimistic_content[marker.content] > 0:
                optimistic_content[marker.content] -= 1
                return True
            return False
        return marker.content in seen_content

    for msg in raw_messages:
        if msg.role == "user":
            result.append(msg)
            continue

        if not any(isinstance(p, MarkerPart) for p in msg.parts):
            result.append(msg)
            continue

        buffered = []
        flushes = 0

        for part in msg.parts:
            if not isinstance(part, MarkerPart):
                buffered.append(part)
                continue

            if buffered:
                result.append(
                    msg.model_copy(
                        update={"id": _split_id(msg.id, flushes), "parts": tuple(buffered)}
                    )
                )
                flushes += 1
                buffered = []

            if is_duplicate(part):
                seen_ids.add(part.id)
                continue

            seen_ids.add(part.id)
            seen_content.add(part.content)
            result.append(
                Message(
                    id=part.id,
                    role="user",
                    parts=(TextPart(text=part.content),),
                    metadata={"timestamp": part.timestamp} if part.timestamp is not None else {},
                )
            )

        if buffered:
            result.append(
                msg.model_copy(
                    update={
                        "id": _split_id(msg.id, flushes) if flushes else msg.id,
                        "parts": tuple(buffered),
                    }
                )
            )

    return result
