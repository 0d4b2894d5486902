"""
workchat: multi-turn chat sessions over a long-running, streamed workflow run.
"""

from workchat.errors import (
    FollowUpRejected,
    NoActiveRun,
    NoActiveSession,
    StreamError,
    WorkchatError,
)
from workchat.models import DataPart, MarkerPart, Message, TextPart
from workchat.session.chat import ChatStatus, MultiTurnChat, create_chat
from workchat.session.reconciler import ContentMatch, reconcile
from workchat.session.state import Route, SessionState, route
from workchat.session.store import FileSessionStore, MemorySessionStore, SessionStore

__all__ = [
    "ChatStatus",
    "ContentMatch",
    "DataPart",
    "FileSessionStore",
    "FollowUpRejected",
    "MarkerPart",
    "MemorySessionStore",
    "Message",
    "MultiTurnChat",
    "NoActiveRun",
    "NoActiveSession",
    "Route",
    "SessionState",
    "SessionStore",
    "StreamError",
    "TextPart",
    "WorkchatError",
    "create_chat",
    "reconcile",
    "route",
]
