"""
Transports that open and resume workflow chat streams.
"""

from workchat.transport.base import ChatTransport
from workchat.transport.workflow import WorkflowChatTransport

__all__ = ["ChatTransport", "WorkflowChatTransport"]
