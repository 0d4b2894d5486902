"""
Error taxonomy for workchat sessions.
"""


class WorkchatError(Exception):
    """Base class for all workchat errors."""

    pass


class NoActiveSession(WorkchatError):
    """Raised when a follow-up is attempted without a known run id."""

    def __init__(self, message: str = "No active session to send follow-up to"):
        super().__init__(message)


class NoActiveRun(WorkchatError):
    """Raised when a reconnect is attempted without a persisted run id."""

    def __init__(self, message: str = "No active workflow run ID found"):
        super().__init__(message)


class FollowUpRejected(WorkchatError):
    """The remote run refused a follow-up message."""

    def __init__(self, details: str, status_code: int | None = None):
        super().__init__(details)
        self.details = details
        self.status_code = status_code


class StreamError(WorkchatError):
    """Transport-level failure while starting or consuming a stream."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
