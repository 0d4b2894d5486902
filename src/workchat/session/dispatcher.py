"""
Follow-up delivery to an active workflow run.

Follow-ups resume the run through ``POST {api}/{run_id}`` with a
``{"message": ...}`` body. Each logical send carries a dedup token; a token
that is already in flight or already delivered turns a repeated send into a
no-op, and a rejected send releases its token so the caller can retry.
"""

import asyncio
from typing import Optional
from urllib.parse import quote

import httpx

from workchat.config import DEFAULT_API_PATH, END_COMMAND
from workchat.errors import FollowUpRejected, NoActiveSession
from workchat.logger import get_logger
from workchat.models import FollowUpRequest

logger = get_logger(__name__)

DEFAULT_REJECTION = "Failed to send follow-up message"


def _error_details(response: httpx.Response) -> str:
    """Pull the ``details`` field out of an error response, if there is one."""
    try:
        body = response.json()
    except ValueError:
        return DEFAULT_REJECTION
    if isinstance(body, dict) and body.get("details"):
        return str(body["details"])
    return DEFAULT_REJECTION


class FollowUpDispatcher:
    """Sends follow-ups and the termination notice for the current run."""

    def __init__(self, client: httpx.AsyncClient, api: str = DEFAULT_API_PATH):
        self.client = client
        self.api = api.rstrip("/")
        self._tokens: set[str] = set()
        self._sequence: dict[str, int] = {}
        self._lock = asyncio.Lock()

    def run_url(self, run_id: str) -> str:
        return f"{self.api}/{quote(run_id, safe='')}"

    def next_token(self, run_id: str) -> str:
        """Next per-run sequence token."""
        seq = self._sequence.get(run_id, 0) + 1
        self._sequence[run_id] = seq
        return f"{run_id}:{seq}"

    def is_consumed(self, token: str) -> bool:
        return token in self._tokens

    async def send_follow_up(
        self,
        run_id: Optional[str],
        text: str,
        idempotency_key: Optional[str] = None,
    ) -> bool:
        """
        Send ``text`` to the run.

        Args:
            run_id: Active run id.
            text: Message text.
            idempotency_key: Caller-supplied key; repeated sends with the same
                key are delivered at most once.

        Returns:
            True if the message was delivered, False if the send was a
            duplicate and skipped.

        Raises:
            NoActiveSession: ``run_id`` is empty.
            FollowUpRejected: the run refused the message or was unreachable.
        """
        if not run_id:
            raise NoActiveSession()

        async with self._lock:
            token = (
                f"{run_id}:{idempotency_key}"
                if idempotency_key is not None
                else self.next_token(run_id)
            )
            if token in self._tokens:
                logger.debug(f"Skipping duplicate follow-up {token}")
                return False
            self._tokens.add(token)

            try:
                response = await self.client.post(
                    self.run_url(run_id),
                    json=FollowUpRequest(message=text).model_dump(),
                )
            except httpx.HTTPError as e:
                self._tokens.discard(token)
                logger.error(f"Follow-up to run {run_id} failed: {e}")
                raise FollowUpRejected(f"{DEFAULT_REJECTION}: {e}") from e

            if not response.is_success:
                self._tokens.discard(token)
                details = _error_details(response)
                logger.error(
                    f"Follow-up to run {run_id} rejected ({response.status_code}): {details}"
                )
                raise FollowUpRejected(details, status_code=response.status_code)

            logger.debug(f"Follow-up {token} delivered")
            return True

    async def notify_end(self, run_id: str) -> bool:
        """
        Best-effort termination notice. Never raises.

        Returns:
            True if the run acknowledged the end signal.
        """
        try:
            response = await self.client.post(
                self.run_url(run_id),
                json=FollowUpRequest(message=END_COMMAND).model_dump(),
            )
        except httpx.HTTPError as e:
            logger.warning(f"Error ending session {run_id}: {e}")
            return False

        if not response.is_success:
            logger.warning(
                f"Run {run_id} did not acknowledge end signal "
                f"({response.status_code}): {_error_details(response)}"
            )
            return False
        return True

    def reset(self) -> None:
        """Forget all tokens and sequence counters."""
        self._tokens.clear()
        self._sequence.clear()
