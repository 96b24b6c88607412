"""
Outbound e-mail through the HTTP relay.

The relay accepts ``{to, from, subject, html, text}`` and answers
``{"ok": true}``. Sends run as background tasks; the caller never waits
and a failed send is only logged.
"""

import asyncio
from dataclasses import dataclass

import httpx

from vims.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str


class EmailNotifier:
    """
    Fire-and-forget client for the e-mail relay.

    Without an endpoint every send is a no-op, announced by a single
    warning.

    Attributes:
        endpoint: Relay URL, or None to disable e-mail.
        sender: Value of the ``from`` field.
    """

    def __init__(
        self,
        endpoint: str | None,
        sender: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint = endpoint
        self.sender = sender
        self._timeout = timeout
        self._transport = transport
        self._pending: set[asyncio.Task] = set()
        self._warned = False

    @property
    def enabled(self) -> bool:
        return bool(self.endpoint)

    def send(self, message: EmailMessage) -> None:
        """
        Schedule delivery on the running loop and return immediately.

        Outside an event loop the message is dropped with a warning.
        """
        if not self.enabled:
            if not self._warned:
                logger.warning("email_disabled", reason="notify_endpoint_not_configured")
                self._warned = True
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("email_send_skipped", to=message.to, reason="no_running_event_loop")
            return
        task = loop.create_task(self.deliver(message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def deliver(self, message: EmailMessage) -> bool:
        """
        Post one message to the relay.

        Returns:
            bool: True if the relay accepted the message.
        """
        if not self.enabled:
            return False
        body = {
            "to": message.to,
            "from": self.sender,
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(self.endpoint, json=body)
        except httpx.HTTPError as e:
            logger.warning("email_send_failed", to=message.to, error=str(e))
            return False

        if response.status_code >= 300:
            logger.warning(
                "email_send_rejected",
                to=message.to,
                status_code=response.status_code,
            )
            return False
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        ok = bool(payload.get("ok", True)) if isinstance(payload, dict) else True
        if not ok:
            logger.warning("email_send_rejected", to=message.to, status_code=response.status_code)
            return False

        logger.info("email_sent", to=message.to, subject=message.subject)
        return True

    async def aclose(self) -> None:
        """Wait for in-flight sends."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
