"""One-message transports used to deliver a single rendered track point."""

from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Protocol

import aiohttp

from trackrelay._constants import DEFAULT_RECIPIENT
from trackrelay.exceptions import TransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the dispatcher.

    ``send`` returns on success and raises :class:`TransportError` on
    failure. There is no batching primitive: one call, one point.
    """

    async def send(self, text: str) -> None:
        ...


class WebhookTransport:
    """POST each rendered point as ``text/plain`` to a URL."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        url: str,
        *,
        timeout: float = 30.0,
    ) -> None:
        self._http = session
        self._url = url
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def send(self, text: str) -> None:
        headers = {"content-type": "text/plain; charset=utf-8"}
        _logger.debug("POST %s", self._url)
        try:
            async with self._http.post(self._url, data=text.encode("utf-8"), headers=headers, timeout=self._timeout) as resp:
                if resp.status // 100 != 2:
                    body = await resp.text()
                    raise TransportError(
                        f"HTTP {resp.status} from {self._url}: {body[:200]}",
                        status_code=resp.status,
                        target=self._url,
                    )
        except TransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise TransportError(f"Request to {self._url} failed: {exc}", target=self._url) from exc


class EmailTransport:
    """Send each rendered point as the body of one email.

    ``smtplib`` is blocking, so every send runs in a worker thread. Port
    465 uses implicit TLS, any other port upgrades with STARTTLS when the
    server offers it.
    """

    def __init__(
        self,
        *,
        host: str,
        sender: str,
        port: int = 465,
        user: str | None = None,
        password: str | None = None,
        recipient: str = DEFAULT_RECIPIENT,
        subject: str = "Position report",
        timeout: float = 30.0,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._sender = sender
        self._recipient = recipient
        self._subject = subject
        self._timeout = timeout

    def _build_message(self, text: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self._sender
        message["To"] = self._recipient
        message["Subject"] = self._subject
        message.set_content(text)
        return message

    def _send_blocking(self, message: EmailMessage) -> None:
        context = ssl.create_default_context()
        smtp: smtplib.SMTP
        if self._port == 465:
            smtp = smtplib.SMTP_SSL(self._host, self._port, timeout=self._timeout, context=context)
        else:
            smtp = smtplib.SMTP(self._host, self._port, timeout=self._timeout)
        with smtp:
            smtp.ehlo()
            if self._port != 465 and smtp.has_extn("starttls"):
                smtp.starttls(context=context)
                smtp.ehlo()
            if self._user and self._password:
                smtp.login(self._user, self._password)
            smtp.send_message(message)

    async def send(self, text: str) -> None:
        message = self._build_message(text)
        target = f"{self._host}:{self._port}"
        _logger.debug("Sending mail to %s via %s", self._recipient, target)
        try:
            await asyncio.to_thread(self._send_blocking, message)
        except (smtplib.SMTPException, OSError) as exc:
            raise TransportError(f"Sending email via {target} failed: {exc}", target=target) from exc
