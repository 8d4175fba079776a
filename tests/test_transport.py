from __future__ import annotations

import asyncio
import smtplib
from collections.abc import AsyncIterator
from email.message import EmailMessage
from typing import Any

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from trackrelay._transport import EmailTransport, WebhookTransport
from trackrelay.exceptions import TransportError
from trackrelay.probe import HttpReachabilityProbe


class _Recorder:
    def __init__(self, status: int = 200, delay: float = 0.0) -> None:
        self.status = status
        self.delay = delay
        self.bodies: list[str] = []
        self.content_types: list[str] = []

    async def handle(self, request: web.Request) -> web.Response:
        self.bodies.append(await request.text())
        self.content_types.append(request.content_type)
        if self.delay:
            await asyncio.sleep(self.delay)
        return web.Response(status=self.status, text="nope" if self.status >= 400 else "ok")


async def _serve(recorder: _Recorder) -> TestServer:
    app = web.Application()
    app.router.add_route("*", "/", recorder.handle)
    server = TestServer(app)
    await server.start_server()
    return server


@pytest_asyncio.fixture
async def session() -> AsyncIterator[aiohttp.ClientSession]:
    async with aiohttp.ClientSession() as client:
        yield client


class TestWebhookTransport:
    @pytest.mark.asyncio
    async def test_posts_text_body(self, session: aiohttp.ClientSession) -> None:
        recorder = _Recorder()
        server = await _serve(recorder)
        try:
            transport = WebhookTransport(session, str(server.make_url("/")))
            await transport.send("59.1 10.2 2024-06-01T12:00:00+00:00")
        finally:
            await server.close()

        assert recorder.bodies == ["59.1 10.2 2024-06-01T12:00:00+00:00"]
        assert recorder.content_types == ["text/plain"]

    @pytest.mark.asyncio
    async def test_non_2xx_raises_with_status(self, session: aiohttp.ClientSession) -> None:
        server = await _serve(_Recorder(status=503))
        try:
            transport = WebhookTransport(session, str(server.make_url("/")))
            with pytest.raises(TransportError) as excinfo:
                await transport.send("x")
        finally:
            await server.close()

        assert excinfo.value.status_code == 503

    @pytest.mark.asyncio
    async def test_connection_error_raises(self, session: aiohttp.ClientSession) -> None:
        transport = WebhookTransport(session, "http://127.0.0.1:1/")
        with pytest.raises(TransportError) as excinfo:
            await transport.send("x")
        assert excinfo.value.status_code is None


class TestHttpReachabilityProbe:
    @pytest.mark.asyncio
    async def test_any_http_answer_is_reachable(self, session: aiohttp.ClientSession) -> None:
        server = await _serve(_Recorder(status=404))
        try:
            probe = HttpReachabilityProbe(session, address=str(server.make_url("/")), timeout_ms=2000)
            assert await probe.is_reachable() is True
        finally:
            await server.close()

    @pytest.mark.asyncio
    async def test_refused_connection_is_offline(self, session: aiohttp.ClientSession) -> None:
        probe = HttpReachabilityProbe(session, address="http://127.0.0.1:1/", timeout_ms=500)
        assert await probe.is_reachable() is False

    @pytest.mark.asyncio
    async def test_slow_answer_is_offline(self, session: aiohttp.ClientSession) -> None:
        server = await _serve(_Recorder(delay=1.0))
        try:
            probe = HttpReachabilityProbe(session, address=str(server.make_url("/")), timeout_ms=50)
            assert await probe.is_reachable() is False
        finally:
            await server.close()


class _FakeSMTP:
    instances: list[_FakeSMTP] = []
    fail_send = False

    def __init__(self, host: str, port: int, **_kwargs: Any) -> None:
        self.host = host
        self.port = port
        self.logged_in: tuple[str, str] | None = None
        self.started_tls = False
        self.messages: list[EmailMessage] = []
        _FakeSMTP.instances.append(self)

    def __enter__(self) -> _FakeSMTP:
        return self

    def __exit__(self, *exc: Any) -> None:
        return None

    def ehlo(self) -> None:
        return None

    def has_extn(self, name: str) -> bool:
        return name == "starttls"

    def starttls(self, **_kwargs: Any) -> None:
        self.started_tls = True

    def login(self, user: str, password: str) -> None:
        self.logged_in = (user, password)

    def send_message(self, message: EmailMessage) -> None:
        if _FakeSMTP.fail_send:
            raise smtplib.SMTPRecipientsRefused({})
        self.messages.append(message)


@pytest.fixture
def fake_smtp(monkeypatch: pytest.MonkeyPatch) -> type[_FakeSMTP]:
    _FakeSMTP.instances = []
    _FakeSMTP.fail_send = False
    monkeypatch.setattr(smtplib, "SMTP", _FakeSMTP)
    monkeypatch.setattr(smtplib, "SMTP_SSL", _FakeSMTP)
    return _FakeSMTP


class TestEmailTransport:
    @pytest.mark.asyncio
    async def test_sends_one_message_per_point(self, fake_smtp: type[_FakeSMTP]) -> None:
        transport = EmailTransport(
            host="smtp.example.com",
            sender="boat@example.com",
            user="boat",
            password="secret",
        )
        await transport.send("59.1 10.2 2024-06-01T12:00:00+00:00")

        (smtp,) = fake_smtp.instances
        assert smtp.port == 465
        assert smtp.logged_in == ("boat", "secret")
        assert smtp.started_tls is False
        (message,) = smtp.messages
        assert message["To"] == "tracking@predictwind.com"
        assert message["From"] == "boat@example.com"
        assert message.get_content().strip() == "59.1 10.2 2024-06-01T12:00:00+00:00"

    @pytest.mark.asyncio
    async def test_plain_port_upgrades_with_starttls(self, fake_smtp: type[_FakeSMTP]) -> None:
        transport = EmailTransport(host="smtp.example.com", sender="boat@example.com", port=587)
        await transport.send("x")

        (smtp,) = fake_smtp.instances
        assert smtp.started_tls is True
        assert smtp.logged_in is None

    @pytest.mark.asyncio
    async def test_smtp_failure_raises_transport_error(self, fake_smtp: type[_FakeSMTP]) -> None:
        fake_smtp.fail_send = True
        transport = EmailTransport(host="smtp.example.com", sender="boat@example.com")

        with pytest.raises(TransportError) as excinfo:
            await transport.send("x")
        assert excinfo.value.target == "smtp.example.com:465"
