"""Shared fixtures for the failed payments monitor test suite."""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any

import pytest
from fastapi.testclient import TestClient

from failed_payments.config import Settings
from failed_payments.enricher import PaymentEnricher
from failed_payments.logbuffer import LogBuffer
from failed_payments.models import FailureRecord, SendResult
from failed_payments.serve import create_app
from failed_payments.webhooks.dispatcher import WebhookDispatcher

WEBHOOK_SECRET = "whsec_test_secret"


# ── Fake delivery channels ────────────────────────────────────────────────


class FakeNotifier:
    """Records alerts instead of sending mail."""

    channel_id = "email"

    def __init__(self) -> None:
        self.sent: list[FailureRecord] = []
        self.should_fail = False
        self.healthy = True

    async def send(self, record: FailureRecord) -> SendResult:
        if self.should_fail:
            return SendResult(success=False, channel_id=self.channel_id, error="SMTP error: boom")
        self.sent.append(record)
        return SendResult(success=True, channel_id=self.channel_id)

    async def verify(self) -> bool:
        return self.healthy


class FakeRecordLogger:
    """Records rows instead of calling Airtable."""

    channel_id = "airtable"
    table_name = "Failed Payments"

    def __init__(self) -> None:
        self.rows: list[FailureRecord] = []
        self.should_fail = False
        self.missing_table = False
        self.status = "connected"
        self.closed = False

    async def append(self, record: FailureRecord) -> SendResult:
        if self.should_fail or self.missing_table:
            return SendResult(
                success=False,
                channel_id=self.channel_id,
                error="NOT_FOUND" if self.missing_table else "HTTP 500",
                missing_table=self.missing_table,
            )
        self.rows.append(record)
        return SendResult(success=True, channel_id=self.channel_id, response_id="rec123")

    async def check(self) -> str:
        return self.status

    async def aclose(self) -> None:
        self.closed = True


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret=WEBHOOK_SECRET,
        airtable_api_key="pat_test",
        airtable_base_id="appTEST",
        gmail_user="alerts@example.com",
        gmail_app_password="app-password",
        alert_email="ops@example.com",
    )


@pytest.fixture
def log() -> LogBuffer:
    return LogBuffer()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def record_logger() -> FakeRecordLogger:
    return FakeRecordLogger()


@pytest.fixture
def enricher(log: LogBuffer) -> PaymentEnricher:
    return PaymentEnricher(log, api_key="sk_test_123")


@pytest.fixture
def dispatcher(log, enricher, notifier, record_logger) -> WebhookDispatcher:
    return WebhookDispatcher(log, enricher, notifier, record_logger)


@pytest.fixture
def app(settings, log, enricher, notifier, record_logger):
    return create_app(
        settings,
        log=log,
        enricher=enricher,
        notifier=notifier,
        record_logger=record_logger,
    )


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


# ── Webhook signing ───────────────────────────────────────────────────────


def sign(body: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Compute a valid Stripe-Signature header (v1 scheme)."""
    ts = timestamp or int(time.time())
    signed_payload = f"{ts}.".encode() + body
    sig = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def make_event(event_type: str, obj: dict[str, Any], event_id: str = "evt_test") -> bytes:
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "data": {"object": obj},
        }
    ).encode()


def messages(log: LogBuffer, level: str | None = None) -> list[str]:
    return [e.message for e in log.recent(log.capacity) if level is None or e.level == level]


@pytest.fixture
def post_event(client):
    """Factory: POST a signed (or deliberately mis-signed) event to /webhook."""

    def _post(event_type: str, obj: dict[str, Any], signature: str | None = None):
        body = make_event(event_type, obj)
        headers = {"Content-Type": "application/json"}
        headers["Stripe-Signature"] = signature if signature is not None else sign(body)
        return client.post("/webhook", content=body, headers=headers)

    return _post


@pytest.fixture
def log_messages(log):
    """Factory: messages currently held in the log buffer, optionally by level."""

    def _messages(level: str | None = None) -> list[str]:
        return messages(log, level)

    return _messages


@pytest.fixture
def signer():
    """The Stripe-Signature factory, for tests that build requests by hand."""
    return sign
