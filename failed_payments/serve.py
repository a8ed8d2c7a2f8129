"""FastAPI application for the Stripe failed payments monitor.

Routes:
- GET  /              status and endpoint map
- GET  /health        Stripe / SMTP / Airtable checks
- GET  /logs          last 50 activity entries
- POST /test          send a fabricated failure through email + Airtable
- GET  /webhook/info  Stripe subscription instructions
- POST /webhook       Stripe webhook intake

Components are built once per app and shared through app.state.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from failed_payments.channels.email import EmailNotifier
from failed_payments.config import Settings
from failed_payments.enricher import PaymentEnricher
from failed_payments.health import run_health_checks
from failed_payments.logbuffer import LogBuffer, utc_now_iso
from failed_payments.models import FailureRecord
from failed_payments.records.airtable import AirtableRecordLogger
from failed_payments.webhooks.dispatcher import WebhookDispatcher
from failed_payments.webhooks.handlers import register_webhook_routes

logger = logging.getLogger(__name__)

SERVICE_NAME = "Stripe Failed Payments Monitor"
LOGS_PAGE_SIZE = 50

ENDPOINTS = {
    "GET /": "This status page",
    "GET /health": "Health check",
    "GET /logs": "View recent logs",
    "POST /test": "Manual test run",
    "POST /webhook": "Stripe webhook endpoint",
    "GET /webhook/info": "Webhook configuration info",
}


def build_test_record(recipient: str) -> FailureRecord:
    """Fabricated failure used by POST /test."""
    return FailureRecord(
        payment_id=f"pi_test_{int(time.time() * 1000)}",
        customer_id="cus_test_customer",
        customer_email=recipient or None,
        amount=2500,
        currency="usd",
        failure_reason="Test failure - insufficient funds",
        timestamp=utc_now_iso(),
    )


def create_app(
    settings: Settings | None = None,
    *,
    log: LogBuffer | None = None,
    enricher: PaymentEnricher | None = None,
    notifier: EmailNotifier | None = None,
    record_logger: AirtableRecordLogger | None = None,
) -> FastAPI:
    """Build the app. Collaborators may be injected (tests), else built from settings."""
    if settings is None:
        settings = Settings()
    if log is None:
        log = LogBuffer(settings.log_buffer_size)
    if enricher is None:
        enricher = PaymentEnricher(log, api_key=settings.stripe_secret_key)
    if notifier is None:
        notifier = EmailNotifier(
            recipient=settings.alert_recipient,
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_user=settings.gmail_user,
            smtp_password=settings.gmail_app_password,
            timeout=settings.outbound_timeout,
        )
    if record_logger is None:
        record_logger = AirtableRecordLogger(
            api_key=settings.airtable_api_key,
            base_id=settings.airtable_base_id,
            table_name=settings.airtable_table_name,
            timeout=settings.outbound_timeout,
        )
    dispatcher = WebhookDispatcher(log, enricher, notifier, record_logger)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        for name in settings.missing_credentials():
            log.warn(f"{name} is not configured")
        log.info(f"{SERVICE_NAME} started on port {settings.port}")
        log.info("Ready to monitor failed payments and send alerts")
        yield
        await record_logger.aclose()

    app = FastAPI(title=SERVICE_NAME, lifespan=lifespan)
    app.state.settings = settings
    app.state.log = log
    app.state.dispatcher = dispatcher
    app.state.started_at = utc_now_iso()

    @app.get("/")
    async def status():
        return {
            "service": SERVICE_NAME,
            "status": "running",
            "endpoints": ENDPOINTS,
            "lastStarted": app.state.started_at,
        }

    @app.get("/health")
    async def health():
        return await run_health_checks(settings.stripe_secret_key, notifier, record_logger)

    @app.get("/logs")
    async def logs():
        return {
            "logs": [entry.to_dict() for entry in log.recent(LOGS_PAGE_SIZE)],
            "total": log.total,
        }

    @app.post("/test")
    async def manual_test():
        log.info("Manual test initiated")
        record = build_test_record(settings.alert_recipient)
        try:
            results = await dispatcher.deliver(record)
        except Exception as e:
            logger.exception("Manual test crashed")
            log.error(f"Test failed: {e}")
            return JSONResponse({"success": False, "error": str(e)}, status_code=500)

        failures = [f"{r.channel_id}: {r.error}" for r in results if not r.success]
        if failures:
            error = "; ".join(failures)
            log.error(f"Test failed: {error}")
            return JSONResponse({"success": False, "error": error}, status_code=500)

        log.info("Test completed successfully")
        return {
            "success": True,
            "message": "Test alert sent and logged successfully",
            "testData": record.to_dict(),
        }

    register_webhook_routes(app)
    return app
