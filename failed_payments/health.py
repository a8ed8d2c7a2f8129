"""Dependency health checks for GET /health."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import stripe

from failed_payments.channels.email import EmailNotifier
from failed_payments.logbuffer import utc_now_iso
from failed_payments.records.airtable import AirtableRecordLogger

logger = logging.getLogger(__name__)


async def check_stripe(api_key: str) -> str:
    if not api_key:
        return "error"
    try:
        await asyncio.to_thread(stripe.Balance.retrieve, api_key=api_key)
    except Exception:
        logger.warning("Stripe health check failed", exc_info=True)
        return "error"
    return "connected"


async def check_email(notifier: EmailNotifier) -> str:
    return "connected" if await notifier.verify() else "error"


async def run_health_checks(
    stripe_api_key: str,
    notifier: EmailNotifier,
    record_logger: AirtableRecordLogger,
) -> dict[str, Any]:
    """Probe each collaborator in turn.

    Stripe or email errors mark the service unhealthy. A missing Airtable
    table is reported but does not, since alerts still go out by email.
    """
    checks = {
        "stripe": await check_stripe(stripe_api_key),
        "email": await check_email(notifier),
        "airtable": await record_logger.check(),
    }
    healthy = checks["stripe"] == "connected" and checks["email"] == "connected"
    return {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": utc_now_iso(),
        "checks": checks,
    }
