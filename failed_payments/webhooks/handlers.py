"""Webhook HTTP handlers: FastAPI routes for Stripe delivery.

The handler:
1. Reads raw body (needed for signature verification)
2. Verifies the Stripe signature
3. Dispatches the event (enrich -> email -> Airtable)
4. Returns 200 {"received": true}

Contract:
- 400 with a plain-text reason only for verification failures
- 200 for every verified event, whatever happens downstream
  (Stripe retries delivery on non-2xx responses)
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from failed_payments.webhooks.dispatcher import SUBSCRIBED_EVENTS
from failed_payments.webhooks.verification import (
    SIGNATURE_HEADER,
    WebhookVerificationError,
    verify_event,
)

logger = logging.getLogger(__name__)

_INSTRUCTIONS = "Add this webhook URL to your Stripe Dashboard under Developers > Webhooks"


async def _handle_webhook(request: Request) -> JSONResponse | PlainTextResponse:
    start = time.time()
    state = request.app.state

    body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    try:
        event = verify_event(body, signature, state.settings.stripe_webhook_secret)
    except WebhookVerificationError as e:
        state.log.error(f"Webhook signature verification failed: {e}")
        return PlainTextResponse(f"Webhook Error: {e}", status_code=400)

    await state.dispatcher.dispatch(event)

    elapsed_ms = (time.time() - start) * 1000
    logger.debug("Webhook processed in %.1fms: %s", elapsed_ms, event.get("type"))

    return JSONResponse({"received": True})


def register_webhook_routes(app: FastAPI) -> None:
    """Register webhook endpoint routes on the FastAPI app.

    Expects app.state.settings, app.state.log and app.state.dispatcher.
    """

    @app.post("/webhook")
    async def stripe_webhook(request: Request):
        """Receive Stripe webhooks (signature-verified)."""
        return await _handle_webhook(request)

    @app.get("/webhook/info")
    async def webhook_info(request: Request):
        """Describe how to subscribe this endpoint in Stripe."""
        base = str(request.base_url).rstrip("/")
        return {
            "webhookUrl": f"{base}/webhook",
            "eventsToSubscribe": list(SUBSCRIBED_EVENTS),
            "instructions": _INSTRUCTIONS,
        }
