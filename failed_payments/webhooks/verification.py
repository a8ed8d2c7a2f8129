"""Stripe webhook signature verification.

Security contract:
- Signature is checked by the Stripe SDK against the raw, unparsed body
- Missing secret -> verification always fails (fail-closed)
- Missing or malformed Stripe-Signature header -> failure
- Stripe's default timestamp tolerance (300s) guards against replay
"""

from __future__ import annotations

import json
import logging
from typing import Any

import stripe

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "stripe-signature"


class WebhookVerificationError(Exception):
    """Raised when an inbound webhook cannot be authenticated or parsed."""


def verify_event(body: bytes, signature_header: str | None, secret: str) -> dict[str, Any]:
    """Verify a Stripe webhook and return the event as a plain dict.

    Args:
        body: Raw request body bytes
        signature_header: Value of the Stripe-Signature header
        secret: Endpoint signing secret (whsec_...)

    Returns:
        The decoded event payload

    Raises:
        WebhookVerificationError: on any verification or payload failure
    """
    if not secret:
        logger.warning("STRIPE_WEBHOOK_SECRET not set, rejecting webhook")
        raise WebhookVerificationError("Webhook signing secret is not configured")
    if not signature_header:
        raise WebhookVerificationError("No stripe-signature header value was provided.")

    try:
        stripe.Webhook.construct_event(body, signature_header, secret)
    except stripe.SignatureVerificationError as e:
        raise WebhookVerificationError(str(e)) from e
    except ValueError as e:
        raise WebhookVerificationError(f"Invalid payload: {e}") from e

    # construct_event succeeded, so the body is valid JSON
    return json.loads(body)
