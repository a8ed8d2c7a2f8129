"""Payment enrichment: Stripe objects -> FailureRecord.

Handles the three failure shapes Stripe sends:
- payment_intent: customer email looked up via the Customers API (best effort)
- invoice: referenced payment intent fetched first, then treated as above
- charge: billing email already embedded, no lookup

The Stripe SDK is blocking, so calls go through asyncio.to_thread.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import stripe

from failed_payments.logbuffer import LogBuffer, utc_now_iso
from failed_payments.models import UNKNOWN_ERROR, FailureRecord

logger = logging.getLogger(__name__)


def _get(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from a plain dict or a StripeObject."""
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        value = obj.get(key, default)
    else:
        value = getattr(obj, key, default)
    return default if value is None else value


def _object_id(value: Any) -> str | None:
    """Stripe references are either an id string or an expanded object."""
    if value is None or isinstance(value, str):
        return value or None
    return _get(value, "id")


class PaymentEnricher:
    """Builds FailureRecords from Stripe webhook objects."""

    def __init__(self, log: LogBuffer, api_key: str = ""):
        self._log = log
        self._api_key = api_key

    async def _retrieve_customer(self, customer_id: str) -> Any:
        return await asyncio.to_thread(
            stripe.Customer.retrieve, customer_id, api_key=self._api_key
        )

    async def _retrieve_payment_intent(self, payment_intent_id: str) -> Any:
        return await asyncio.to_thread(
            stripe.PaymentIntent.retrieve, payment_intent_id, api_key=self._api_key
        )

    async def lookup_email(self, customer_id: str) -> str | None:
        """Fetch a customer's email. Failures are logged and yield None."""
        try:
            customer = await self._retrieve_customer(customer_id)
        except Exception as e:
            self._log.warn(f"Could not retrieve customer email: {e}")
            return None
        return _get(customer, "email")

    async def from_payment_intent(self, payment_intent: Any) -> FailureRecord:
        customer_id = _object_id(_get(payment_intent, "customer"))
        last_error = _get(payment_intent, "last_payment_error")

        customer_email = None
        if customer_id:
            customer_email = await self.lookup_email(customer_id)

        record = FailureRecord(
            payment_id=_get(payment_intent, "id", ""),
            customer_id=customer_id,
            customer_email=customer_email,
            amount=int(_get(payment_intent, "amount", 0)),
            currency=_get(payment_intent, "currency", ""),
            failure_reason=_get(last_error, "message") or UNKNOWN_ERROR,
            timestamp=utc_now_iso(),
        )
        self._log.info(
            f"Processing failed payment: {record.payment_id} - ${record.amount / 100:.2f}"
        )
        return record

    async def from_invoice(self, invoice: Any) -> FailureRecord | None:
        """Resolve the invoice's payment intent. Returns None if the event is dropped."""
        payment_intent_id = _object_id(_get(invoice, "payment_intent"))
        if not payment_intent_id:
            self._log.info(
                f"Invoice {_get(invoice, 'id', 'unknown')} has no payment intent, skipping"
            )
            return None

        logger.debug("Fetching payment intent %s for invoice", payment_intent_id)
        try:
            payment_intent = await self._retrieve_payment_intent(payment_intent_id)
        except Exception as e:
            self._log.error(f"Error processing invoice payment failure: {e}")
            return None

        return await self.from_payment_intent(payment_intent)

    def from_charge(self, charge: Any) -> FailureRecord:
        billing = _get(charge, "billing_details")
        return FailureRecord(
            payment_id=_get(charge, "id", ""),
            customer_id=_object_id(_get(charge, "customer")),
            customer_email=_get(billing, "email"),
            amount=int(_get(charge, "amount", 0)),
            currency=_get(charge, "currency", ""),
            failure_reason=_get(charge, "failure_message") or UNKNOWN_ERROR,
            timestamp=utc_now_iso(),
        )
