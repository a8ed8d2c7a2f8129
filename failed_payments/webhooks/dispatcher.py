"""Webhook event dispatcher: classifies verified events and fans out alerts.

Each failure event becomes one FailureRecord, which is delivered to the
email notifier and then the Airtable record logger, strictly in order.

Contract:
- Downstream failures come back as SendResult and are logged here
- Nothing raised while processing an event escapes dispatch()
- Unrecognized event types are logged and acknowledged
"""

from __future__ import annotations

import logging
from typing import Any

from failed_payments.channels.email import EmailNotifier
from failed_payments.enricher import PaymentEnricher
from failed_payments.logbuffer import LogBuffer
from failed_payments.models import FailureRecord, SendResult
from failed_payments.records.airtable import SCHEMA_GUIDANCE, AirtableRecordLogger

logger = logging.getLogger(__name__)

PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"
INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
CHARGE_FAILED = "charge.failed"

SUBSCRIBED_EVENTS = [PAYMENT_INTENT_FAILED, INVOICE_PAYMENT_FAILED, CHARGE_FAILED]


class WebhookDispatcher:
    """Routes verified Stripe events to the enricher and delivery channels."""

    def __init__(
        self,
        log: LogBuffer,
        enricher: PaymentEnricher,
        notifier: EmailNotifier,
        record_logger: AirtableRecordLogger,
    ):
        self._log = log
        self._enricher = enricher
        self._notifier = notifier
        self._record_logger = record_logger

    async def deliver(self, record: FailureRecord) -> list[SendResult]:
        """Send the email alert, then write the record. Returns both results."""
        email_result = await self._notifier.send(record)
        if email_result.success:
            self._log.info(f"Email alert sent successfully for payment {record.payment_id}")
        else:
            self._log.error(f"Failed to send email alert: {email_result.error}")

        record_result = await self._record_logger.append(record)
        if record_result.success:
            self._log.info(f"Payment failure logged to Airtable: {record.payment_id}")
        else:
            self._log.error(f"Failed to log to Airtable: {record_result.error}")
            if record_result.missing_table:
                self._log_schema_guidance()

        return [email_result, record_result]

    def _log_schema_guidance(self) -> None:
        self._log.warn(
            f'Please create a "{self._record_logger.table_name}" table in your '
            "Airtable base with the following fields:"
        )
        for line in SCHEMA_GUIDANCE:
            self._log.warn(line)

    async def _build_record(self, event_type: str, obj: Any) -> FailureRecord | None:
        if event_type == PAYMENT_INTENT_FAILED:
            return await self._enricher.from_payment_intent(obj)
        if event_type == INVOICE_PAYMENT_FAILED:
            return await self._enricher.from_invoice(obj)
        if event_type == CHARGE_FAILED:
            return self._enricher.from_charge(obj)
        return None

    async def dispatch(self, event: dict[str, Any]) -> FailureRecord | None:
        """Process one verified event. Returns the delivered record, if any."""
        event_type = event.get("type", "unknown")
        self._log.info(f"Received webhook event: {event_type}")

        if event_type not in SUBSCRIBED_EVENTS:
            logger.debug("Ignoring unsubscribed event type %s", event_type)
            return None

        obj = (event.get("data") or {}).get("object") or {}
        try:
            record = await self._build_record(event_type, obj)
            if record is None:
                return None
            await self.deliver(record)
            return record
        except Exception as e:
            logger.exception("Failed to process webhook event %s", event.get("id", ""))
            self._log.error(f"Error processing {event_type} event: {e}")
            return None
