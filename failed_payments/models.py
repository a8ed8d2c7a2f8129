"""Canonical failure record and delivery result types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

UNKNOWN_ERROR = "Unknown error"
UNKNOWN_EMAIL = "Unknown"
MISSING_CUSTOMER_ID = "N/A"


@dataclass(frozen=True)
class FailureRecord:
    """One failed payment, normalized from a Stripe event.

    amount is in minor units (cents) and currency is the lowercase ISO
    code as Stripe sends it. Missing customer fields stay None here;
    defaults are applied by the display properties only.
    """

    payment_id: str
    amount: int
    currency: str
    failure_reason: str = UNKNOWN_ERROR
    timestamp: str = ""
    customer_id: str | None = None
    customer_email: str | None = None

    @property
    def decimal_amount(self) -> float:
        return round(self.amount / 100, 2)

    @property
    def display_currency(self) -> str:
        return self.currency.upper()

    @property
    def display_amount(self) -> str:
        """Amount as shown to people, e.g. "$25.00 USD"."""
        return f"${self.amount / 100:.2f} {self.display_currency}"

    @property
    def display_email(self) -> str:
        return self.customer_email or UNKNOWN_EMAIL

    @property
    def display_customer_id(self) -> str:
        return self.customer_id or MISSING_CUSTOMER_ID

    def to_dict(self) -> dict[str, Any]:
        """JSON view used by the HTTP surface."""
        return {
            "paymentId": self.payment_id,
            "customerId": self.customer_id,
            "customerEmail": self.customer_email,
            "amount": self.amount,
            "currency": self.currency,
            "failureReason": self.failure_reason,
            "timestamp": self.timestamp,
        }


@dataclass
class SendResult:
    """Result of delivering a record to one destination."""

    success: bool
    channel_id: str
    error: str = ""
    response_id: str = ""  # Provider id of the created row or message
    missing_table: bool = False  # Airtable only: destination table does not exist
