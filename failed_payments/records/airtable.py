"""Airtable record logger: one row per failed payment.

Writes through the Airtable REST API (v0) with a bearer token.
The destination table is not created here; when Airtable reports it
missing, callers log SCHEMA_GUIDANCE so an operator can provision it.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from failed_payments.models import FailureRecord, SendResult

logger = logging.getLogger(__name__)

AIRTABLE_API_URL = "https://api.airtable.com/v0"

# Column name -> Airtable field type the table must be provisioned with
TABLE_SCHEMA: list[tuple[str, str]] = [
    ("Payment ID", "Single line text"),
    ("Customer Email", "Email"),
    ("Customer ID", "Single line text"),
    ("Amount", "Number"),
    ("Currency", "Single line text"),
    ("Failure Reason", "Long text"),
    ("Timestamp", "Date"),
    ("Status", "Single select: Failed"),
    ("Alert Sent", "Single select: Yes, No"),
]

SCHEMA_GUIDANCE: list[str] = [f"- {name} ({kind})" for name, kind in TABLE_SCHEMA]


def fields_for(record: FailureRecord) -> dict[str, Any]:
    """Map a record onto the fixed table columns."""
    return {
        "Payment ID": record.payment_id,
        "Customer Email": record.display_email,
        "Customer ID": record.display_customer_id,
        "Amount": record.decimal_amount,
        "Currency": record.display_currency,
        "Failure Reason": record.failure_reason,
        "Timestamp": record.timestamp,
        "Status": "Failed",
        "Alert Sent": "Yes",
    }


def _is_missing_table(response: httpx.Response) -> bool:
    # Airtable reports NOT_FOUND, TABLE_NOT_FOUND or MODEL_ID_NOT_FOUND
    return "NOT_FOUND" in response.text


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        kind = error.get("type", "")
        message = error.get("message", "")
        return f"{kind}: {message}".strip(": ") or f"HTTP {response.status_code}"
    if error:
        return str(error)
    return f"HTTP {response.status_code}"


class AirtableRecordLogger:
    """Appends failure records to an Airtable table."""

    def __init__(
        self,
        api_key: str = "",
        base_id: str = "",
        table_name: str = "Failed Payments",
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
        channel_id: str = "airtable",
    ):
        self._api_key = api_key
        self._base_id = base_id
        self._table_name = table_name
        self._channel_id = channel_id
        self._client = client if client is not None else httpx.AsyncClient(timeout=timeout)

    @property
    def channel_id(self) -> str:
        return self._channel_id

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._base_id and self._table_name)

    @property
    def table_url(self) -> str:
        return f"{AIRTABLE_API_URL}/{self._base_id}/{quote(self._table_name, safe='')}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def append(self, record: FailureRecord) -> SendResult:
        """Create one row for the record. Never raises."""
        if not self.is_configured:
            return SendResult(
                success=False,
                channel_id=self._channel_id,
                error="Airtable not configured (missing AIRTABLE_API_KEY/AIRTABLE_BASE_ID)",
            )

        try:
            response = await self._client.post(
                self.table_url,
                json={"fields": fields_for(record)},
                headers=self._headers(),
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return SendResult(
                success=False,
                channel_id=self._channel_id,
                error=f"{type(e).__name__}: {e}",
            )

        if response.is_success:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            row_id = str(payload.get("id", "")) if isinstance(payload, dict) else ""
            return SendResult(success=True, channel_id=self._channel_id, response_id=row_id)

        return SendResult(
            success=False,
            channel_id=self._channel_id,
            error=_error_message(response),
            missing_table=_is_missing_table(response),
        )

    async def check(self) -> str:
        """Health probe: 'connected' if one record can be listed."""
        if not self.is_configured:
            return "table_needs_creation"
        try:
            response = await self._client.get(
                self.table_url,
                params={"maxRecords": 1},
                headers=self._headers(),
            )
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL):
            logger.warning("Airtable health check failed", exc_info=True)
            return "table_needs_creation"
        return "connected"

    async def aclose(self) -> None:
        await self._client.aclose()
