"""Stripe failed-payments monitor.

Receives payment-failure webhooks, enriches them with customer data,
and fans each failure out to an alert email and an Airtable record.
"""

__version__ = "1.0.0"
