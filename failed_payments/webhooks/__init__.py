"""Stripe webhook intake.

Verifies signed payment-failure events and dispatches them to the
email and Airtable channels.
"""
