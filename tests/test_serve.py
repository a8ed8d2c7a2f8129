"""HTTP surface tests: status, health, logs, manual test, app lifecycle."""

from __future__ import annotations

from unittest.mock import patch

import stripe
from fastapi.testclient import TestClient

from failed_payments.config import Settings
from failed_payments.logbuffer import LogBuffer
from failed_payments.serve import ENDPOINTS, build_test_record, create_app


class TestStatus:
    def test_status_page(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        data = resp.json()
        assert data["service"] == "Stripe Failed Payments Monitor"
        assert data["status"] == "running"
        assert data["endpoints"] == ENDPOINTS
        assert "POST /webhook" in data["endpoints"]
        assert data["lastStarted"].endswith("Z")


class TestLogs:
    def test_startup_lines_logged(self, client):
        messages = [e["message"] for e in client.get("/logs").json()["logs"]]
        assert "Stripe Failed Payments Monitor started on port 3000" in messages
        assert "Ready to monitor failed payments and send alerts" in messages

    def test_returns_at_most_50(self, client, log):
        for i in range(120):
            log.record(f"entry {i}")

        data = client.get("/logs").json()

        assert len(data["logs"]) == 50
        assert data["logs"][-1]["message"] == "entry 119"
        assert data["logs"][0]["message"] == "entry 70"
        assert data["total"] == log.total
        assert data["total"] > 100

    def test_entry_shape(self, client):
        entry = client.get("/logs").json()["logs"][0]
        assert set(entry) == {"timestamp", "level", "message"}
        assert entry["level"] in {"info", "warn", "error"}

    def test_missing_credentials_warned(self, log, notifier, record_logger):
        app = create_app(
            Settings(_env_file=None), log=log, notifier=notifier, record_logger=record_logger
        )
        with TestClient(app) as c:
            warnings = [e["message"] for e in c.get("/logs").json()["logs"] if e["level"] == "warn"]
        assert "STRIPE_SECRET_KEY is not configured" in warnings
        assert "STRIPE_WEBHOOK_SECRET is not configured" in warnings


class TestManualTest:
    def test_success(self, client, notifier, record_logger):
        resp = client.post("/test")

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["message"] == "Test alert sent and logged successfully"
        test_data = data["testData"]
        assert test_data["amount"] == 2500
        assert test_data["currency"] == "usd"
        assert test_data["failureReason"] == "Test failure - insufficient funds"
        assert test_data["customerId"] == "cus_test_customer"
        assert test_data["customerEmail"] == "ops@example.com"
        assert test_data["paymentId"].startswith("pi_test_")
        assert len(notifier.sent) == 1
        assert len(record_logger.rows) == 1

    def test_logs_lifecycle(self, client, log_messages):
        client.post("/test")
        info = log_messages("info")
        assert "Manual test initiated" in info
        assert "Test completed successfully" in info

    def test_delivery_failure_returns_500(self, client, notifier, log_messages):
        notifier.should_fail = True

        resp = client.post("/test")

        assert resp.status_code == 500
        data = resp.json()
        assert data["success"] is False
        assert "SMTP error" in data["error"]
        assert any(m.startswith("Test failed:") for m in log_messages("error"))

    def test_unexpected_exception_returns_500(self, client, record_logger):
        async def explode(record):
            raise RuntimeError("kaboom")

        record_logger.append = explode
        resp = client.post("/test")
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "kaboom"}

    def test_build_test_record(self):
        record = build_test_record("")
        assert record.amount == 2500
        assert record.currency == "usd"
        assert record.customer_email is None


class TestHealth:
    @patch("failed_payments.health.stripe.Balance.retrieve")
    def test_healthy(self, mock_balance, client):
        mock_balance.return_value = {"object": "balance"}

        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["checks"] == {
            "stripe": "connected",
            "email": "connected",
            "airtable": "connected",
        }
        assert data["timestamp"].endswith("Z")
        mock_balance.assert_called_once_with(api_key="sk_test_123")

    @patch("failed_payments.health.stripe.Balance.retrieve")
    def test_stripe_error_is_unhealthy(self, mock_balance, client):
        mock_balance.side_effect = stripe.AuthenticationError("bad key")
        data = client.get("/health").json()
        assert data["status"] == "unhealthy"
        assert data["checks"]["stripe"] == "error"

    @patch("failed_payments.health.stripe.Balance.retrieve")
    def test_email_error_is_unhealthy(self, mock_balance, client, notifier):
        notifier.healthy = False
        data = client.get("/health").json()
        assert data["status"] == "unhealthy"
        assert data["checks"]["email"] == "error"

    @patch("failed_payments.health.stripe.Balance.retrieve")
    def test_missing_table_does_not_flip_status(self, mock_balance, client, record_logger):
        record_logger.status = "table_needs_creation"
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["checks"]["airtable"] == "table_needs_creation"

    @patch("failed_payments.health.stripe.Balance.retrieve")
    def test_check_shape_is_stable(self, mock_balance, client):
        first = client.get("/health").json()
        second = client.get("/health").json()
        assert set(first["checks"]) == set(second["checks"]) == {"stripe", "email", "airtable"}


class TestLifecycle:
    def test_record_logger_closed_on_shutdown(self, app, record_logger):
        with TestClient(app):
            assert record_logger.closed is False
        assert record_logger.closed is True


class TestCreateApp:
    def test_injected_empty_log_is_kept(self, settings, notifier, record_logger):
        buf = LogBuffer()
        assert len(buf) == 0

        app = create_app(settings, log=buf, notifier=notifier, record_logger=record_logger)

        assert app.state.log is buf

    def test_startup_lines_land_in_injected_log(self, settings, notifier, record_logger):
        buf = LogBuffer()
        app = create_app(settings, log=buf, notifier=notifier, record_logger=record_logger)

        with TestClient(app):
            pass

        messages = [e.message for e in buf.recent(10)]
        assert "Ready to monitor failed payments and send alerts" in messages
        assert app.state.dispatcher._enricher._log is buf
