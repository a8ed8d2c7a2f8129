"""Failed payments monitor configuration."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Environment-driven settings for the failed payments monitor."""

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""

    # Airtable
    airtable_api_key: str = ""
    airtable_base_id: str = ""
    airtable_table_name: str = "Failed Payments"

    # Mail transport (Gmail app password by default)
    gmail_user: str = ""
    gmail_app_password: str = ""
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    alert_email: str = ""

    port: int = 3000
    log_buffer_size: int = 100
    outbound_timeout: float = 15.0

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def alert_recipient(self) -> str:
        return self.alert_email or self.gmail_user

    def missing_credentials(self) -> list[str]:
        """Names of credentials that are not configured."""
        required = {
            "STRIPE_SECRET_KEY": self.stripe_secret_key,
            "STRIPE_WEBHOOK_SECRET": self.stripe_webhook_secret,
            "AIRTABLE_API_KEY": self.airtable_api_key,
            "AIRTABLE_BASE_ID": self.airtable_base_id,
            "GMAIL_USER": self.gmail_user,
            "GMAIL_APP_PASSWORD": self.gmail_app_password,
        }
        return [name for name, value in required.items() if not value]
