"""Report delivery, keyed by destination type."""

from typing import Optional

import httpx

from churn_report.config import Settings
from churn_report.errors import ConfigurationError
from churn_report.notify.email import send_email
from churn_report.notify.slack import send_slack


def deliver(
    destination: str,
    config: str,
    text: str,
    settings: Optional[Settings] = None,
    *,
    client: Optional[httpx.Client] = None,
) -> None:
    """Send text to an email address or Slack webhook URL."""
    settings = settings or Settings.from_env()
    if destination == "email":
        send_email(
            text,
            config,
            api_key=settings.resend_api_key,
            sender=settings.email_from,
            client=client,
            timeout=settings.http_timeout,
        )
    elif destination == "slack":
        send_slack(text, config, client=client, timeout=settings.http_timeout)
    else:
        raise ConfigurationError(f"Unknown report destination: {destination}")


__all__ = ["deliver", "send_email", "send_slack"]
