"""Email delivery through the Resend HTTP API."""

import logging
from typing import Optional

import httpx

from churn_report.connectors.http import DEFAULT_TIMEOUT
from churn_report.errors import ConfigurationError, DeliveryError

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"
SUBJECT = "Customer Churn Risk Report"


def send_email(
    content: str,
    to: str,
    *,
    api_key: Optional[str],
    sender: str,
    client: Optional[httpx.Client] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> None:
    """Send the report as a plain-text email. Non-2xx or transport failure -> DeliveryError."""
    if not api_key:
        raise ConfigurationError("RESEND_API_KEY is required for email delivery")
    http = client or httpx.Client(timeout=timeout)
    try:
        resp = http.post(
            RESEND_URL,
            headers={"Authorization": f"Bearer {api_key}"},
            json={"from": sender, "to": [to], "subject": SUBJECT, "text": content},
        )
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise DeliveryError(
            f"Email send failed: HTTP {e.response.status_code} {e.response.reason_phrase}"
        ) from e
    except httpx.RequestError as e:
        raise DeliveryError(f"Email send failed: {e}") from e
    finally:
        if client is None:
            http.close()
    logger.info("Report emailed to %s", to)
