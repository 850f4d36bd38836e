"""Slack delivery through an incoming webhook."""

import logging
from typing import Any, Optional

import httpx

from churn_report.connectors.http import DEFAULT_TIMEOUT
from churn_report.errors import DeliveryError

logger = logging.getLogger(__name__)

HEADER = "📊 Customer Churn Risk Report"
# Slack limits: section text 3000 chars, 50 blocks per message
SECTION_LIMIT = 3000
MAX_SECTIONS = 49


def split_sections(content: str, limit: int = SECTION_LIMIT) -> list[str]:
    """Split text into chunks of at most limit chars, preferring line boundaries."""
    chunks: list[str] = []
    current = ""
    for line in content.splitlines(keepends=True):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]
        if len(current) + len(line) > limit:
            chunks.append(current)
            current = ""
        current += line
    if current:
        chunks.append(current)
    return [c for c in chunks if c.strip()]


def build_payload(content: str) -> dict[str, Any]:
    """Webhook body: header block plus the report as mrkdwn sections."""
    sections = split_sections(content)
    if len(sections) > MAX_SECTIONS:
        logger.warning("Slack report truncated from %d to %d sections", len(sections), MAX_SECTIONS)
        sections = sections[:MAX_SECTIONS]
    blocks: list[dict[str, Any]] = [{"type": "header", "text": {"type": "plain_text", "text": HEADER}}]
    blocks += [{"type": "section", "text": {"type": "mrkdwn", "text": s}} for s in sections]
    return {"text": f"*{HEADER}*", "blocks": blocks}


def send_slack(
    content: str,
    webhook_url: str,
    *,
    client: Optional[httpx.Client] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> None:
    """Post the report to a Slack webhook. Non-2xx or transport failure -> DeliveryError."""
    http = client or httpx.Client(timeout=timeout)
    try:
        resp = http.post(webhook_url, json=build_payload(content))
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise DeliveryError(
            f"Slack send failed: HTTP {e.response.status_code} {e.response.reason_phrase}"
        ) from e
    except httpx.RequestError as e:
        raise DeliveryError(f"Slack send failed: {e}") from e
    finally:
        if client is None:
            http.close()
    logger.info("Report posted to Slack")
