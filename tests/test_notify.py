"""Tests for email and Slack delivery."""

import json

import httpx
import pytest

from churn_report.config import Settings
from churn_report.errors import ConfigurationError, DeliveryError
from churn_report.notify import deliver, send_email, send_slack
from churn_report.notify.slack import SECTION_LIMIT, build_payload, split_sections
from helpers import json_response, mock_client

REPORT = "# Customer Churn Risk Report\n\n## Executive Summary\n\nAll good.\n"
WEBHOOK = "https://hooks.slack.com/services/T/B/X"


class TestEmail:
    """Tests for send_email."""

    def test_posts_to_resend(self) -> None:
        """Bearer auth, fixed subject and the report as text."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return json_response({"id": "email-1"})

        send_email(REPORT, "csm@example.com", api_key="re_key", sender="Reports <r@x.io>", client=mock_client(handler))
        request = seen[0]
        assert str(request.url) == "https://api.resend.com/emails"
        assert request.headers["Authorization"] == "Bearer re_key"
        assert json.loads(request.content) == {
            "from": "Reports <r@x.io>",
            "to": ["csm@example.com"],
            "subject": "Customer Churn Risk Report",
            "text": REPORT,
        }

    def test_missing_key(self) -> None:
        with pytest.raises(ConfigurationError):
            send_email(REPORT, "csm@example.com", api_key=None, sender="x")

    def test_rejected(self) -> None:
        """Non-2xx responses raise DeliveryError with the status."""
        client = mock_client(lambda request: json_response({"message": "invalid"}, 422))
        with pytest.raises(DeliveryError, match="HTTP 422"):
            send_email(REPORT, "csm@example.com", api_key="k", sender="x", client=client)


class TestSlack:
    """Tests for the Slack webhook notifier."""

    def test_split_prefers_lines(self) -> None:
        """Chunks end on line boundaries and respect the limit."""
        content = "".join(f"line {i:03d}\n" for i in range(100))
        chunks = split_sections(content, limit=100)
        assert all(len(c) <= 100 for c in chunks)
        assert all(c.endswith("\n") for c in chunks)
        assert "".join(chunks) == content

    def test_split_long_line(self) -> None:
        chunks = split_sections("x" * 7000)
        assert [len(c) for c in chunks] == [SECTION_LIMIT, SECTION_LIMIT, 1000]

    def test_payload_blocks(self) -> None:
        """Header block followed by mrkdwn sections under Slack's limits."""
        payload = build_payload(REPORT * 200)
        blocks = payload["blocks"]
        assert blocks[0]["type"] == "header"
        assert blocks[0]["text"]["text"] == "📊 Customer Churn Risk Report"
        assert all(b["text"]["type"] == "mrkdwn" for b in blocks[1:])
        assert all(len(b["text"]["text"]) <= SECTION_LIMIT for b in blocks[1:])
        assert len(blocks) <= 50

    def test_send(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="ok")

        send_slack(REPORT, WEBHOOK, client=mock_client(handler))
        assert str(seen[0].url) == WEBHOOK
        assert json.loads(seen[0].content)["blocks"][1]["text"]["text"] == REPORT

    def test_webhook_error(self) -> None:
        client = mock_client(lambda request: httpx.Response(404, text="no_service"))
        with pytest.raises(DeliveryError, match="HTTP 404"):
            send_slack(REPORT, WEBHOOK, client=client)


class TestDeliver:
    """Tests for destination dispatch."""

    def test_email_destination(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return json_response({"id": "1"})

        deliver("email", "csm@example.com", REPORT, Settings(resend_api_key="k"), client=mock_client(handler))
        assert seen == ["https://api.resend.com/emails"]

    def test_unknown_destination(self) -> None:
        with pytest.raises(ConfigurationError):
            deliver("sms", "+15550100", REPORT, Settings())
