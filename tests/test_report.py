"""Tests for churn report generation."""

from unittest.mock import MagicMock, patch

import httpx
import openai
import pytest

from churn_report.config import Settings
from churn_report.errors import ConfigurationError, MalformedReportError, UpstreamApiError
from churn_report.models.combined import CombinedCompany
from churn_report.models.crm import OpenCase
from churn_report.models.support import PriorityHistogram
from churn_report.report import assess, build_prompt, generate_report, generate_stub_report
from helpers import make_crm, make_support


def _combined(name: str, crm=None, support=None) -> CombinedCompany:
    return CombinedCompany.build(name, crm, "hubspot", support, "zendesk")


@pytest.fixture
def companies() -> list[CombinedCompany]:
    risky = make_support(
        "Initech",
        "S9",
        ticket_count=12,
        open_tickets=6,
        open_ticket_priorities=PriorityHistogram(urgent=1, high=1, low=4),
        avg_csat=0.4,
    )
    return [
        _combined("Initech", support=risky),
        _combined("Globex", crm=make_crm("Globex", "C2", csm_sentiment="Negative")),
        _combined("Acme", crm=make_crm("Acme", "C1"), support=make_support("Acme", open_tickets=0)),
    ]


def _completion(content):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


class TestStubReport:
    """Tests for the heuristic report."""

    def test_assess_scores_signals(self, companies: list[CombinedCompany]) -> None:
        """Urgent, high, CSAT and volume signals add up."""
        risk = assess(companies[0])
        assert risk.score == 3 + 2 + 2 + 1
        assert risk.level == "high"
        assert any("low CSAT" in s for s in risk.signals)

    def test_escalated_case_and_sentiment(self) -> None:
        company = _combined(
            "Hooli",
            crm=make_crm("Hooli", "C3", open_cases=[OpenCase(id="500A", is_escalated=True)]),
        )
        risk = assess(company)
        assert risk.score == 2
        assert risk.level == "medium"

    def test_report_sections(self, companies: list[CombinedCompany]) -> None:
        """The report carries every section and ranks companies by risk."""
        report = generate_stub_report(companies)
        for heading in (
            "# Customer Churn Risk Report",
            "## Executive Summary",
            "## High-Risk Customers",
            "## Medium-Risk Customers",
            "## Key Insights & Patterns",
            "## Recommended Actions",
        ):
            assert heading in report
        assert "Analyzed 3 companies: 1 high risk, 1 medium risk." in report
        assert report.index("**Initech**") < report.index("**Globex**")
        assert "**Acme**" not in report

    def test_empty_input(self) -> None:
        report = generate_stub_report([])
        assert "Analyzed 0 companies" in report
        assert "No customers show elevated risk signals" in report


class TestGenerateReport:
    """Tests for generate_report dispatch."""

    def test_stub_default(self, companies: list[CombinedCompany]) -> None:
        assert generate_report(companies, Settings()).startswith("# Customer Churn Risk Report")

    def test_unknown_generator(self, companies: list[CombinedCompany]) -> None:
        with pytest.raises(ConfigurationError):
            generate_report(companies, Settings(llm_provider="gpt-local"))

    def test_openrouter_needs_key(self, companies: list[CombinedCompany]) -> None:
        with pytest.raises(ConfigurationError, match="OPENROUTER_API_KEY"):
            generate_report(companies, Settings(llm_provider="openrouter"))

    def test_openrouter_completion(self, companies: list[CombinedCompany]) -> None:
        """The prompt carries the combined data and the completion text is returned."""
        settings = Settings(llm_provider="openrouter", openrouter_api_key="sk-or", llm_model="test/model")
        with patch("churn_report.report.llm.OpenAI") as mock_openai:
            create = mock_openai.return_value.chat.completions.create
            create.return_value = _completion("# Report\n\nInitech is at risk.")
            text = generate_report(companies, settings)
        assert text == "# Report\n\nInitech is at risk."
        assert mock_openai.call_args.kwargs["base_url"] == "https://openrouter.ai/api/v1"
        assert mock_openai.call_args.kwargs["max_retries"] == 0
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "test/model"
        assert '"companyName": "Initech"' in kwargs["messages"][0]["content"]

    def test_openrouter_empty_content(self, companies: list[CombinedCompany]) -> None:
        settings = Settings(llm_provider="openrouter", openrouter_api_key="sk-or")
        with patch("churn_report.report.llm.OpenAI") as mock_openai:
            mock_openai.return_value.chat.completions.create.return_value = _completion(None)
            with pytest.raises(MalformedReportError):
                generate_report(companies, settings)

    def test_openrouter_http_error(self, companies: list[CombinedCompany]) -> None:
        """API status errors surface as retryable upstream errors."""
        settings = Settings(llm_provider="openrouter", openrouter_api_key="sk-or")
        request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
        error = openai.APIStatusError("overloaded", response=httpx.Response(503, request=request), body=None)
        with patch("churn_report.report.llm.OpenAI") as mock_openai:
            mock_openai.return_value.chat.completions.create.side_effect = error
            with pytest.raises(UpstreamApiError) as exc_info:
                generate_report(companies, settings)
        assert exc_info.value.status_code == 503


def test_prompt_omits_missing_fields() -> None:
    """None-valued fields are left out of the prompt data."""
    prompt = build_prompt([_combined("Solo", support=make_support("Solo"))])
    assert '"supportDataSource": "zendesk"' in prompt
    assert "CRMData" not in prompt
    assert "avgCsat" not in prompt
