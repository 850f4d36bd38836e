"""LLM churn report generation. Supports OpenRouter (OpenAI-compatible API) and a local stub."""

import json
import logging
from typing import Optional

import openai
from openai import OpenAI

from churn_report.config import Settings
from churn_report.errors import ConfigurationError, MalformedReportError, UpstreamApiError
from churn_report.models.combined import CombinedCompany
from churn_report.report.stub import generate_stub_report

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


def generate_report(companies: list[CombinedCompany], settings: Optional[Settings] = None) -> str:
    """
    Generate the markdown churn report. Uses settings.llm_provider:
    - "openrouter" -> OpenRouter chat completion (needs OPENROUTER_API_KEY)
    - "stub" -> deterministic heuristic report, no network
    Raises MalformedReportError when the generator returns no content.
    """
    settings = settings or Settings.from_env()
    provider = (settings.llm_provider or "stub").lower()
    if provider == "openrouter":
        text = _generate_openrouter(companies, settings)
    elif provider == "stub":
        text = generate_stub_report(companies)
    else:
        raise ConfigurationError(f"Unknown report generator: {settings.llm_provider}")
    if not text or not text.strip():
        raise MalformedReportError(f"{provider} returned an empty report")
    return text


def _generate_openrouter(companies: list[CombinedCompany], settings: Settings) -> str:
    """Chat completion against OpenRouter via the OpenAI SDK."""
    if not settings.openrouter_api_key:
        raise ConfigurationError("OPENROUTER_API_KEY is required for the openrouter report generator")
    client = OpenAI(
        api_key=settings.openrouter_api_key,
        base_url=OPENROUTER_BASE_URL,
        timeout=settings.llm_timeout,
        max_retries=0,
    )
    prompt = build_prompt(companies)
    logger.info("Generating report for %d companies with %s", len(companies), settings.llm_model)
    try:
        response = client.chat.completions.create(
            model=settings.llm_model,
            messages=[{"role": "user", "content": prompt}],
        )
    except openai.APIStatusError as e:
        raise UpstreamApiError("openrouter", f"API error: HTTP {e.status_code}", status_code=e.status_code) from e
    except openai.APIError as e:
        raise UpstreamApiError("openrouter", f"request failed: {e}") from e
    if not response.choices or not response.choices[0].message.content:
        raise MalformedReportError("Invalid response from OpenRouter: no message content")
    return response.choices[0].message.content


def build_prompt(companies: list[CombinedCompany]) -> str:
    """Build the churn-analyst prompt with the combined companies as JSON."""
    data = json.dumps(
        [c.model_dump(mode="json", by_alias=True, exclude_none=True) for c in companies],
        indent=2,
    )
    return f"""You are a customer success analyst. Analyze the following customer data and generate a churn risk report.

For each company, you have:
- CRM data (revenue, deals, owner info, lifecycle stage, sentiment)
- Customer support data (tickets, priorities, CSAT, health scores)

Identify customers at risk of churning and provide actionable recommendations.

Customer Data:
{data}

Generate a report in markdown format with:
1. Executive Summary
2. High-Risk Customers (sorted by risk level)
3. Medium-Risk Customers
4. Key Insights & Patterns
5. Recommended Actions

Be specific and data-driven. Focus on actionable insights."""
