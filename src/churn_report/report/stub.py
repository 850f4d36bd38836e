"""Heuristic churn report used when no LLM is configured."""

from dataclasses import dataclass, field

from churn_report.models.combined import CombinedCompany

# Avg CSAT below this counts as a risk signal
LOW_CSAT = 0.6
# Health score (0-100) below this counts as a risk signal
LOW_HEALTH = 50.0
# Open tickets at or above this count as a risk signal
HIGH_OPEN_VOLUME = 5

HIGH_RISK_SCORE = 4
MEDIUM_RISK_SCORE = 2


@dataclass
class RiskAssessment:
    """Risk score and the signals behind it for one company."""

    company_name: str
    score: int = 0
    signals: list[str] = field(default_factory=list)

    @property
    def level(self) -> str:
        if self.score >= HIGH_RISK_SCORE:
            return "high"
        if self.score >= MEDIUM_RISK_SCORE:
            return "medium"
        return "low"

    def add(self, points: int, signal: str) -> None:
        self.score += points
        self.signals.append(signal)


def assess(company: CombinedCompany) -> RiskAssessment:
    """Score one company from its support and CRM signals."""
    risk = RiskAssessment(company_name=company.company_name)
    support = company.support_data
    if support is not None:
        hist = support.open_ticket_priorities
        if hist is not None and hist.urgent:
            risk.add(3 * hist.urgent, f"{hist.urgent} open urgent ticket(s)")
        if hist is not None and hist.high:
            risk.add(2 * hist.high, f"{hist.high} open high-priority ticket(s)")
        if support.avg_csat is not None and support.avg_csat < LOW_CSAT:
            risk.add(2, f"low CSAT ({support.avg_csat:.0%})")
        if support.open_tickets >= HIGH_OPEN_VOLUME:
            risk.add(1, f"{support.open_tickets} open tickets")
        if support.health_score is not None and support.health_score < LOW_HEALTH:
            risk.add(1, f"health score {support.health_score:g}")
    crm = company.crm_data
    if crm is not None:
        escalated = [c for c in crm.open_cases or [] if c.is_escalated]
        if escalated:
            risk.add(2, f"{len(escalated)} escalated CRM case(s)")
        if crm.csm_sentiment and crm.csm_sentiment.lower() in ("negative", "at risk", "at_risk", "poor"):
            risk.add(2, f"CSM sentiment: {crm.csm_sentiment}")
    return risk


def _section(title: str, risks: list[RiskAssessment]) -> list[str]:
    lines = [f"## {title}", ""]
    if not risks:
        return lines + ["None.", ""]
    for r in risks:
        lines.append(f"- **{r.company_name}** (score {r.score}): {'; '.join(r.signals)}")
    return lines + [""]


def generate_stub_report(companies: list[CombinedCompany]) -> str:
    """Markdown report with the same sections as the LLM prompt asks for."""
    risks = sorted((assess(c) for c in companies), key=lambda r: (-r.score, r.company_name))
    high = [r for r in risks if r.level == "high"]
    medium = [r for r in risks if r.level == "medium"]
    with_crm = sum(1 for c in companies if c.crm_data is not None)
    with_support = sum(1 for c in companies if c.support_data is not None)
    both = sum(1 for c in companies if c.crm_data is not None and c.support_data is not None)

    lines = [
        "# Customer Churn Risk Report",
        "",
        "## Executive Summary",
        "",
        f"Analyzed {len(companies)} companies: {len(high)} high risk, {len(medium)} medium risk.",
        "",
    ]
    lines += _section("High-Risk Customers", high)
    lines += _section("Medium-Risk Customers", medium)
    lines += [
        "## Key Insights & Patterns",
        "",
        f"- {with_crm} companies have CRM data, {with_support} have support data, {both} matched both.",
        "",
        "## Recommended Actions",
        "",
    ]
    if high:
        lines.append("- Schedule executive check-ins with every high-risk customer this week.")
    if medium:
        lines.append("- Review open tickets for medium-risk customers with their CSM.")
    if not high and not medium:
        lines.append("- No customers show elevated risk signals; keep the regular cadence.")
    return "\n".join(lines) + "\n"
