"""Standardized support customer model shared by all support providers."""

from typing import Any, Optional

from pydantic import Field, model_validator

from churn_report.models.crm import StandardizedModel

# Max open tickets kept in StandardizedSupportCustomer.tickets
MAX_DETAILED_TICKETS = 50


class PriorityHistogram(StandardizedModel):
    """Counts of open tickets by priority level."""

    low: int = Field(default=0, ge=0)
    medium: int = Field(default=0, ge=0)
    high: int = Field(default=0, ge=0)
    urgent: int = Field(default=0, ge=0)


class SupportTicket(StandardizedModel):
    """One open/unresolved ticket, provider-neutral."""

    id: str
    subject: Optional[str] = None
    title: Optional[str] = None
    status: str
    priority: Optional[str] = None
    type: Optional[str] = None
    created_at: str
    updated_at: Optional[str] = None
    due_at: Optional[str] = None
    age_hours: int = 0
    tags: Optional[list[str]] = None
    sentiment_score: Optional[float] = None


class StandardizedSupportCustomer(StandardizedModel):
    """Canonical support customer record produced by every support adapter."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    domain: Optional[str] = None

    ticket_count: int = Field(default=0, ge=0)
    open_tickets: int = Field(default=0, ge=0)

    avg_csat: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    health_score: Optional[float] = None

    account_tier: Optional[str] = None
    renewal_date: Optional[str] = None

    open_ticket_priorities: Optional[PriorityHistogram] = None
    tickets: list[SupportTicket] = Field(default_factory=list, max_length=MAX_DETAILED_TICKETS)

    platform_specific_data: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _open_within_total(self) -> "StandardizedSupportCustomer":
        if self.open_tickets > self.ticket_count:
            raise ValueError(
                f"openTickets ({self.open_tickets}) exceeds ticketCount ({self.ticket_count})"
            )
        return self
