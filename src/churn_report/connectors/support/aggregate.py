"""Per-organization ticket aggregation shared by the support adapters."""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from churn_report.models.raw import RawRecord
from churn_report.models.support import (
    MAX_DETAILED_TICKETS,
    PriorityHistogram,
    StandardizedSupportCustomer,
    SupportTicket,
)

UNKNOWN_BUCKET = "unknown"
UNKNOWN_COMPANY = "Unknown Company"
PRIORITY_LEVELS = ("low", "medium", "high", "urgent")


def csat_from_rating(score: Any) -> Optional[int]:
    """Satisfaction rating -> 1 (good), 0 (bad), None (unrated/unoffered/offered)."""
    if not score:
        return None
    label = str(score).strip().lower()
    if label == "good":
        return 1
    if label == "bad":
        return 0
    return None


def group_tickets(
    tickets: list[dict[str, Any]],
    key_fn: Callable[[dict[str, Any]], Any],
) -> dict[str, list[dict[str, Any]]]:
    """Group raw tickets by organization id; missing ids go to the 'unknown' bucket."""
    grouped: dict[str, list[dict[str, Any]]] = {}
    for ticket in tickets:
        key = key_fn(ticket)
        bucket = str(key) if key not in (None, "") else UNKNOWN_BUCKET
        grouped.setdefault(bucket, []).append(ticket)
    return grouped


def bucket_records(
    grouped: dict[str, list[dict[str, Any]]],
    organizations: dict[str, dict[str, Any]],
) -> list[RawRecord]:
    """One RawRecord per organization bucket, with the organization payload if known."""
    return [
        RawRecord(
            data={
                "organization_id": org_id,
                "organization": organizations.get(org_id),
                "tickets": org_tickets,
            }
        )
        for org_id, org_tickets in grouped.items()
    ]


@dataclass
class TicketFacts:
    """Provider-neutral view of one raw ticket used for aggregation."""

    ticket: SupportTicket
    is_open: bool
    priority: Optional[str] = None  # one of PRIORITY_LEVELS
    csat: Optional[int] = None  # 1 good, 0 bad, None unrated


@dataclass
class TicketAggregate:
    """
    Incremental counters for one organization: totals, open count, priority
    histogram over open tickets, CSAT over rated tickets, bounded open list.
    """

    track_priorities: bool = True
    max_tickets: int = MAX_DETAILED_TICKETS
    ticket_count: int = 0
    open_count: int = 0
    priorities: dict[str, int] = field(default_factory=lambda: dict.fromkeys(PRIORITY_LEVELS, 0))
    csat_sum: int = 0
    csat_rated: int = 0
    open_tickets: list[SupportTicket] = field(default_factory=list)

    def add(self, facts: TicketFacts) -> None:
        self.ticket_count += 1
        if facts.csat is not None:
            self.csat_sum += facts.csat
            self.csat_rated += 1
        if not facts.is_open:
            return
        self.open_count += 1
        if facts.priority in self.priorities:
            self.priorities[facts.priority] += 1
        if len(self.open_tickets) < self.max_tickets:
            self.open_tickets.append(facts.ticket)

    @property
    def avg_csat(self) -> Optional[float]:
        if not self.csat_rated:
            return None
        return self.csat_sum / self.csat_rated

    def histogram(self) -> Optional[PriorityHistogram]:
        if not self.track_priorities:
            return None
        return PriorityHistogram(**self.priorities)

    def to_customer(self, customer_id: str, name: Optional[str], **extra: Any) -> StandardizedSupportCustomer:
        """Build the standardized customer from the accumulated counters."""
        return StandardizedSupportCustomer(
            id=customer_id,
            name=name or UNKNOWN_COMPANY,
            ticket_count=self.ticket_count,
            open_tickets=self.open_count,
            avg_csat=self.avg_csat,
            open_ticket_priorities=self.histogram(),
            tickets=self.open_tickets,
            **extra,
        )
