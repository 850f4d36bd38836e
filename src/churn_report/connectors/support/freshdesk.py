"""Freshdesk support adapter. Status and priority arrive as integer codes."""

import logging
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from churn_report.connectors.base import SupportSource, encode_state
from churn_report.connectors.http import DEFAULT_TIMEOUT, request_json, request_token
from churn_report.connectors.parsers import age_hours, clean_str, to_float, to_iso8601
from churn_report.models.raw import RawRecord
from churn_report.models.support import StandardizedSupportCustomer, SupportTicket

from .aggregate import TicketAggregate, TicketFacts, bucket_records, csat_from_rating, group_tickets

logger = logging.getLogger(__name__)

STATUS_MAP = {2: "Open", 3: "Pending", 4: "Resolved", 5: "Closed"}
PRIORITY_MAP = {1: "Low", 2: "Medium", 3: "High", 4: "Urgent"}
OPEN_STATUSES = frozenset({"Open", "Pending"})
PER_PAGE = 100


def _code(value: Any) -> Any:
    """Integer code when the value is numeric ('3' -> 3), else unchanged."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return value


def status_label(value: Any) -> str:
    return STATUS_MAP.get(_code(value), str(value) if value is not None else "Unknown")


def priority_label(value: Any) -> Optional[str]:
    label = PRIORITY_MAP.get(_code(value))
    if label is None and isinstance(value, str) and value.strip():
        label = value.strip().title()
    return label


def ticket_facts(t: dict[str, Any]) -> TicketFacts:
    """Map one raw Freshdesk ticket to aggregation facts (labels applied before counting)."""
    status = status_label(t.get("status"))
    priority = priority_label(t.get("priority"))
    ticket = SupportTicket(
        id=str(t.get("id")),
        subject=clean_str(t.get("subject")),
        status=status,
        priority=priority,
        type=clean_str(t.get("type")),
        created_at=to_iso8601(t.get("created_at")) or "",
        updated_at=to_iso8601(t.get("updated_at")),
        due_at=to_iso8601(t.get("due_by")),
        age_hours=age_hours(t.get("created_at")),
        tags=list(t.get("tags") or []) or None,
        sentiment_score=to_float(t.get("sentiment_score")),
    )
    rating = t.get("satisfaction_rating")
    return TicketFacts(
        ticket=ticket,
        is_open=status in OPEN_STATUSES,
        priority=priority.lower() if priority else None,
        csat=csat_from_rating(rating.get("score") if isinstance(rating, dict) else rating),
    )


class FreshdeskSupport(SupportSource):
    """Freshdesk API v2 adapter for one helpdesk subdomain."""

    provider_id = "freshdesk"
    extra_credentials = ("subdomain",)

    def __init__(
        self,
        subdomain: str,
        client_id: str,
        client_secret: str,
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_pages: int = 50,
    ):
        super().__init__(client_id, client_secret, client=client, timeout=timeout, max_pages=max_pages)
        self.subdomain = subdomain

    @property
    def base_url(self) -> str:
        return f"https://{self.subdomain}.freshdesk.com"

    def _request_access_token(self) -> str:
        body = request_token(
            self._client,
            self.provider_id,
            f"{self.base_url}/oauth/token",
            json={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )
        return body["access_token"]

    def _paged(self, path: str) -> list[dict[str, Any]]:
        """Freshdesk pages by page number; a short page is the last one."""
        token = self.access_token()
        items: list[dict[str, Any]] = []
        for page in range(1, self.max_pages + 1):
            batch = request_json(
                self._client,
                self.provider_id,
                "GET",
                f"{self.base_url}{path}",
                token=token,
                params={"page": page, "per_page": PER_PAGE},
            )
            batch = batch or []
            items.extend(batch)
            if len(batch) < PER_PAGE:
                break
        else:
            logger.warning("freshdesk: stopped %s after %d pages", path, self.max_pages)
        return items

    def fetch_raw(self) -> list[RawRecord]:
        tickets = self._paged("/api/v2/tickets")
        companies = {str(c["id"]): c for c in self._paged("/api/v2/companies")}
        grouped = group_tickets(tickets, lambda t: t.get("company_id"))
        return bucket_records(grouped, companies)

    def normalize(self, raw: RawRecord) -> StandardizedSupportCustomer:
        company: dict[str, Any] = raw.data.get("organization") or {}
        custom = company.get("custom_fields") or {}
        agg = TicketAggregate()
        for t in raw.data.get("tickets") or []:
            agg.add(ticket_facts(t))
        domains = company.get("domains") or []
        return agg.to_customer(
            str(raw.data["organization_id"]),
            clean_str(company.get("name")),
            domain=domains[0] if domains else None,
            health_score=to_float(company.get("health_score") or custom.get("health_score")),
            account_tier=clean_str(company.get("account_tier") or custom.get("account_tier")),
            renewal_date=to_iso8601(company.get("renewal_date") or custom.get("renewal_date")),
            platform_specific_data={"industry": company["industry"]} if company.get("industry") else {},
        )

    def authorize_url(self, redirect_uri: str, user_id: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.callback_uri(redirect_uri),
            "response_type": "code",
            "state": encode_state(userId=user_id, provider=self.provider_id, subdomain=self.subdomain),
        }
        return f"{self.base_url}/oauth/authorize?{urlencode(params)}"

    def exchange_code(self, code: str, redirect_uri: str) -> dict[str, Any]:
        request_token(
            self._client,
            self.provider_id,
            f"{self.base_url}/oauth/token",
            json={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.callback_uri(redirect_uri),
                "grant_type": "authorization_code",
            },
        )
        return {"subdomain": self.subdomain, "clientId": self.client_id, "clientSecret": self.client_secret}
