"""Zendesk support adapter (tickets + organizations, OAuth client credentials)."""

import logging
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from churn_report.connectors.base import SupportSource, encode_state
from churn_report.connectors.http import DEFAULT_TIMEOUT, request_json, request_token
from churn_report.connectors.parsers import age_hours, clean_str, to_iso8601
from churn_report.models.raw import RawRecord
from churn_report.models.support import StandardizedSupportCustomer, SupportTicket

from .aggregate import TicketAggregate, TicketFacts, bucket_records, csat_from_rating, group_tickets

logger = logging.getLogger(__name__)

OPEN_STATUSES = frozenset({"new", "open", "pending", "hold"})
# Zendesk's "normal" is the common schema's "medium"
PRIORITY_MAP = {"low": "low", "normal": "medium", "high": "high", "urgent": "urgent"}


def ticket_facts(t: dict[str, Any]) -> TicketFacts:
    """Map one raw Zendesk ticket to aggregation facts."""
    status = (t.get("status") or "").lower()
    priority = PRIORITY_MAP.get((t.get("priority") or "").lower())
    created = to_iso8601(t.get("created_at")) or ""
    ticket = SupportTicket(
        id=str(t.get("id")),
        subject=clean_str(t.get("subject")),
        status=status or "unknown",
        priority=priority,
        type=clean_str(t.get("type")),
        created_at=created,
        updated_at=to_iso8601(t.get("updated_at")),
        due_at=to_iso8601(t.get("due_at")),
        age_hours=age_hours(t.get("created_at")),
        tags=list(t.get("tags") or []) or None,
    )
    return TicketFacts(
        ticket=ticket,
        is_open=status in OPEN_STATUSES,
        priority=priority,
        csat=csat_from_rating((t.get("satisfaction_rating") or {}).get("score")),
    )


class ZendeskSupport(SupportSource):
    """Zendesk Support API v2 adapter for one subdomain."""

    provider_id = "zendesk"
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
        return f"https://{self.subdomain}.zendesk.com"

    def _request_access_token(self) -> str:
        body = request_token(
            self._client,
            self.provider_id,
            f"{self.base_url}/oauth/tokens",
            json={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "scope": "read",
            },
        )
        return body["access_token"]

    def _paged(self, path: str, key: str) -> list[dict[str, Any]]:
        """Follow next_page links; any failed page aborts the whole listing."""
        token = self.access_token()
        url: Optional[str] = f"{self.base_url}{path}"
        items: list[dict[str, Any]] = []
        pages = 0
        while url and pages < self.max_pages:
            payload = request_json(self._client, self.provider_id, "GET", url, token=token)
            items.extend(payload.get(key) or [])
            url = payload.get("next_page")
            pages += 1
        if url:
            logger.warning("zendesk: stopped %s after %d pages", path, pages)
        return items

    def fetch_raw(self) -> list[RawRecord]:
        tickets = self._paged("/api/v2/tickets.json", "tickets")
        organizations = {
            str(org["id"]): org for org in self._paged("/api/v2/organizations.json", "organizations")
        }
        grouped = group_tickets(tickets, lambda t: t.get("organization_id"))
        return bucket_records(grouped, organizations)

    def normalize(self, raw: RawRecord) -> StandardizedSupportCustomer:
        org: dict[str, Any] = raw.data.get("organization") or {}
        agg = TicketAggregate()
        for t in raw.data.get("tickets") or []:
            agg.add(ticket_facts(t))
        domains = org.get("domain_names") or []
        return agg.to_customer(
            str(raw.data["organization_id"]),
            clean_str(org.get("name")),
            domain=domains[0] if domains else None,
            platform_specific_data={
                k: v
                for k, v in {
                    "organizationTags": org.get("tags") or None,
                    "organizationCreatedAt": to_iso8601(org.get("created_at")),
                }.items()
                if v is not None
            },
        )

    def authorize_url(self, redirect_uri: str, user_id: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.callback_uri(redirect_uri),
            "response_type": "code",
            "scope": "read",
            "state": encode_state(userId=user_id, provider=self.provider_id, subdomain=self.subdomain),
        }
        return f"{self.base_url}/oauth/authorizations/new?{urlencode(params)}"

    def exchange_code(self, code: str, redirect_uri: str) -> dict[str, Any]:
        request_token(
            self._client,
            self.provider_id,
            f"{self.base_url}/oauth/tokens",
            json={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.callback_uri(redirect_uri),
                "grant_type": "authorization_code",
            },
        )
        return {"subdomain": self.subdomain, "clientId": self.client_id, "clientSecret": self.client_secret}
