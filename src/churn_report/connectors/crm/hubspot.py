"""HubSpot CRM adapter. Date properties arrive as epoch-millisecond strings."""

import logging
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from churn_report.connectors.base import CRMSource, encode_state
from churn_report.connectors.http import DEFAULT_TIMEOUT, request_json, request_token
from churn_report.connectors.parsers import clean_str, to_float, to_int, to_iso8601
from churn_report.models.crm import StandardizedCRMCompany
from churn_report.models.raw import RawRecord

logger = logging.getLogger(__name__)

API_BASE = "https://api.hubapi.com"
PAGE_LIMIT = 100

COMPANY_PROPERTIES = (
    "name",
    "domain",
    "hubspot_owner_id",
    "hubspot_owner_assigneddate",
    "lifecyclestage",
    "total_revenue",
    "hs_csm_sentiment",
    "notes_last_contacted",
    "notes_last_updated",
    "closedate",
    "num_associated_deals",
    "hs_num_open_deals",
    "recent_deal_close_date",
    "recent_deal_amount",
)


class HubSpotCRM(CRMSource):
    """HubSpot CRM v3 companies adapter."""

    provider_id = "hubspot"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_pages: int = 50,
    ):
        super().__init__(client_id, client_secret, client=client, timeout=timeout, max_pages=max_pages)

    def _request_access_token(self) -> str:
        body = request_token(
            self._client,
            self.provider_id,
            f"{API_BASE}/oauth/v1/token",
            form={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )
        return body["access_token"]

    def fetch_raw(self) -> list[RawRecord]:
        """List companies following paging.next.after cursors."""
        token = self.access_token()
        params: dict[str, Any] = {"properties": ",".join(COMPANY_PROPERTIES), "limit": PAGE_LIMIT}
        raw: list[RawRecord] = []
        for _ in range(self.max_pages):
            payload = request_json(
                self._client,
                self.provider_id,
                "GET",
                f"{API_BASE}/crm/v3/objects/companies",
                token=token,
                params=params,
            )
            raw.extend(RawRecord(data=item) for item in payload.get("results") or [])
            after = ((payload.get("paging") or {}).get("next") or {}).get("after")
            if not after:
                break
            params = {**params, "after": after}
        else:
            logger.warning("hubspot: stopped listing companies after %d pages", self.max_pages)
        return raw

    def normalize(self, raw: RawRecord) -> StandardizedCRMCompany:
        """Convert one HubSpot company object to StandardizedCRMCompany."""
        props: dict[str, Any] = raw.data.get("properties") or {}
        platform_specific = {
            "domain": clean_str(props.get("domain")),
            "companyCloseDate": to_iso8601(props.get("closedate")),
            "lastUpdated": to_iso8601(props.get("notes_last_updated")),
            "lastContacted": to_iso8601(props.get("notes_last_contacted")),
            "numAssociatedDeals": to_int(props.get("num_associated_deals")),
        }
        return StandardizedCRMCompany(
            company_name=clean_str(props.get("name")) or "",
            company_id=str(raw.data.get("id") or ""),
            owner_id=clean_str(props.get("hubspot_owner_id")),
            owner_assigned_date=to_iso8601(props.get("hubspot_owner_assigneddate")),
            lifecycle_stage=clean_str(props.get("lifecyclestage")),
            total_revenue=to_float(props.get("total_revenue")),
            last_activity_date=to_iso8601(props.get("notes_last_contacted")),
            number_of_open_deals=to_int(props.get("hs_num_open_deals")),
            recent_deal_amount=to_float(props.get("recent_deal_amount")),
            recent_deal_close_date=to_iso8601(props.get("recent_deal_close_date")),
            csm_sentiment=clean_str(props.get("hs_csm_sentiment")),
            platform_specific_data={k: v for k, v in platform_specific.items() if v is not None},
        )

    def authorize_url(self, redirect_uri: str, user_id: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.callback_uri(redirect_uri),
            "scope": "crm.objects.companies.read",
            "state": encode_state(userId=user_id, provider=self.provider_id),
        }
        return f"https://app.hubspot.com/oauth/authorize?{urlencode(params)}"

    def exchange_code(self, code: str, redirect_uri: str) -> dict[str, Any]:
        request_token(
            self._client,
            self.provider_id,
            f"{API_BASE}/oauth/v1/token",
            form={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.callback_uri(redirect_uri),
                "grant_type": "authorization_code",
            },
        )
        return {"clientId": self.client_id, "clientSecret": self.client_secret}
