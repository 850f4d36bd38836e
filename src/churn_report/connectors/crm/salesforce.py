"""Salesforce CRM adapter: accounts joined with their open cases, opportunities and tasks."""

import logging
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from churn_report.connectors.base import CRMSource, encode_state
from churn_report.connectors.http import DEFAULT_TIMEOUT, request_json, request_token
from churn_report.connectors.parsers import age_days, age_hours, clean_str, to_float, to_iso8601
from churn_report.models.crm import OpenCase, OpenOpportunity, OpenTask, StandardizedCRMCompany
from churn_report.models.raw import RawRecord

logger = logging.getLogger(__name__)

API_VERSION = "v62.0"
LOGIN_URL = "https://login.salesforce.com"

ACCOUNTS_SOQL = "SELECT Id, Name, Type, Industry, LastActivityDate, Rating, OwnerId FROM Account"
CASES_SOQL = (
    "SELECT Id, AccountId, Subject, CreatedDate, Type, Priority, Status, Reason, "
    "IsEscalated, IsClosed FROM Case WHERE IsClosed = false"
)
OPPORTUNITIES_SOQL = (
    "SELECT Id, AccountId, Name, Amount, Type, StageName, Probability, CreatedDate, "
    "CloseDate, IsClosed FROM Opportunity WHERE IsClosed = false"
)
TASKS_SOQL = (
    "SELECT Id, AccountId, Subject, Status, Priority, CreatedDate, ActivityDate, IsClosed "
    "FROM Task WHERE IsClosed = false"
)


def _case(c: dict[str, Any]) -> OpenCase:
    return OpenCase(
        id=str(c.get("Id")),
        subject=c.get("Subject") or "",
        priority=c.get("Priority") or "",
        status=c.get("Status") or "",
        age_hours=age_hours(c.get("CreatedDate")),
        is_escalated=c.get("IsEscalated"),
    )


def _opportunity(o: dict[str, Any]) -> OpenOpportunity:
    return OpenOpportunity(
        id=str(o.get("Id")),
        name=clean_str(o.get("Name")),
        amount=to_float(o.get("Amount")),
        stage=clean_str(o.get("StageName")),
        probability=to_float(o.get("Probability")),
        age_days=age_days(o.get("CreatedDate")),
        close_date=to_iso8601(o.get("CloseDate")),
    )


def _task(t: dict[str, Any]) -> OpenTask:
    return OpenTask(
        id=str(t.get("Id")),
        subject=clean_str(t.get("Subject")),
        priority=t.get("Priority") or "",
        status=clean_str(t.get("Status")),
        due_date=to_iso8601(t.get("ActivityDate")),
        age_hours=age_hours(t.get("CreatedDate")),
    )


def _by_account(records: list[dict[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    grouped: dict[str, list[dict[str, Any]]] = {}
    for r in records:
        if r.get("IsClosed") or r.get("IsDeleted"):
            continue
        if r.get("AccountId"):
            grouped.setdefault(str(r["AccountId"]), []).append(r)
    return grouped


class SalesforceCRM(CRMSource):
    """Salesforce REST adapter for one org instance."""

    provider_id = "salesforce"
    extra_credentials = ("instance_url",)

    def __init__(
        self,
        instance_url: str,
        client_id: str,
        client_secret: str,
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_pages: int = 50,
    ):
        super().__init__(client_id, client_secret, client=client, timeout=timeout, max_pages=max_pages)
        self.instance_url = instance_url.rstrip("/")

    def _request_access_token(self) -> str:
        body = request_token(
            self._client,
            self.provider_id,
            f"{self.instance_url}/services/oauth2/token",
            form={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )
        return body["access_token"]

    def _query(self, soql: str) -> list[dict[str, Any]]:
        """Run a SOQL query, following nextRecordsUrl until done."""
        token = self.access_token()
        records: list[dict[str, Any]] = []
        payload = request_json(
            self._client,
            self.provider_id,
            "GET",
            f"{self.instance_url}/services/data/{API_VERSION}/query",
            token=token,
            params={"q": soql},
        )
        pages = 1
        while True:
            records.extend(payload.get("records") or [])
            next_url = payload.get("nextRecordsUrl")
            if payload.get("done", True) or not next_url:
                break
            if pages >= self.max_pages:
                logger.warning("salesforce: stopped query after %d pages", pages)
                break
            payload = request_json(
                self._client, self.provider_id, "GET", f"{self.instance_url}{next_url}", token=token
            )
            pages += 1
        return records

    def fetch_raw(self) -> list[RawRecord]:
        """One RawRecord per account with its open cases, opportunities and tasks attached."""
        accounts = self._query(ACCOUNTS_SOQL)
        cases = _by_account(self._query(CASES_SOQL))
        opportunities = _by_account(self._query(OPPORTUNITIES_SOQL))
        tasks = _by_account(self._query(TASKS_SOQL))
        raw: list[RawRecord] = []
        for acc in accounts:
            acc_id = str(acc.get("Id") or "")
            raw.append(
                RawRecord(
                    data={
                        "account": acc,
                        "cases": cases.get(acc_id, []),
                        "opportunities": opportunities.get(acc_id, []),
                        "tasks": tasks.get(acc_id, []),
                    }
                )
            )
        return raw

    def normalize(self, raw: RawRecord) -> StandardizedCRMCompany:
        acc: dict[str, Any] = raw.data.get("account") or {}
        cases = [_case(c) for c in raw.data.get("cases") or []]
        opps = [_opportunity(o) for o in raw.data.get("opportunities") or []]
        tasks = [_task(t) for t in raw.data.get("tasks") or []]
        platform_specific = {
            "accountType": clean_str(acc.get("Type")),
            "industry": clean_str(acc.get("Industry")),
        }
        return StandardizedCRMCompany(
            company_name=clean_str(acc.get("Name")) or "",
            company_id=str(acc.get("Id") or ""),
            owner_id=clean_str(acc.get("OwnerId")),
            last_activity_date=to_iso8601(acc.get("LastActivityDate")),
            prospect_rating=clean_str(acc.get("Rating")),
            number_of_open_deals=len(opps),
            open_opportunities=opps or None,
            open_cases=cases or None,
            open_tasks=tasks or None,
            platform_specific_data={k: v for k, v in platform_specific.items() if v is not None},
        )

    def authorize_url(self, redirect_uri: str, user_id: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.callback_uri(redirect_uri),
            "response_type": "code",
            "state": encode_state(userId=user_id, provider=self.provider_id),
        }
        return f"{LOGIN_URL}/services/oauth2/authorize?{urlencode(params)}"

    def exchange_code(self, code: str, redirect_uri: str) -> dict[str, Any]:
        body = request_token(
            self._client,
            self.provider_id,
            f"{LOGIN_URL}/services/oauth2/token",
            form={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.callback_uri(redirect_uri),
                "grant_type": "authorization_code",
            },
        )
        return {
            "instanceUrl": body.get("instance_url") or self.instance_url,
            "clientId": self.client_id,
            "clientSecret": self.client_secret,
        }
