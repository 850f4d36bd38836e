"""Abstract capabilities for provider adapters: CRM sources and support sources."""

import base64
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from churn_report.connectors.http import DEFAULT_TIMEOUT, build_client
from churn_report.models.crm import StandardizedCRMCompany
from churn_report.models.raw import RawRecord
from churn_report.models.support import StandardizedSupportCustomer

logger = logging.getLogger(__name__)


def encode_state(**fields: Any) -> str:
    """OAuth state parameter: base64 of a compact JSON object."""
    return base64.b64encode(json.dumps(fields, separators=(",", ":")).encode()).decode()


def decode_state(state: str) -> dict[str, Any]:
    """Inverse of encode_state."""
    return json.loads(base64.b64decode(state.encode()).decode())


class ProviderConnector(ABC):
    """
    Shared surface of every provider adapter: OAuth authorize/callback and
    a token-authenticated HTTP client. Raw payloads stay inside the adapter.
    """

    provider_id: str = ""
    # Credential kwargs the adapter needs besides client_id/client_secret
    extra_credentials: tuple[str, ...] = ()

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_pages: int = 50,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.max_pages = max_pages
        self._owns_client = client is None
        self._client = client or build_client(timeout)
        self._token: Optional[str] = None

    def close(self) -> None:
        """Close the HTTP client if this adapter created it; a passed-in client is left open."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "ProviderConnector":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @abstractmethod
    def _request_access_token(self) -> str:
        """Exchange client credentials for an access token."""

    def access_token(self) -> str:
        """Access token, fetched once per adapter instance."""
        if self._token is None:
            self._token = self._request_access_token()
        return self._token

    @abstractmethod
    def authorize_url(self, redirect_uri: str, user_id: str) -> str:
        """URL that starts the provider's OAuth consent flow."""

    @abstractmethod
    def exchange_code(self, code: str, redirect_uri: str) -> dict[str, Any]:
        """
        Complete the OAuth callback; returns the connection metadata to store.
        Raises UpstreamAuthError when the provider rejects the code.
        """

    def callback_uri(self, redirect_uri: str) -> str:
        return f"{redirect_uri.rstrip('/')}/oauth/{self.provider_id}/callback"


class CRMSource(ProviderConnector):
    """Capability: list companies from a CRM as StandardizedCRMCompany."""

    @abstractmethod
    def fetch_raw(self) -> list[RawRecord]:
        """Fetch every company record (all pages) in provider format."""

    @abstractmethod
    def normalize(self, raw: RawRecord) -> StandardizedCRMCompany:
        """Convert one raw company record to the standardized schema."""

    def fetch_companies(self) -> list[StandardizedCRMCompany]:
        """
        Fetch and normalize all companies. Upstream errors propagate and abort
        the whole call; records that cannot satisfy the schema are dropped.
        """
        companies: list[StandardizedCRMCompany] = []
        for raw in self.fetch_raw():
            try:
                companies.append(self.normalize(raw))
            except ValidationError as e:
                logger.warning(
                    "%s: dropping company record %s: %s",
                    self.provider_id,
                    raw.source_id,
                    e.errors()[0].get("msg") if e.errors() else e,
                )
            except (TypeError, ValueError) as e:
                logger.warning("%s: dropping company record %s: %s", self.provider_id, raw.source_id, e)
        logger.info("%s: normalized %d companies", self.provider_id, len(companies))
        return companies


class SupportSource(ProviderConnector):
    """
    Capability: list support customers as StandardizedSupportCustomer.
    fetch_raw yields one RawRecord per organization bucket:
    data = {"organization_id", "organization": {...} | None, "tickets": [...]}.
    """

    @abstractmethod
    def fetch_raw(self) -> list[RawRecord]:
        """Fetch all tickets and organizations, grouped per organization."""

    @abstractmethod
    def normalize(self, raw: RawRecord) -> StandardizedSupportCustomer:
        """Aggregate one organization bucket into a standardized customer."""

    def fetch_customers(self) -> list[StandardizedSupportCustomer]:
        """Fetch and normalize all customers. Upstream errors abort the call."""
        customers = [self.normalize(raw) for raw in self.fetch_raw()]
        logger.info("%s: normalized %d customers", self.provider_id, len(customers))
        return customers
