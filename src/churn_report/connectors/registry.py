"""Registry for discovering and instantiating provider adapters."""

import logging
import re
from typing import Any, Optional, Type

import httpx

from churn_report.connectors.base import CRMSource, ProviderConnector, SupportSource
from churn_report.connectors.crm import HubSpotCRM, SalesforceCRM
from churn_report.connectors.http import DEFAULT_TIMEOUT
from churn_report.connectors.support import FreshdeskSupport, IntercomSupport, ZendeskSupport
from churn_report.errors import ConfigurationError, UnknownProviderError
from churn_report.models.crm import StandardizedCRMCompany
from churn_report.models.support import StandardizedSupportCustomer

logger = logging.getLogger(__name__)


def _snake(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def credential_kwargs(cls: Type[ProviderConnector], credentials: dict[str, Any]) -> dict[str, Any]:
    """
    Map stored connection metadata (camelCase or snake_case keys) to adapter
    constructor kwargs. Missing required fields raise ConfigurationError.
    """
    normalized = {_snake(k): v for k, v in (credentials or {}).items()}
    required = (*cls.extra_credentials, "client_id", "client_secret")
    missing = [name for name in required if not normalized.get(name)]
    if missing:
        raise ConfigurationError(f"{cls.provider_id} credentials missing: {', '.join(missing)}")
    return {name: normalized[name] for name in required}


class ConnectorRegistry:
    """Discovers and provides provider adapters, keyed by provider name."""

    _crm: dict[str, Type[CRMSource]] = {
        "hubspot": HubSpotCRM,
        "salesforce": SalesforceCRM,
    }
    _support: dict[str, Type[SupportSource]] = {
        "zendesk": ZendeskSupport,
        "intercom": IntercomSupport,
        "freshdesk": FreshdeskSupport,
    }

    @classmethod
    def crm(cls, provider: str, credentials: dict[str, Any], **kwargs: Any) -> CRMSource:
        """CRM adapter for provider. kwargs (client, timeout, max_pages) passed to the adapter."""
        adapter_cls = cls._crm.get((provider or "").lower())
        if not adapter_cls:
            raise UnknownProviderError("CRM", provider, cls.available_crm())
        return adapter_cls(**credential_kwargs(adapter_cls, credentials), **kwargs)

    @classmethod
    def support(cls, provider: str, credentials: dict[str, Any], **kwargs: Any) -> SupportSource:
        """Support adapter for provider. kwargs (client, timeout, max_pages) passed to the adapter."""
        adapter_cls = cls._support.get((provider or "").lower())
        if not adapter_cls:
            raise UnknownProviderError("support", provider, cls.available_support())
        return adapter_cls(**credential_kwargs(adapter_cls, credentials), **kwargs)

    @classmethod
    def get(cls, provider: str, credentials: dict[str, Any], **kwargs: Any) -> ProviderConnector:
        """Adapter of either capability; used by the OAuth flow."""
        name = (provider or "").lower()
        if name in cls._crm:
            return cls.crm(name, credentials, **kwargs)
        if name in cls._support:
            return cls.support(name, credentials, **kwargs)
        raise UnknownProviderError("any", provider, cls.available_crm() + cls.available_support())

    @classmethod
    def adapter_class(cls, provider: str) -> Type[ProviderConnector]:
        name = (provider or "").lower()
        adapter_cls = cls._crm.get(name) or cls._support.get(name)
        if not adapter_cls:
            raise UnknownProviderError("any", provider, cls.available_crm() + cls.available_support())
        return adapter_cls

    @classmethod
    def available_crm(cls) -> list[str]:
        return list(cls._crm.keys())

    @classmethod
    def available_support(cls) -> list[str]:
        return list(cls._support.keys())


def fetch_crm(
    provider: str,
    credentials: dict[str, Any],
    *,
    client: Optional[httpx.Client] = None,
    timeout: float = DEFAULT_TIMEOUT,
    max_pages: int = 50,
) -> list[StandardizedCRMCompany]:
    """Provider-keyed dispatch to the CRM adapter. Unknown provider -> UnknownProviderError."""
    with ConnectorRegistry.crm(provider, credentials, client=client, timeout=timeout, max_pages=max_pages) as adapter:
        logger.info("Fetching companies from %s", adapter.provider_id)
        return adapter.fetch_companies()


def fetch_support(
    provider: str,
    credentials: dict[str, Any],
    *,
    client: Optional[httpx.Client] = None,
    timeout: float = DEFAULT_TIMEOUT,
    max_pages: int = 50,
) -> list[StandardizedSupportCustomer]:
    """Provider-keyed dispatch to the support adapter. Unknown provider -> UnknownProviderError."""
    with ConnectorRegistry.support(provider, credentials, client=client, timeout=timeout, max_pages=max_pages) as adapter:
        logger.info("Fetching customers from %s", adapter.provider_id)
        return adapter.fetch_customers()
