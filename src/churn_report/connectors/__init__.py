"""Provider adapters and the registry that dispatches to them."""

from churn_report.connectors.base import CRMSource, ProviderConnector, SupportSource
from churn_report.connectors.registry import ConnectorRegistry, fetch_crm, fetch_support

__all__ = [
    "CRMSource",
    "ConnectorRegistry",
    "ProviderConnector",
    "SupportSource",
    "fetch_crm",
    "fetch_support",
]
