"""OAuth connect flow: authorize URL, then callback code exchange into a stored connection."""

import logging
from typing import Any, Optional

import httpx

from churn_report.config import Settings
from churn_report.connectors.base import ProviderConnector, decode_state
from churn_report.connectors.crm.salesforce import LOGIN_URL
from churn_report.connectors.registry import ConnectorRegistry
from churn_report.errors import ConfigurationError
from churn_report.store.config_store import OAuthConnection, WorkflowConfigStore

logger = logging.getLogger(__name__)

# Adapter constructor fields that can be known before the connection exists
_PLACEHOLDERS = {"instance_url": LOGIN_URL}


def _adapter(
    settings: Settings,
    provider: str,
    extra: dict[str, Any],
    client: Optional[httpx.Client] = None,
) -> ProviderConnector:
    adapter_cls = ConnectorRegistry.adapter_class(provider)
    app = settings.provider_client(provider)
    if not app.get("clientId") or not app.get("clientSecret"):
        name = provider.upper()
        raise ConfigurationError(f"{name}_CLIENT_ID and {name}_CLIENT_SECRET must be set")
    creds = {**app}
    for field in adapter_cls.extra_credentials:
        value = extra.get(field) or _PLACEHOLDERS.get(field)
        if not value:
            raise ConfigurationError(f"{provider} requires --{field.replace('_', '-')}")
        creds[field] = value
    return ConnectorRegistry.get(provider, creds, client=client, timeout=settings.http_timeout)


def authorize_url(settings: Settings, provider: str, user_id: str, **extra: Any) -> str:
    """Provider consent URL; the state carries the user id (and subdomain where needed)."""
    with _adapter(settings, provider, extra) as adapter:
        return adapter.authorize_url(settings.oauth_redirect_base, user_id)


def complete_callback(
    settings: Settings,
    config_store: WorkflowConfigStore,
    provider: str,
    code: str,
    state: str,
    *,
    client: Optional[httpx.Client] = None,
) -> OAuthConnection:
    """
    Exchange the callback code and store the returned metadata as the user's
    connection. Raises UpstreamAuthError when the provider rejects the code.
    """
    try:
        decoded = decode_state(state)
    except ValueError as e:
        raise ConfigurationError("Invalid OAuth state") from e
    if not isinstance(decoded, dict):
        raise ConfigurationError("Invalid OAuth state")
    user_id = decoded.get("userId")
    if not user_id:
        raise ConfigurationError("OAuth state has no userId")
    if decoded.get("provider") and decoded["provider"] != provider.lower():
        raise ConfigurationError(f"OAuth state is for {decoded['provider']}, not {provider}")
    with _adapter(settings, provider, {"subdomain": decoded.get("subdomain")}, client) as adapter:
        metadata = adapter.exchange_code(code, settings.oauth_redirect_base)
    connection = config_store.save_connection(user_id, provider, metadata)
    logger.info("Stored %s connection for user %s", provider, user_id)
    return connection
