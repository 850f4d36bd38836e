"""Tests for the OAuth connect flow."""

from pathlib import Path
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from churn_report.config import Settings
from churn_report.connectors.base import decode_state, encode_state
from churn_report.errors import ConfigurationError, UpstreamAuthError
from churn_report.oauth import authorize_url, complete_callback
from churn_report.store import WorkflowConfigStore
from helpers import json_response, mock_client


@pytest.fixture
def settings() -> Settings:
    return Settings(
        oauth_redirect_base="https://app.example.com",
        client_credentials={
            "zendesk": {"clientId": "zd-id", "clientSecret": "zd-secret"},
            "salesforce": {"clientId": "sf-id", "clientSecret": "sf-secret"},
        },
    )


@pytest.fixture
def config_store(temp_db: Path) -> WorkflowConfigStore:
    return WorkflowConfigStore(temp_db)


class TestAuthorizeUrl:
    """Tests for authorize_url."""

    def test_zendesk_state_carries_subdomain(self, settings: Settings) -> None:
        url = urlparse(authorize_url(settings, "zendesk", "user-1", subdomain="acme"))
        query = parse_qs(url.query)
        assert url.netloc == "acme.zendesk.com"
        assert query["redirect_uri"] == ["https://app.example.com/oauth/zendesk/callback"]
        assert decode_state(query["state"][0]) == {"userId": "user-1", "provider": "zendesk", "subdomain": "acme"}

    def test_zendesk_requires_subdomain(self, settings: Settings) -> None:
        with pytest.raises(ConfigurationError, match="--subdomain"):
            authorize_url(settings, "zendesk", "user-1")

    def test_salesforce_uses_login_host(self, settings: Settings) -> None:
        """Salesforce consent starts at the login host before the instance is known."""
        url = urlparse(authorize_url(settings, "salesforce", "user-1"))
        assert url.netloc == "login.salesforce.com"

    def test_missing_app_credentials(self) -> None:
        with pytest.raises(ConfigurationError, match="HUBSPOT_CLIENT_ID"):
            authorize_url(Settings(), "hubspot", "user-1")


class TestCompleteCallback:
    """Tests for complete_callback."""

    def test_stores_connection(self, settings: Settings, config_store: WorkflowConfigStore) -> None:
        """The code is exchanged and the returned metadata saved for the state's user."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return json_response({"access_token": "t"})

        state = encode_state(userId="user-1", provider="zendesk", subdomain="acme")
        connection = complete_callback(settings, config_store, "zendesk", "code-1", state, client=mock_client(handler))
        assert str(seen[0].url) == "https://acme.zendesk.com/oauth/tokens"
        assert connection.metadata == {"subdomain": "acme", "clientId": "zd-id", "clientSecret": "zd-secret"}
        assert config_store.get_connection("user-1", "zendesk").metadata == connection.metadata

    def test_rejected_code(self, settings: Settings, config_store: WorkflowConfigStore) -> None:
        """A rejected code stores nothing."""
        state = encode_state(userId="user-1", provider="zendesk", subdomain="acme")
        client = mock_client(lambda request: json_response({"error": "invalid_grant"}, 400))
        with pytest.raises(UpstreamAuthError):
            complete_callback(settings, config_store, "zendesk", "bad", state, client=client)
        assert config_store.get_connection("user-1", "zendesk") is None

    @pytest.mark.parametrize(
        "state",
        [
            "not base64!",
            "MTIz",  # base64 of the JSON number 123
            "/w==",  # not UTF-8 once decoded
            "état",
            encode_state(provider="zendesk", subdomain="acme"),
            encode_state(userId="user-1", provider="intercom"),
        ],
    )
    def test_bad_state(self, settings: Settings, config_store: WorkflowConfigStore, state: str) -> None:
        with pytest.raises(ConfigurationError):
            complete_callback(settings, config_store, "zendesk", "code-1", state)
