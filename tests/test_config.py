"""Tests for Settings loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from churn_report.config import Settings


class TestSettings:
    """Tests for Settings.from_env and Settings.from_yaml."""

    def test_defaults(self) -> None:
        """Provider calls get 30s, report generation 120s, three attempts per step."""
        settings = Settings.from_env({})
        assert settings.http_timeout == 30.0
        assert settings.llm_timeout == 120.0
        assert settings.step_max_attempts == 3
        assert settings.llm_provider == "stub"
        assert settings.client_credentials == {}

    def test_env_values(self) -> None:
        settings = Settings.from_env(
            {
                "CHURN_REPORT_DB": "/tmp/x.db",
                "CHURN_REPORT_LLM_PROVIDER": "openrouter",
                "OPENROUTER_API_KEY": "sk-or",
                "CHURN_REPORT_STEP_MAX_ATTEMPTS": "5",
                "RESEND_API_KEY": "",
            }
        )
        assert settings.db_path == Path("/tmp/x.db")
        assert settings.llm_provider == "openrouter"
        assert settings.step_max_attempts == 5
        assert settings.resend_api_key is None

    def test_client_credentials(self) -> None:
        """<PROVIDER>_CLIENT_ID/SECRET become per-provider app credentials."""
        settings = Settings.from_env({"HUBSPOT_CLIENT_ID": "hs-id", "HUBSPOT_CLIENT_SECRET": "hs-secret"})
        assert settings.provider_client("HubSpot") == {"clientId": "hs-id", "clientSecret": "hs-secret"}
        assert settings.provider_client("zendesk") == {}

    def test_invalid_value(self) -> None:
        with pytest.raises(ValidationError):
            Settings.from_env({"CHURN_REPORT_HTTP_TIMEOUT": "0"})

    def test_yaml_overrides_env(self, tmp_path: Path) -> None:
        """YAML values under a churn_report key win over the environment."""
        path = tmp_path / "settings.yaml"
        path.write_text(
            "churn_report:\n"
            "  llm_model: openai/gpt-4o\n"
            "  step_backoff_max: 10\n"
            "  client_credentials:\n"
            "    zendesk: {clientId: zd-id, clientSecret: zd-secret}\n"
        )
        settings = Settings.from_yaml(path, {"CHURN_REPORT_LLM_MODEL": "env/model", "RESEND_API_KEY": "re_key"})
        assert settings.llm_model == "openai/gpt-4o"
        assert settings.step_backoff_max == 10.0
        assert settings.resend_api_key == "re_key"
        assert settings.provider_client("zendesk")["clientId"] == "zd-id"

    def test_empty_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert Settings.from_yaml(path, {}).llm_provider == "stub"
