"""Runtime settings loaded from environment variables with optional YAML overlay."""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field

# env var -> Settings field
_ENV_FIELDS: dict[str, str] = {
    "CHURN_REPORT_DB": "db_path",
    "CHURN_REPORT_HTTP_TIMEOUT": "http_timeout",
    "CHURN_REPORT_LLM_TIMEOUT": "llm_timeout",
    "CHURN_REPORT_LLM_PROVIDER": "llm_provider",
    "CHURN_REPORT_LLM_MODEL": "llm_model",
    "OPENROUTER_API_KEY": "openrouter_api_key",
    "RESEND_API_KEY": "resend_api_key",
    "CHURN_REPORT_EMAIL_FROM": "email_from",
    "CHURN_REPORT_STEP_MAX_ATTEMPTS": "step_max_attempts",
    "CHURN_REPORT_STEP_BACKOFF_INITIAL": "step_backoff_initial",
    "CHURN_REPORT_STEP_BACKOFF_MAX": "step_backoff_max",
    "CHURN_REPORT_MAX_PAGES": "max_pages",
    "CHURN_REPORT_REDIRECT_BASE": "oauth_redirect_base",
    "CHURN_REPORT_SCHEDULER_WORKERS": "scheduler_workers",
}

PROVIDERS = ("hubspot", "salesforce", "zendesk", "intercom", "freshdesk")


class Settings(BaseModel):
    """Settings for adapters, report generation, delivery and the orchestrator."""

    db_path: Path = Path("churn_report.db")

    http_timeout: float = Field(default=30.0, gt=0, description="Seconds per provider/notifier call")
    llm_timeout: float = Field(default=120.0, gt=0, description="Seconds per report generation call")

    llm_provider: str = "stub"  # "openrouter" | "stub"
    llm_model: str = "anthropic/claude-3.5-sonnet"
    openrouter_api_key: Optional[str] = None

    resend_api_key: Optional[str] = None
    email_from: str = "Churn Reports <reports@example.com>"

    step_max_attempts: int = Field(default=3, ge=1)
    step_backoff_initial: float = Field(default=2.0, ge=0)
    step_backoff_max: float = Field(default=60.0, ge=0)

    max_pages: int = Field(default=50, ge=1)
    oauth_redirect_base: str = "http://localhost:8787"
    scheduler_workers: int = Field(default=4, ge=1)

    client_credentials: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        description="provider -> {clientId, clientSecret}",
    )

    def provider_client(self, provider: str) -> dict[str, str]:
        """OAuth app credentials (clientId/clientSecret) for a provider; empty if unset."""
        return dict(self.client_credentials.get(provider.lower(), {}))

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None, **overrides: Any) -> "Settings":
        """Build settings from environment variables; keyword overrides win."""
        env = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        for var, field in _ENV_FIELDS.items():
            value = env.get(var)
            if value not in (None, ""):
                data[field] = value
        creds: dict[str, dict[str, str]] = {}
        for provider in PROVIDERS:
            client_id = env.get(f"{provider.upper()}_CLIENT_ID")
            client_secret = env.get(f"{provider.upper()}_CLIENT_SECRET")
            if client_id or client_secret:
                creds[provider] = {"clientId": client_id or "", "clientSecret": client_secret or ""}
        if creds:
            data["client_credentials"] = creds
        data.update(overrides)
        return cls.model_validate(data)

    @classmethod
    def from_yaml(cls, path: str | Path, environ: Optional[dict[str, str]] = None) -> "Settings":
        """Load settings from YAML on top of the environment. Supports a top-level 'churn_report' key."""
        data = yaml.safe_load(Path(path).read_text()) or {}
        data = data.get("churn_report", data)
        return cls.from_env(environ, **data)
