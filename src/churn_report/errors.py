"""Error taxonomy shared by adapters, stores and the workflow orchestrator."""

from typing import Optional


class ChurnReportError(Exception):
    """Base class for all churn-report errors."""


class ConfigurationError(ChurnReportError, ValueError):
    """Invalid or missing configuration. Never retried."""


class UnknownProviderError(ConfigurationError):
    """Provider name has no registered adapter."""

    def __init__(self, kind: str, provider: str, available: list[str]):
        self.kind = kind
        self.provider = provider
        super().__init__(f"Unknown {kind} provider: {provider}. Available: {available}")


class MissingConnectionError(ChurnReportError):
    """No stored credentials for the required support provider."""

    def __init__(self, user_id: str, provider: str):
        self.user_id = user_id
        self.provider = provider
        super().__init__(f"No {provider} connection stored for user {user_id}")


class UpstreamError(ChurnReportError):
    """Failure talking to a third-party provider."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class UpstreamAuthError(UpstreamError):
    """Credential or token exchange failure."""


class UpstreamApiError(UpstreamError):
    """Non-2xx response (or transport failure) from a provider API."""


class MalformedReportError(ChurnReportError):
    """Report generator returned no usable content."""


class DeliveryError(ChurnReportError):
    """Notifier (email/Slack) rejected the report."""


class PersistenceError(ChurnReportError):
    """Store operation failed."""


class RunNotFoundError(ChurnReportError, LookupError):
    """No workflow run recorded under the given id."""
