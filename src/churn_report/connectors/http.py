"""HTTP helpers shared by provider adapters: token exchange and JSON calls."""

import logging
from typing import Any, Optional

import httpx

from churn_report.errors import UpstreamApiError, UpstreamAuthError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

DEFAULT_HEADERS = {
    "User-Agent": "churn-report/0.1",
    "Accept": "application/json",
}


def build_client(timeout: float = DEFAULT_TIMEOUT) -> httpx.Client:
    """Default client with an explicit per-call timeout."""
    return httpx.Client(
        timeout=httpx.Timeout(timeout),
        follow_redirects=True,
        headers=DEFAULT_HEADERS,
    )


def request_token(
    client: httpx.Client,
    provider: str,
    url: str,
    *,
    json: Optional[dict[str, Any]] = None,
    form: Optional[dict[str, str]] = None,
    token_field: str = "access_token",
) -> dict[str, Any]:
    """
    POST to a token endpoint. Any failure is an UpstreamAuthError.
    Returns the decoded body; token_field must be present.
    """
    try:
        resp = client.post(url, json=json, data=form)
        resp.raise_for_status()
        body = resp.json()
    except httpx.HTTPStatusError as e:
        raise UpstreamAuthError(
            provider,
            f"token error: HTTP {e.response.status_code} {e.response.reason_phrase}",
            status_code=e.response.status_code,
        ) from e
    except httpx.RequestError as e:
        raise UpstreamAuthError(provider, f"token request failed: {e}") from e
    except ValueError as e:
        raise UpstreamAuthError(provider, "token endpoint returned non-JSON body") from e
    if not isinstance(body, dict) or not body.get(token_field):
        raise UpstreamAuthError(provider, f"token response missing '{token_field}'")
    return body


def request_json(
    client: httpx.Client,
    provider: str,
    method: str,
    url: str,
    *,
    token: Optional[str] = None,
    headers: Optional[dict[str, str]] = None,
    params: Optional[dict[str, Any]] = None,
    json: Optional[dict[str, Any]] = None,
) -> Any:
    """
    Call a provider API and decode JSON. Non-2xx, transport errors and
    undecodable bodies raise UpstreamApiError (401/403 raise UpstreamAuthError).
    """
    all_headers = dict(headers or {})
    if token:
        all_headers["Authorization"] = f"Bearer {token}"
    try:
        resp = client.request(method, url, headers=all_headers, params=params, json=json)
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        error_cls = UpstreamAuthError if status in (401, 403) else UpstreamApiError
        raise error_cls(
            provider,
            f"API error: HTTP {status} {e.response.reason_phrase} ({method} {e.request.url.path})",
            status_code=status,
        ) from e
    except httpx.RequestError as e:
        raise UpstreamApiError(provider, f"request failed: {e}") from e
    try:
        return resp.json()
    except ValueError as e:
        raise UpstreamApiError(provider, f"non-JSON response from {url}") from e
