"""
Outbound HTTP

Base client for the payment gateway and payout API: OAuth2 client
credentials, JSON requests, bounded retries with exponential backoff.
Every failure that survives the retries surfaces as ExternalServiceError.
"""

import logging
import time

import requests
from django.conf import settings

from shared.domain.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class OAuthJsonClient:
    """requests-based client for APIs behind an OAuth2 client-credentials token."""

    service_name = "external API"
    token_path = "/v1/oauth2/token"

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str,
        *,
        timeout: int | None = None,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout or settings.PAYMENT_GATEWAY_TIMEOUT
        self.max_attempts = max_attempts or settings.PAYMENT_GATEWAY_MAX_ATTEMPTS
        self.backoff_seconds = (
            settings.PAYMENT_GATEWAY_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        )
        self.session = session or requests.Session()
        self._token: str | None = None
        self._token_expires_at = 0.0

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token
        if not self.is_configured:
            raise ExternalServiceError(f"{self.service_name} credentials are not configured")

        data = self._send(
            "POST",
            self.token_path,
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
            headers={"Accept": "application/json"},
        )
        self._token = data["access_token"]
        # Refresh a minute early
        self._token_expires_at = time.monotonic() + max(int(data.get("expires_in", 0)) - 60, 0)
        return self._token

    def request(self, method: str, path: str, **kwargs) -> dict:
        headers = kwargs.pop("headers", {})
        headers.setdefault("Content-Type", "application/json")
        headers["Authorization"] = f"Bearer {self._access_token()}"
        return self._send(method, path, headers=headers, **kwargs)

    def _send(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        last_error = ""

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = str(e)
                logger.warning(
                    f"{self.service_name} {method} {path} attempt {attempt}/{self.max_attempts} failed: {e}"
                )
            else:
                if response.status_code in RETRYABLE_STATUS_CODES:
                    last_error = f"HTTP {response.status_code}"
                    logger.warning(
                        f"{self.service_name} {method} {path} attempt {attempt}/{self.max_attempts} "
                        f"returned {response.status_code}"
                    )
                elif response.status_code >= 400:
                    logger.error(
                        f"{self.service_name} {method} {path} rejected with {response.status_code}: "
                        f"{response.text[:500]}"
                    )
                    raise ExternalServiceError(
                        f"{self.service_name} rejected the request (HTTP {response.status_code})"
                    )
                else:
                    try:
                        return response.json() if response.content else {}
                    except ValueError as e:
                        raise ExternalServiceError(f"{self.service_name} returned invalid JSON") from e

            if attempt < self.max_attempts and self.backoff_seconds:
                time.sleep(self.backoff_seconds * (2 ** (attempt - 1)))

        logger.error(f"{self.service_name} {method} {path} failed after {self.max_attempts} attempts: {last_error}")
        raise ExternalServiceError(f"{self.service_name} unavailable: {last_error}")
