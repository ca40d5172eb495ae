"""
Authorization header providers for Microsoft Graph

The submission client never acquires or refreshes tokens itself; it asks an
AuthTokenProvider for a header once per indicator.

- StaticTokenProvider: a bearer token acquired elsewhere
- ClientCredentialsTokenProvider: OAuth2 client-credentials grant against
  Azure AD, with retry on transient failures and token caching
"""
from abc import ABC, abstractmethod
from typing import Dict, Optional
from datetime import datetime, timedelta, timezone
import logging
import os

import requests
from pydantic import ValidationError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception
)

from connectors.exceptions import AuthError
from models.schemas import TokenResponseSchema


AUTHORITY_URL = "https://login.microsoftonline.com"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"


def _should_retry_exception(exception):
    """
    Determine if a token request failure should trigger a retry

    Retry on connection errors, timeouts and 5xx responses. Rejected
    credentials (4xx) are never retried.
    """
    if isinstance(exception, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return True

    if isinstance(exception, requests.exceptions.HTTPError):
        return exception.response is not None and exception.response.status_code >= 500

    return False


class AuthTokenProvider(ABC):
    """
    Supplies the Authorization header for Graph requests

    Subclasses must implement get_header()
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def get_header(self) -> Dict[str, str]:
        """
        Return the Authorization header

        Returns:
            {"Authorization": "Bearer <token>"}

        Raises:
            AuthError: If no token can be produced
        """
        pass


class StaticTokenProvider(AuthTokenProvider):
    """Provider for a bearer token acquired outside this client"""

    def __init__(self, token: str):
        super().__init__()
        token = (token or "").strip()
        if token.lower().startswith("bearer "):
            token = token[len("bearer "):].strip()
        if not token:
            raise AuthError("Access token is empty")
        self._token = token

    def get_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}


class ClientCredentialsTokenProvider(AuthTokenProvider):
    """
    Acquires app-only Graph tokens with the client-credentials grant

    Tokens are cached until EXPIRY_MARGIN seconds before they expire.
    """

    DEFAULT_TIMEOUT = 30  # seconds
    MAX_RETRIES = 3
    RETRY_MULTIPLIER = 1
    RETRY_MIN_WAIT = 1  # seconds
    RETRY_MAX_WAIT = 4  # seconds
    EXPIRY_MARGIN = 300  # seconds

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        authority: str = AUTHORITY_URL,
        scope: str = GRAPH_SCOPE
    ):
        """
        Initialize provider with app registration credentials

        Args:
            tenant_id: Azure AD tenant ID or domain
            client_id: Application (client) ID
            client_secret: Client secret
            authority: Azure AD authority host
            scope: OAuth2 scope to request
        """
        super().__init__()

        if not (tenant_id and client_id and client_secret):
            raise AuthError("tenant_id, client_id and client_secret are all required")

        self.tenant_id = tenant_id
        self.client_id = client_id
        self._client_secret = client_secret
        self.scope = scope
        self.token_url = f"{authority.rstrip('/')}/{tenant_id}/oauth2/v2.0/token"

        self.session = requests.Session()

        self._token: Optional[str] = None
        self._expires_at: Optional[datetime] = None

    def get_header(self) -> Dict[str, str]:
        if self._token is None or datetime.now(timezone.utc) >= self._expires_at:
            self._acquire_token()
        return {"Authorization": f"Bearer {self._token}"}

    def _acquire_token(self) -> None:
        """
        Request a new token and cache it

        Raises:
            AuthError: If Azure AD rejects the request or returns garbage
        """
        self.logger.info(f"Acquiring Graph token for client {self.client_id}")

        try:
            data = self._request_token()

        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "?"
            body = e.response.text if e.response is not None else ""
            self.logger.error(f"Token request rejected: {status}")
            raise AuthError(f"Token request rejected: {status} {body}") from e

        except requests.exceptions.RequestException as e:
            self.logger.error(f"Token request failed: {e}")
            raise AuthError(f"Token request failed: {e}") from e

        except ValueError as e:
            raise AuthError(f"Token response is not JSON: {e}") from e

        try:
            token = TokenResponseSchema(**data)
        except ValidationError as e:
            raise AuthError(f"Malformed token response: {e}") from e

        lifetime = max(token.expires_in - self.EXPIRY_MARGIN, 0)
        self._token = token.access_token
        self._expires_at = datetime.now(timezone.utc) + timedelta(seconds=lifetime)

        self.logger.debug(f"Token cached until {self._expires_at.isoformat()}")

    @retry(
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(
            multiplier=RETRY_MULTIPLIER,
            min=RETRY_MIN_WAIT,
            max=RETRY_MAX_WAIT
        ),
        retry=retry_if_exception(_should_retry_exception),
        reraise=True
    )
    def _request_token(self) -> Dict:
        """
        POST the client-credentials grant, retrying transient failures

        Returns:
            Parsed JSON token response
        """
        response = self.session.post(
            self.token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self._client_secret,
                "scope": self.scope
            },
            timeout=self.DEFAULT_TIMEOUT
        )
        response.raise_for_status()
        return response.json()


def token_provider_from_env() -> AuthTokenProvider:
    """
    Build a provider from environment variables

    GRAPH_ACCESS_TOKEN wins; otherwise GRAPH_TENANT_ID, GRAPH_CLIENT_ID and
    GRAPH_CLIENT_SECRET must all be set.

    Raises:
        AuthError: If no usable credentials are configured
    """
    token = os.getenv('GRAPH_ACCESS_TOKEN')
    if token:
        return StaticTokenProvider(token)

    tenant_id = os.getenv('GRAPH_TENANT_ID')
    client_id = os.getenv('GRAPH_CLIENT_ID')
    client_secret = os.getenv('GRAPH_CLIENT_SECRET')
    if tenant_id and client_id and client_secret:
        return ClientCredentialsTokenProvider(tenant_id, client_id, client_secret)

    raise AuthError(
        "No Graph credentials configured: set GRAPH_ACCESS_TOKEN, or "
        "GRAPH_TENANT_ID, GRAPH_CLIENT_ID and GRAPH_CLIENT_SECRET"
    )
