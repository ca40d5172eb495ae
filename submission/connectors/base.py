"""
Base connector for Graph API submissions

This abstract base class provides common functionality for connectors:
- HTTP session management with JSON headers
- Per-request authentication headers
- Structured logging
- Translation of transport and HTTP failures into typed errors

Requests are issued exactly once. Retrying is left to the caller.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict
import requests
import logging

from connectors.exceptions import ApiError, TransportError


class BaseConnector(ABC):
    """
    Abstract base class for Graph API connectors

    Subclasses must implement:
    - _get_auth_headers(): Return authentication headers for one request
    - submit_indicator(): Submit one indicator payload
    """

    # None defers to the transport default
    DEFAULT_TIMEOUT = None

    def __init__(self, base_url: str):
        """
        Initialize connector

        Args:
            base_url: Base URL for API endpoints (trailing slash will be removed)
        """
        self.base_url = base_url.rstrip('/')

        self.session = requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json"
        })

        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def _get_auth_headers(self) -> Dict[str, str]:
        """
        Return authentication headers for the next request

        Called before every request so that token handling stays with the
        provider.

        Raises:
            AuthError: If no header can be produced
        """
        pass

    @abstractmethod
    def submit_indicator(self, payload: Dict[str, Any]) -> Dict:
        """
        Submit one indicator payload

        Args:
            payload: Flat JSON-serializable indicator

        Returns:
            Decoded response body
        """
        pass

    def _make_request(self, endpoint: str, payload: Dict[str, Any]) -> Dict:
        """
        POST a JSON payload once

        Args:
            endpoint: API endpoint path (appended to base_url)
            payload: JSON body

        Returns:
            Parsed JSON response ({} for an empty body)

        Raises:
            AuthError: If the auth header cannot be acquired (no request is sent)
            TransportError: On connection failure or an undecodable 2xx body
            ApiError: On any non-2xx status, with status, reason and full body
        """
        # Build full URL, handling leading slashes
        endpoint = endpoint.lstrip('/')
        url = f"{self.base_url}/{endpoint}"

        headers = self._get_auth_headers()

        self.logger.debug(f"Request: POST {url}", extra={"attributes": sorted(payload)})

        try:
            response = self.session.post(
                url,
                json=payload,
                headers=headers,
                timeout=self.DEFAULT_TIMEOUT
            )
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Request failed: {url} - {str(e)}")
            raise TransportError(f"POST {url} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            self.logger.error(f"API error: {url} - {response.status_code} {response.reason}")
            raise ApiError(
                status_code=response.status_code,
                reason=response.reason or "",
                body=response.text,
                url=url
            )

        self.logger.debug(f"Response: {response.status_code} from {url}")

        if not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:
            self.logger.error(f"Undecodable response body from {url}")
            raise TransportError(f"Response from {url} is not valid JSON: {e}") from e
