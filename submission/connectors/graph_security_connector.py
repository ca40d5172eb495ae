"""
Microsoft Graph Security connector

Submits threat intelligence indicators to the tiIndicators endpoint
"""
from typing import Any, Dict, Optional, Union
from enum import Enum
import os

from auth.token_provider import AuthTokenProvider
from connectors.base import BaseConnector
from connectors.exceptions import ConfigurationError
from models.schemas import TiIndicatorResponseSchema
from utils.schema_validator import SchemaValidator


GRAPH_ROOT = "https://graph.microsoft.com"


class ApiVersion(str, Enum):
    """Graph API versions the client knows about"""
    V1 = "v1"
    BETA = "beta"

    @property
    def path_segment(self) -> str:
        return "v1.0" if self is ApiVersion.V1 else "beta"


SUPPORTED_VERSIONS = (ApiVersion.BETA,)


def parse_api_version(value: Union[str, ApiVersion, None]) -> ApiVersion:
    """
    Resolve a version name (case-insensitive) and check it is supported

    Only beta exposes tiIndicators, so v1 is rejected.

    Raises:
        ConfigurationError: For unknown or unsupported versions
    """
    if isinstance(value, ApiVersion):
        version = value
    else:
        text = (value or "").strip().lower()
        if text == "v1.0":
            text = "v1"
        try:
            version = ApiVersion(text)
        except ValueError:
            valid = [v.value for v in ApiVersion]
            raise ConfigurationError(f"Invalid API version: {value!r}. Must be one of {valid}")

    if version not in SUPPORTED_VERSIONS:
        raise ConfigurationError(
            f"API version {version.value} is not supported for tiIndicators; use beta"
        )

    return version


class GraphSecurityConnector(BaseConnector):
    """
    Connector for the Graph Security tiIndicators API

    Every submission asks the token provider for a fresh header
    """

    ENDPOINT = "security/tiIndicators"

    def __init__(
        self,
        token_provider: AuthTokenProvider,
        api_version: Union[str, ApiVersion, None] = None,
        base_url: Optional[str] = None
    ):
        """
        Initialize Graph Security connector

        Args:
            token_provider: Supplies the Authorization header
            api_version: beta (or from GRAPH_API_VERSION env var)
            base_url: Graph root (or from GRAPH_BASE_URL env var)

        Raises:
            ConfigurationError: If the API version is not supported
        """
        self.api_version = parse_api_version(api_version or os.getenv('GRAPH_API_VERSION', 'beta'))
        self.token_provider = token_provider

        root = base_url or os.getenv('GRAPH_BASE_URL', GRAPH_ROOT)
        super().__init__(base_url=f"{root.rstrip('/')}/{self.api_version.path_segment}")
        self.validator = SchemaValidator(strict=False)

    @property
    def endpoint_url(self) -> str:
        return f"{self.base_url}/{self.ENDPOINT}"

    def _get_auth_headers(self) -> Dict[str, str]:
        return self.token_provider.get_header()

    def submit_indicator(self, payload: Dict[str, Any]) -> Dict:
        """
        POST one indicator to tiIndicators

        Args:
            payload: Flat indicator body

        Returns:
            Created indicator as returned by Graph. A body that does not look
            like a tiIndicator is logged and returned unchanged.
        """
        self.logger.info(f"Submitting tiIndicator to {self.endpoint_url}")

        response = self._make_request(self.ENDPOINT, payload)

        result = self.validator.validate(response, TiIndicatorResponseSchema)
        if not result.is_valid:
            self.logger.warning(f"Unexpected tiIndicator response: {result.errors}")

        self.logger.info(f"Created tiIndicator {response.get('id', '<no id>')}")
        return response
