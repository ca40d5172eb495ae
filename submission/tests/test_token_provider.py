"""
Tests for Graph authorization header providers
"""
import pytest
from unittest.mock import Mock, patch
from datetime import datetime, timedelta, timezone
import json
import os
import requests

from auth.token_provider import (
    AuthTokenProvider,
    ClientCredentialsTokenProvider,
    StaticTokenProvider,
    token_provider_from_env
)
from connectors.exceptions import AuthError


def load_fixture(filename):
    """Load test fixture from file"""
    fixture_path = os.path.join(os.path.dirname(__file__), 'fixtures', filename)
    with open(fixture_path, 'r') as f:
        return json.load(f)


def token_response(status_code=200, body=None):
    response = Mock()
    response.status_code = status_code
    response.text = json.dumps(body) if body is not None else ""
    response.json.return_value = body
    if status_code >= 400:
        http_error = requests.exceptions.HTTPError(f"{status_code} Error")
        http_error.response = response
        response.raise_for_status.side_effect = http_error
    return response


@pytest.mark.unit
class TestStaticTokenProvider:
    """Test pre-acquired token provider"""

    def test_header_uses_bearer_scheme(self):
        provider = StaticTokenProvider("abc123")

        assert provider.get_header() == {"Authorization": "Bearer abc123"}

    def test_bearer_prefix_not_duplicated(self):
        provider = StaticTokenProvider("Bearer abc123")

        assert provider.get_header() == {"Authorization": "Bearer abc123"}

    @pytest.mark.parametrize("token", ["", "   ", None])
    def test_empty_token_rejected(self, token):
        with pytest.raises(AuthError):
            StaticTokenProvider(token)

    def test_cannot_instantiate_abstract_provider(self):
        with pytest.raises(TypeError):
            AuthTokenProvider()


@pytest.mark.unit
class TestClientCredentialsTokenProvider:
    """Test client-credentials token acquisition"""

    def test_initialization_builds_token_url(self):
        provider = ClientCredentialsTokenProvider("contoso.onmicrosoft.com", "client-id", "secret")

        assert provider.token_url == (
            "https://login.microsoftonline.com/contoso.onmicrosoft.com/oauth2/v2.0/token"
        )

    def test_missing_credentials_rejected(self):
        with pytest.raises(AuthError):
            ClientCredentialsTokenProvider("tenant", "client-id", "")

    @patch('requests.Session.post')
    def test_get_header_requests_token(self, mock_post):
        """Should POST the client-credentials grant and return a bearer header"""
        body = load_fixture('token_response.json')
        mock_post.return_value = token_response(200, body)

        provider = ClientCredentialsTokenProvider("tenant", "client-id", "secret")
        header = provider.get_header()

        assert header == {"Authorization": f"Bearer {body['access_token']}"}
        form = mock_post.call_args.kwargs["data"]
        assert form["grant_type"] == "client_credentials"
        assert form["client_id"] == "client-id"
        assert form["client_secret"] == "secret"
        assert form["scope"] == "https://graph.microsoft.com/.default"

    @patch('requests.Session.post')
    def test_token_cached_until_expiry(self, mock_post):
        mock_post.return_value = token_response(200, load_fixture('token_response.json'))

        provider = ClientCredentialsTokenProvider("tenant", "client-id", "secret")
        provider.get_header()
        provider.get_header()

        assert mock_post.call_count == 1

    @patch('requests.Session.post')
    def test_expired_token_reacquired(self, mock_post):
        mock_post.return_value = token_response(200, load_fixture('token_response.json'))

        provider = ClientCredentialsTokenProvider("tenant", "client-id", "secret")
        provider.get_header()
        provider._expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
        provider.get_header()

        assert mock_post.call_count == 2

    @patch('time.sleep')
    @patch('requests.Session.post')
    def test_transient_failures_retried(self, mock_post, mock_sleep):
        """Should retry connection errors and 5xx responses"""
        mock_post.side_effect = [
            requests.exceptions.ConnectionError("reset"),
            token_response(503, {"error": "temporarily_unavailable"}),
            token_response(200, load_fixture('token_response.json'))
        ]

        provider = ClientCredentialsTokenProvider("tenant", "client-id", "secret")
        header = provider.get_header()

        assert header["Authorization"].startswith("Bearer ")
        assert mock_post.call_count == 3

    @patch('time.sleep')
    @patch('requests.Session.post')
    def test_rejected_credentials_not_retried(self, mock_post, mock_sleep):
        """Should raise AuthError on 4xx without retrying"""
        mock_post.return_value = token_response(401, {"error": "invalid_client"})

        provider = ClientCredentialsTokenProvider("tenant", "client-id", "wrong")

        with pytest.raises(AuthError, match="invalid_client"):
            provider.get_header()

        assert mock_post.call_count == 1

    @patch('time.sleep')
    @patch('requests.Session.post')
    def test_gives_up_after_max_retries(self, mock_post, mock_sleep):
        mock_post.side_effect = requests.exceptions.ConnectionError("down")

        provider = ClientCredentialsTokenProvider("tenant", "client-id", "secret")

        with pytest.raises(AuthError):
            provider.get_header()

        assert mock_post.call_count == ClientCredentialsTokenProvider.MAX_RETRIES

    @patch('requests.Session.post')
    def test_malformed_token_response(self, mock_post):
        mock_post.return_value = token_response(200, {"token_type": "Bearer"})

        provider = ClientCredentialsTokenProvider("tenant", "client-id", "secret")

        with pytest.raises(AuthError, match="Malformed"):
            provider.get_header()


@pytest.mark.unit
class TestTokenProviderFromEnv:
    """Test provider selection from environment variables"""

    @patch.dict(os.environ, {'GRAPH_ACCESS_TOKEN': 'env-token'}, clear=True)
    def test_access_token_wins(self):
        provider = token_provider_from_env()

        assert isinstance(provider, StaticTokenProvider)
        assert provider.get_header() == {"Authorization": "Bearer env-token"}

    @patch.dict(os.environ, {
        'GRAPH_TENANT_ID': 'tenant',
        'GRAPH_CLIENT_ID': 'client-id',
        'GRAPH_CLIENT_SECRET': 'secret'
    }, clear=True)
    def test_client_credentials(self):
        provider = token_provider_from_env()

        assert isinstance(provider, ClientCredentialsTokenProvider)
        assert provider.client_id == 'client-id'

    @patch.dict(os.environ, {'GRAPH_TENANT_ID': 'tenant'}, clear=True)
    def test_incomplete_configuration_rejected(self):
        with pytest.raises(AuthError, match="No Graph credentials"):
            token_provider_from_env()
