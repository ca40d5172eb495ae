"""
Tests for BaseConnector abstract class
"""
import pytest
from unittest.mock import Mock, patch
import requests

from connectors.base import BaseConnector
from connectors.exceptions import ApiError, AuthError, TransportError


class MockConnector(BaseConnector):
    """Concrete implementation of BaseConnector for testing"""

    def __init__(self, base_url, auth_headers=None):
        super().__init__(base_url)
        self.auth_headers = auth_headers if auth_headers is not None else {"Authorization": "Bearer test"}

    def _get_auth_headers(self):
        if isinstance(self.auth_headers, Exception):
            raise self.auth_headers
        return self.auth_headers

    def submit_indicator(self, payload):
        return self._make_request("indicators", payload)


def make_response(status_code, body=None, reason="OK", text=None):
    """Build a mock requests.Response"""
    response = Mock()
    response.status_code = status_code
    response.reason = reason
    response.text = text if text is not None else ("" if body is None else str(body))
    response.content = response.text.encode()
    response.json.return_value = body
    return response


@pytest.mark.unit
class TestBaseConnectorInitialization:
    """Test connector initialization"""

    def test_initialization_with_valid_params(self):
        """Should initialize with base URL and a session"""
        connector = MockConnector(base_url="https://api.example.com")

        assert connector.base_url == "https://api.example.com"
        assert isinstance(connector.session, requests.Session)

    def test_initialization_strips_trailing_slash(self):
        connector = MockConnector(base_url="https://api.example.com/")

        assert connector.base_url == "https://api.example.com"

    def test_json_headers_applied_to_session(self):
        connector = MockConnector("https://api.example.com")

        assert connector.session.headers["Content-Type"] == "application/json"
        assert connector.session.headers["Accept"] == "application/json"

    def test_logger_initialized(self):
        connector = MockConnector("https://api.example.com")

        assert connector.logger.name == "MockConnector"


@pytest.mark.unit
class TestBaseConnectorMakeRequest:
    """Test _make_request POST handling"""

    @patch('requests.Session.post')
    def test_make_request_success(self, mock_post):
        """Should POST JSON and return the decoded body"""
        mock_post.return_value = make_response(201, {"id": "abc"}, reason="Created")

        connector = MockConnector("https://api.example.com")
        result = connector._make_request("test/endpoint", {"action": "block"})

        assert result == {"id": "abc"}
        mock_post.assert_called_once()
        assert mock_post.call_args[0][0] == "https://api.example.com/test/endpoint"
        assert mock_post.call_args.kwargs["json"] == {"action": "block"}

    @patch('requests.Session.post')
    def test_make_request_sends_auth_headers(self, mock_post):
        mock_post.return_value = make_response(201, {})

        connector = MockConnector("https://api.example.com", auth_headers={"Authorization": "Bearer xyz"})
        connector._make_request("test", {})

        assert mock_post.call_args.kwargs["headers"] == {"Authorization": "Bearer xyz"}

    @patch('requests.Session.post')
    def test_make_request_has_no_explicit_timeout(self, mock_post):
        """Should defer to the transport default timeout"""
        mock_post.return_value = make_response(201, {})

        connector = MockConnector("https://api.example.com")
        connector._make_request("test", {})

        assert mock_post.call_args.kwargs["timeout"] is None

    @patch('requests.Session.post')
    def test_auth_failure_prevents_request(self, mock_post):
        """Should not send anything when the auth header cannot be acquired"""
        connector = MockConnector("https://api.example.com", auth_headers=AuthError("no token"))

        with pytest.raises(AuthError):
            connector._make_request("test", {})

        mock_post.assert_not_called()

    @patch('requests.Session.post')
    def test_http_error_raises_api_error_with_details(self, mock_post):
        """Should capture status, reason and full body"""
        body = '{"error": {"code": "BadRequest", "message": "Invalid tlpLevel"}}'
        mock_post.return_value = make_response(400, reason="Bad Request", text=body)

        connector = MockConnector("https://api.example.com")

        with pytest.raises(ApiError) as exc_info:
            connector._make_request("test", {})

        error = exc_info.value
        assert error.status_code == 400
        assert error.reason == "Bad Request"
        assert error.body == body
        assert error.url == "https://api.example.com/test"
        assert "Invalid tlpLevel" in str(error)

    @patch('requests.Session.post')
    def test_server_error_not_retried(self, mock_post):
        """Should POST exactly once even for 5xx responses"""
        mock_post.return_value = make_response(503, reason="Service Unavailable", text="busy")

        connector = MockConnector("https://api.example.com")

        with pytest.raises(ApiError):
            connector._make_request("test", {})

        assert mock_post.call_count == 1

    @patch('requests.Session.post')
    def test_connection_error_raises_transport_error(self, mock_post):
        """Should wrap connection failures without retrying"""
        mock_post.side_effect = requests.exceptions.ConnectionError("Connection refused")

        connector = MockConnector("https://api.example.com")

        with pytest.raises(TransportError) as exc_info:
            connector._make_request("test", {})

        assert "Connection refused" in str(exc_info.value)
        assert mock_post.call_count == 1

    @patch('requests.Session.post')
    def test_timeout_raises_transport_error(self, mock_post):
        mock_post.side_effect = requests.exceptions.Timeout("timed out")

        connector = MockConnector("https://api.example.com")

        with pytest.raises(TransportError):
            connector._make_request("test", {})

    @patch('requests.Session.post')
    def test_make_request_handles_leading_slash_in_endpoint(self, mock_post):
        mock_post.return_value = make_response(201, {})

        connector = MockConnector("https://api.example.com")
        connector._make_request("/test/endpoint", {})

        call_args = mock_post.call_args[0][0]
        assert "//" not in call_args.replace("https://", "")


@pytest.mark.unit
class TestBaseConnectorAbstractMethods:
    """Test that abstract methods must be implemented"""

    def test_cannot_instantiate_base_connector_directly(self):
        with pytest.raises(TypeError):
            BaseConnector("https://api.example.com")

    def test_subclass_must_implement_get_auth_headers(self):
        class IncompleteConnector(BaseConnector):
            def submit_indicator(self, payload):
                pass

        with pytest.raises(TypeError):
            IncompleteConnector("https://api.example.com")

    def test_subclass_must_implement_submit_indicator(self):
        class IncompleteConnector(BaseConnector):
            def _get_auth_headers(self):
                return {}

        with pytest.raises(TypeError):
            IncompleteConnector("https://api.example.com")


@pytest.mark.unit
class TestBaseConnectorEdgeCases:
    """Test edge cases and error conditions"""

    @patch('requests.Session.post')
    def test_make_request_with_empty_response(self, mock_post):
        """Should return an empty dict for a 204 with no body"""
        mock_post.return_value = make_response(204, None, reason="No Content")

        connector = MockConnector("https://api.example.com")

        assert connector._make_request("test", {}) == {}

    @patch('requests.Session.post')
    def test_make_request_with_malformed_json(self, mock_post):
        """Should raise TransportError on an undecodable 2xx body"""
        response = make_response(201, text="<html>oops</html>")
        response.json.side_effect = ValueError("Invalid JSON")
        mock_post.return_value = response

        connector = MockConnector("https://api.example.com")

        with pytest.raises(TransportError):
            connector._make_request("test", {})
