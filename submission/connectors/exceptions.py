"""
Error kinds for indicator submission

Configuration and validation errors are detected locally and never reach
the network. Auth, transport and API errors carry whatever diagnostic
context the remote side returned.
"""
from typing import Any, List, Optional


class IndicatorSubmissionError(Exception):
    """Base class for every submission failure"""

    kind = "SubmissionError"


class ConfigurationError(IndicatorSubmissionError):
    """Unsupported API version or missing client configuration"""

    kind = "ConfigurationError"


class IndicatorValidationError(IndicatorSubmissionError):
    """
    Indicator parameters failed local validation

    Attributes:
        errors: One "field: message" entry per problem found
    """

    kind = "ValidationError"

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]


class AuthError(IndicatorSubmissionError):
    """
    Authorization header could not be acquired

    When a batch is aborted, `completed` holds the results of the records
    processed before the failure.
    """

    kind = "AuthError"

    def __init__(self, message: str):
        super().__init__(message)
        self.completed: List[Any] = []


class TransportError(IndicatorSubmissionError):
    """Network-level failure reaching the Graph API"""

    kind = "TransportError"


class ApiError(IndicatorSubmissionError):
    """
    Graph API answered with a non-2xx status

    Attributes:
        status_code: HTTP status code
        reason: HTTP reason phrase
        body: Full response body text
    """

    kind = "ApiError"

    def __init__(self, status_code: int, reason: str, body: str, url: str = ""):
        self.status_code = status_code
        self.reason = reason
        self.body = body
        self.url = url
        super().__init__(f"{status_code} {reason}: {body}")
