#!/usr/bin/env python3
"""
Error taxonomy for Guesty API calls, iCal feeds and record mapping.
"""

from typing import Any, Optional


class PMSError(Exception):
    """Base class for all sync-layer errors."""

    retryable = False

    def __init__(self, message: str, status_code: Optional[int] = None,
                 body: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    def to_dict(self):
        return {
            'error': type(self).__name__,
            'message': self.message,
            'status_code': self.status_code,
        }


class APIError(PMSError):
    """Non-retryable HTTP status error (4xx other than 401/403/429)."""


class AuthError(APIError):
    """401/403 from the token or API endpoint. Requires a credential fix."""


class ServerError(APIError):
    """5xx from the remote server. Surfaced to the caller, not auto-retried."""


class RateLimitError(APIError):
    """429 Too Many Requests."""

    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = 429,
                 body: Any = None, attempts: int = 1, exhausted: bool = False):
        super().__init__(message, status_code=status_code, body=body)
        self.attempts = attempts
        self.exhausted = exhausted


class NetworkError(PMSError):
    """No response was received (DNS, connection refused, reset)."""

    retryable = True

    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.original = original
        if original is not None:
            self.__cause__ = original


class RequestTimeoutError(NetworkError):
    """The request timed out before a response arrived."""


class ParseError(PMSError):
    """Malformed JSON or iCal payload."""


class ValidationError(PMSError):
    """Rejected input (malformed URL, missing required field)."""


class SchemaError(ValidationError):
    """A remote record does not match the expected schema."""


class NotFoundError(PMSError):
    """A requested local record does not exist."""


def error_for_status(status_code: int, body: Any = None,
                     context: str = "request") -> APIError:
    """
    Build the typed error for a non-2xx HTTP status.

    Args:
        status_code: HTTP status from the response.
        body: Response body (parsed JSON or text).
        context: Short description used in the message.
    """
    if status_code in (401, 403):
        return AuthError(f"Authentication failed for {context} (HTTP {status_code})",
                         status_code=status_code, body=body)
    if status_code == 429:
        return RateLimitError(f"Rate limit exceeded for {context}", body=body)
    if status_code >= 500:
        return ServerError(f"Server error for {context} (HTTP {status_code})",
                           status_code=status_code, body=body)
    return APIError(f"HTTP {status_code} for {context}",
                    status_code=status_code, body=body)
