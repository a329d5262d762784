"""
Server utility functions for the Chronicle API.

Error type shared by library code and helpers that mask credentials
before they are logged or returned by the debug endpoints.
"""

import re
from datetime import datetime, timezone


class ApiError(RuntimeError):
    """
    Custom exception class for API-specific errors.

    Attributes:
        message -- explanation of the error
        status_code -- the HTTP status code associated with the error
    """
    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def make_iso_timestamp(now: datetime | None = None) -> str:
    """
    Create a UTC timestamp in ISO-8601 format with millisecond precision.

    Example: "2024-05-01T12:30:45.123Z"
    """
    if now is None:
        now = datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


_URI_CREDENTIALS = re.compile(r'://.*@')
_AUTH_SOURCE = re.compile(r'([?&]authSource=[^&]*)', re.IGNORECASE)
MASK_MAX_LENGTH = 120


def mask_mongo_uri(uri) -> str:
    """
    Hide credentials and the auth source in a MongoDB connection string.

    Args:
        uri: Connection string (non-strings are reported as "(none)")

    Returns:
        Masked string, truncated to 120 characters
    """
    if not uri or not isinstance(uri, str):
        return '(none)'
    masked = _AUTH_SOURCE.sub('***', _URI_CREDENTIALS.sub('://***:***@', uri))
    suffix = '...' if len(uri) > MASK_MAX_LENGTH else ''
    return masked[:MASK_MAX_LENGTH] + suffix


def mask_email(email) -> str:
    """Reduce an address to its first character and domain: "a***@example.com"."""
    if not email or not isinstance(email, str):
        return '(none)'
    local, _, domain = email.partition('@')
    if not local or not domain:
        return '***'
    return f"{local[0]}***@{domain}"
