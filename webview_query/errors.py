"""
Error taxonomy for session processing.

Telethon failures are translated into these types by ``translate_error`` at
the client boundary, so the retry logic matches on types and never on
message text.
"""

import asyncio
from typing import Optional

from telethon.errors import FloodWaitError


class WebViewQueryError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(WebViewQueryError):
    """Missing or invalid settings (bot, URL, credentials, manifest)."""


class RateLimitSignal(WebViewQueryError):
    """The platform demands a wait before the request may be repeated."""

    def __init__(self, seconds: int, message: Optional[str] = None):
        self.seconds = int(seconds)
        super().__init__(message or f"A wait of {self.seconds} seconds is required")


class TimeoutFailure(WebViewQueryError):
    """A request timed out; safe to retry."""


class RetryExhausted(WebViewQueryError):
    """Timeout retries hit their bound."""

    def __init__(self, attempts: int, message: str = "Maximum attempts reached for resolving peer"):
        self.attempts = attempts
        super().__init__(message)


class PeerResolutionError(WebViewQueryError):
    """The bot lookup succeeded but produced no usable peer."""


class RequestFailure(WebViewQueryError):
    """The web view request or the extraction of its payload failed."""


class QueryExtractionError(RequestFailure):
    """The web view URL carries no recognizable auth payload."""


TIMEOUT_MARKER = "TIMEOUT"


def is_timeout(error: BaseException) -> bool:
    """Check whether an error from the RPC client is timeout-class."""
    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        return True
    return TIMEOUT_MARKER in str(error).upper()


def translate_error(error: BaseException) -> BaseException:
    """Map an RPC client failure onto this package's taxonomy.

    Errors that are already ours, and errors with no counterpart, are
    returned unchanged.
    """
    if isinstance(error, WebViewQueryError):
        return error
    if isinstance(error, FloodWaitError):
        return RateLimitSignal(error.seconds, str(error))
    if is_timeout(error):
        return TimeoutFailure(str(error) or type(error).__name__)
    return error
