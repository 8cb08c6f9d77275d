"""
webview_query - collect Telegram web app auth queries from bot sessions.

For every session the bot is resolved, its web app view is opened, and the
signed init data embedded in the returned URL is appended to
``query_<bot>.txt``.
"""

from .driver import SessionOutcome, process_multiple_sessions
from .errors import (
    ConfigurationError,
    QueryExtractionError,
    PeerResolutionError,
    RateLimitSignal,
    RequestFailure,
    RetryExhausted,
    TimeoutFailure,
    WebViewQueryError,
)
from .query import extract_query, save_query
from .session import SessionDescriptor, SessionProcessor

__version__ = "0.1.0"
__all__ = [
    "SessionDescriptor",
    "SessionProcessor",
    "SessionOutcome",
    "process_multiple_sessions",
    "extract_query",
    "save_query",
    "WebViewQueryError",
    "ConfigurationError",
    "RateLimitSignal",
    "TimeoutFailure",
    "RetryExhausted",
    "RequestFailure",
    "QueryExtractionError",
    "PeerResolutionError",
]
