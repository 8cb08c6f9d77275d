"""
Logging configuration helpers.

Usage:
    from webview_query.logging_config import configure_from_environment

    configure_from_environment()
"""

import os
from typing import Optional

from .config.loader import WebViewQueryConfig
from .logger import configure_logger


def configure_from_config(config: WebViewQueryConfig, verbose: bool = False) -> None:
    """Configure the global logger from a loaded configuration.

    Args:
        config: Loaded configuration
        verbose: Force DEBUG level regardless of the configured level
    """
    configure_logger(
        enabled=True,
        level="DEBUG" if verbose else config.log_level,
        log_directory=config.log_directory,
        log_sensitive_data=config.log_sensitive_data,
        console_output=True,
    )


def configure_from_environment() -> None:
    """Configure logger from environment variables.

    Environment variables:
        WEBVIEW_QUERY_LOG_ENABLED: '0', '1', 'true', 'false'
        WEBVIEW_QUERY_LOG_LEVEL: 'ERROR', 'WARN', 'INFO', 'DEBUG', 'TRACE'
        WEBVIEW_QUERY_LOG_DIR: Path to log directory
        WEBVIEW_QUERY_LOG_SENSITIVE: '0', '1', 'true', 'false'
        WEBVIEW_QUERY_LOG_CONSOLE: '0', '1', 'true', 'false'
    """
    configure_logger(
        enabled=_parse_bool(os.environ.get("WEBVIEW_QUERY_LOG_ENABLED"), True),
        level=os.environ.get("WEBVIEW_QUERY_LOG_LEVEL", "INFO"),
        log_directory=os.environ.get("WEBVIEW_QUERY_LOG_DIR"),
        log_sensitive_data=_parse_bool(os.environ.get("WEBVIEW_QUERY_LOG_SENSITIVE"), False),
        console_output=_parse_bool(os.environ.get("WEBVIEW_QUERY_LOG_CONSOLE"), True),
    )


def _parse_bool(value: Optional[str], default: bool) -> bool:
    """Parse string to boolean."""
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


__all__ = [
    "configure_from_config",
    "configure_from_environment",
]
