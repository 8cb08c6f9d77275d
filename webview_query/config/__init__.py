"""
Configuration - layered settings for session processing.
"""

from .loader import ConfigLoader, WebViewQueryConfig, load_config

__all__ = [
    "ConfigLoader",
    "WebViewQueryConfig",
    "load_config",
]
