"""
Session System - one web app query per session.

Provides:
- SessionDescriptor: Immutable input of a processing run
- SessionProcessor: Resolves the bot, opens the web view, saves the query
- PeerResolutionPolicy: Retry state machine for bot resolution
- SessionManifestLoader: YAML manifest / sessions directory loading
"""

from .descriptor import SessionDescriptor
from .loader import SessionEntry, SessionManifestLoader, build_descriptors
from .processor import SessionProcessor
from .retry import PeerResolutionPolicy, ResolveState

__all__ = [
    "SessionDescriptor",
    "SessionEntry",
    "SessionManifestLoader",
    "SessionProcessor",
    "PeerResolutionPolicy",
    "ResolveState",
    "build_descriptors",
]
