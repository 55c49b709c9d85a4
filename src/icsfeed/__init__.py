"""
icsfeed - Google Calendar to iCalendar exporter

Exports one named calendar of a Google account as an ICS document, either
once from the command line or continuously as per-tenant HTTP feeds.
"""

__version__ = "1.0.0"

# Public API - import commonly used components
from icsfeed.exceptions.errors import (
    AuthenticationError,
    AuthorizationStateError,
    ConfigurationError,
    FeedError,
    ProviderError,
)
from icsfeed.core.policy import ExportPolicy, FieldRules, TimeWindow
from icsfeed.core.ics_builder import compile_feed
from icsfeed.storage.vault import CredentialVault

__all__ = [
    # Version
    "__version__",
    # Exceptions
    "AuthenticationError",
    "AuthorizationStateError",
    "ConfigurationError",
    "FeedError",
    "ProviderError",
    # Core
    "CredentialVault",
    "ExportPolicy",
    "FieldRules",
    "TimeWindow",
    "compile_feed",
]
