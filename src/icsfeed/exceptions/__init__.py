"""Custom exceptions for icsfeed."""

from icsfeed.exceptions.errors import (
    FeedError,
    ConfigurationError,
    UnsupportedFormatError,
    AuthenticationError,
    TokenExchangeError,
    TokenRefreshError,
    DecryptionError,
    AuthorizationStateError,
    StateMismatchError,
    StateExpiredError,
    MissingCodeError,
    AuthorizationDeniedError,
    ProviderError,
    CalendarNotFoundError,
    ExportIOError,
    VaultIOError,
)

__all__ = [
    "FeedError",
    "ConfigurationError",
    "UnsupportedFormatError",
    "AuthenticationError",
    "TokenExchangeError",
    "TokenRefreshError",
    "DecryptionError",
    "AuthorizationStateError",
    "StateMismatchError",
    "StateExpiredError",
    "MissingCodeError",
    "AuthorizationDeniedError",
    "ProviderError",
    "CalendarNotFoundError",
    "ExportIOError",
    "VaultIOError",
]
