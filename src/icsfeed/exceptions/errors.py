"""Exception hierarchy for icsfeed.

Every error carries the operation and identifier that failed, both as
attributes and in its message, so callers can log or map it without
re-parsing strings.
"""

from typing import Optional


class FeedError(Exception):
    """Base class for all icsfeed errors."""


class ConfigurationError(FeedError):
    """Raised when a tenant policy or process setting is missing or invalid."""

    def __init__(self, message: str, feed_id: Optional[str] = None, field: Optional[str] = None):
        self.feed_id = feed_id
        self.field = field
        if feed_id:
            message = f"feed `{feed_id}': {message}"
        super().__init__(message)


class UnsupportedFormatError(FeedError):
    """Raised when an export format is requested that cannot be rendered."""

    def __init__(self, fmt: str):
        self.fmt = fmt
        super().__init__(f"format `{fmt}' is not supported")


# --- Authentication -------------------------------------------------------


class AuthenticationError(FeedError):
    """Credential could not be obtained or used; requires re-authorization."""


class TokenExchangeError(AuthenticationError):
    """Raised when an authorization code cannot be exchanged for a token."""


class TokenRefreshError(AuthenticationError):
    """Raised when a stored token cannot be refreshed."""

    def __init__(self, account: str, reason: str = "unable to refresh token"):
        self.account = account
        self.reason = reason
        super().__init__(f"{reason} for account `{account}'")


class DecryptionError(AuthenticationError):
    """Raised when a vault file exists but does not authenticate or decode."""

    def __init__(self, path: str, reason: str = "unable to decrypt"):
        self.path = path
        self.reason = reason
        super().__init__(f"{reason} `{path}'")


# --- Authorization state --------------------------------------------------


class AuthorizationStateError(FeedError):
    """An authorization callback could not be matched to a usable pending entry.

    The message is safe to show to the end user.
    """

    reason = "unauthorized"

    def __init__(self, reason: Optional[str] = None):
        if reason is not None:
            self.reason = reason
        super().__init__(self.reason)


class StateMismatchError(AuthorizationStateError):
    reason = "state mismatch"


class StateExpiredError(AuthorizationStateError):
    reason = "expired"


class MissingCodeError(AuthorizationStateError):
    reason = "code is missing"


class AuthorizationDeniedError(AuthorizationStateError):
    """The provider redirected back with an explicit error parameter."""

    def __init__(self, provider_error: str):
        self.provider_error = provider_error
        super().__init__(f"error: {provider_error}")


# --- Provider and I/O -----------------------------------------------------


class ProviderError(FeedError):
    """Raised when a Calendar Source listing or query fails."""

    def __init__(self, operation: str, detail: Optional[str] = None):
        self.operation = operation
        self.detail = detail
        message = operation if not detail else f"{operation}: {detail}"
        super().__init__(message)


class CalendarNotFoundError(ProviderError):
    """Raised when no non-deleted calendar carries the requested name."""

    def __init__(self, calendar_name: str):
        self.calendar_name = calendar_name
        super().__init__(f"no such calendar `{calendar_name}'")


class ExportIOError(FeedError):
    """Raised when writing the rendered document to its sink fails."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        message = operation if cause is None else f"{operation}: {cause}"
        super().__init__(message)


class VaultIOError(FeedError):
    """Raised when a vault file cannot be read or written."""

    def __init__(self, path: str, operation: str, cause: Optional[BaseException] = None):
        self.path = path
        self.operation = operation
        message = f"{operation} `{path}'"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
