"""OAuth2 authorization and token refresh."""

from icsfeed.auth.broker import AuthorizationFlow, GoogleTokenBroker, credentials_from_record
from icsfeed.auth.orchestrator import AuthorizationOrchestrator, PendingAuthorization, PendingAuthorizations
from icsfeed.auth.refresh import TokenRefreshGate

__all__ = [
    "AuthorizationFlow",
    "AuthorizationOrchestrator",
    "GoogleTokenBroker",
    "PendingAuthorization",
    "PendingAuthorizations",
    "TokenRefreshGate",
    "credentials_from_record",
]
