"""Configuration module for icsfeed."""

from icsfeed.config.settings import OAuthSettings, ServerSettings, split_address
from icsfeed.config.constants import (
    DEFAULT_LOOKAHEAD_DAYS,
    FEED_ID_PATTERN,
    ICS_MEDIA_TYPE,
    KEYRING_ACCOUNT_NAME,
    KEYRING_SERVICE_NAME,
    SUPPORTED_FORMATS,
)

__all__ = [
    "OAuthSettings",
    "ServerSettings",
    "split_address",
    "DEFAULT_LOOKAHEAD_DAYS",
    "FEED_ID_PATTERN",
    "ICS_MEDIA_TYPE",
    "KEYRING_ACCOUNT_NAME",
    "KEYRING_SERVICE_NAME",
    "SUPPORTED_FORMATS",
]
