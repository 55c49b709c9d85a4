"""Utility functions for icsfeed."""

from icsfeed.utils.durations import parse_duration
from icsfeed.utils.masking import account_digest, mask_account, mask_key

__all__ = [
    "account_digest",
    "mask_account",
    "mask_key",
    "parse_duration",
]
