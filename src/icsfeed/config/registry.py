"""Tenant Registry: feed id to export policy, loaded once from YAML.

Example file::

    team-holidays:
      account_email: someone@example.com
      calendar_name: Holidays
      formats: [ics]
      start_from: 168h
      end_on: 720h
      hide_fields:
        attendees: true
      overwrite_fields:
        location: Remote
"""

import logging
import re
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Union

import yaml

from icsfeed.config.constants import DEFAULT_LOOKAHEAD_DAYS, FEED_ID_PATTERN, FORMAT_ICS
from icsfeed.core.policy import ExportPolicy, FieldRules
from icsfeed.exceptions.errors import ConfigurationError
from icsfeed.utils.durations import parse_duration

logger = logging.getLogger(__name__)

_FEED_ID = re.compile(FEED_ID_PATTERN)


class TenantRegistry:
    """Read-only mapping of public feed id to ``ExportPolicy``."""

    def __init__(self, policies: Optional[Mapping[str, ExportPolicy]] = None):
        self._policies = MappingProxyType(dict(policies or {}))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "TenantRegistry":
        """Load and validate a registry file.

        Raises:
            ConfigurationError: If the file cannot be read, parsed or validated.
        """
        path = Path(path)
        logger.debug("Reading config %s", path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"unable to open `{path}': {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"unable to decode config `{path}': {e}") from e

        registry = cls.from_mapping(data or {})
        logger.info("Loaded %d feeds from %s", len(registry), path)
        return registry

    @classmethod
    def from_mapping(cls, data: Any) -> "TenantRegistry":
        """Validate a decoded ``{feed_id: entry}`` mapping.

        Raises:
            ConfigurationError: On the first invalid entry.
        """
        if not isinstance(data, dict):
            raise ConfigurationError("config must map feed ids to calendars")
        policies: Dict[str, ExportPolicy] = {}
        for feed_id, entry in data.items():
            feed_id = str(feed_id)
            policies[feed_id] = _parse_entry(feed_id, entry)
        return cls(policies)

    def get(self, feed_id: str) -> Optional[ExportPolicy]:
        """Policy for ``feed_id``, or None if no such feed is configured."""
        return self._policies.get(feed_id)

    def __contains__(self, feed_id: object) -> bool:
        return feed_id in self._policies

    def __len__(self) -> int:
        return len(self._policies)

    def __iter__(self) -> Iterator[str]:
        return iter(self._policies)


def _parse_entry(feed_id: str, entry: Any) -> ExportPolicy:
    if not _FEED_ID.match(feed_id):
        raise ConfigurationError("feed id may only contain letters, digits and dashes", feed_id)
    if not isinstance(entry, dict):
        raise ConfigurationError("entry must be a mapping", feed_id)

    try:
        lookback = parse_duration(entry.get("start_from"))
        lookahead = parse_duration(entry.get("end_on"))
    except ValueError as e:
        raise ConfigurationError(str(e), feed_id, field="start_from/end_on") from e
    if not lookahead:
        lookahead = parse_duration(f"{DEFAULT_LOOKAHEAD_DAYS}d")

    formats = entry.get("formats") or [FORMAT_ICS]
    if isinstance(formats, str):
        formats = [formats]

    hide = entry.get("hide_fields") or {}
    overwrite = entry.get("overwrite_fields") or {}
    if not isinstance(hide, dict) or not isinstance(overwrite, dict):
        raise ConfigurationError("hide_fields and overwrite_fields must be mappings", feed_id)

    try:
        return ExportPolicy(
            account=str(entry.get("account_email") or ""),
            calendar_name=str(entry.get("calendar_name") or ""),
            formats=tuple(str(fmt) for fmt in formats),
            lookback=lookback,
            lookahead=lookahead,
            rules=FieldRules.from_mappings(hide, overwrite),
        )
    except ConfigurationError as e:
        raise ConfigurationError(str(e), feed_id, field=e.field) from e
