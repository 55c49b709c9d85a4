"""Export policy: which calendar to export and how its fields are filtered."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional, Tuple

from icsfeed.config.constants import DEFAULT_LOOKAHEAD_DAYS, FORMAT_ICS
from icsfeed.exceptions.errors import ConfigurationError

# Fields a policy may hide, and fields it may overwrite with a fixed value.
HIDEABLE_FIELDS: Tuple[str, ...] = (
    "uid",
    "organizer",
    "attendees",
    "visibility",
    "description",
    "location",
    "conference",
    "transparency",
    "status",
)

OVERWRITABLE_FIELDS: Tuple[str, ...] = (
    "calendar_name",
    "organizer",
    "visibility",
    "description",
    "location",
    "conference",
    "transparency",
    "status",
)


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive range of event times to export."""

    start: datetime
    end: datetime


@dataclass(frozen=True)
class FieldRules:
    """Per-field hide set and overwrite map."""

    hidden: FrozenSet[str] = frozenset()
    overwrites: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self):
        unknown = set(self.hidden) - set(HIDEABLE_FIELDS)
        if unknown:
            raise ConfigurationError(f"unknown hide fields: {sorted(unknown)}", field="hide_fields")
        unknown = set(self.overwrites) - set(OVERWRITABLE_FIELDS)
        if unknown:
            raise ConfigurationError(
                f"unknown overwrite fields: {sorted(unknown)}", field="overwrite_fields"
            )
        object.__setattr__(self, "hidden", frozenset(self.hidden))
        object.__setattr__(
            self,
            "overwrites",
            MappingProxyType({k: str(v) for k, v in self.overwrites.items() if v}),
        )

    @classmethod
    def from_mappings(
        cls,
        hide: Optional[Mapping[str, bool]] = None,
        overwrite: Optional[Mapping[str, str]] = None,
    ) -> "FieldRules":
        """Build rules from config-style ``{field: bool}`` and ``{field: value}`` maps."""
        hidden = frozenset(name for name, flag in (hide or {}).items() if flag)
        return cls(hidden=hidden, overwrites=dict(overwrite or {}))

    def is_hidden(self, name: str) -> bool:
        return name in self.hidden

    def overwrite(self, name: str) -> Optional[str]:
        """The configured replacement for ``name``, or None."""
        return self.overwrites.get(name) or None


@dataclass(frozen=True)
class ExportPolicy:
    """Everything needed to export one tenant's feed."""

    account: str
    calendar_name: str
    formats: Tuple[str, ...] = (FORMAT_ICS,)
    lookback: timedelta = timedelta(0)
    lookahead: timedelta = timedelta(days=DEFAULT_LOOKAHEAD_DAYS)
    rules: FieldRules = field(default_factory=FieldRules)

    def __post_init__(self):
        if not self.account:
            raise ConfigurationError("account_email is missing", field="account_email")
        if not self.calendar_name:
            raise ConfigurationError("calendar_name is missing", field="calendar_name")
        object.__setattr__(self, "formats", tuple(self.formats))

    def allows_format(self, fmt: str) -> bool:
        return fmt in self.formats

    def window(self, now: datetime) -> TimeWindow:
        """Export window relative to ``now``."""
        return TimeWindow(start=now - self.lookback, end=now + self.lookahead)
