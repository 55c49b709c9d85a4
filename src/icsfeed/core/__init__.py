"""Core export logic for icsfeed."""

from icsfeed.core.calendar_source import GoogleCalendarSource
from icsfeed.core.event_model import Attendee, CalendarEvent, EventTime, Person
from icsfeed.core.ics_builder import (
    build_calendar,
    build_event,
    compile_feed,
    find_calendar_id,
    format_ics_output,
    iter_events,
)
from icsfeed.core.policy import (
    HIDEABLE_FIELDS,
    OVERWRITABLE_FIELDS,
    ExportPolicy,
    FieldRules,
    TimeWindow,
)

__all__ = [
    "Attendee",
    "CalendarEvent",
    "EventTime",
    "ExportPolicy",
    "FieldRules",
    "GoogleCalendarSource",
    "HIDEABLE_FIELDS",
    "OVERWRITABLE_FIELDS",
    "Person",
    "TimeWindow",
    "build_calendar",
    "build_event",
    "compile_feed",
    "find_calendar_id",
    "format_ics_output",
    "iter_events",
]
