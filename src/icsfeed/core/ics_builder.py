"""Feed Compiler: renders one calendar of a Calendar Source as an ICS document."""

import logging
from typing import Dict, Iterator, Optional, TextIO

from icalendar import Calendar, Event, vCalAddress

from icsfeed import __version__
from icsfeed.config.constants import (
    ATTENDEE_PARTSTAT,
    EVENT_STATUSES,
    FORMAT_ICS,
    ICS_CALSCALE,
    ICS_METHOD,
    ICS_PRODID_TEMPLATE,
    ICS_VERSION,
    SUPPORTED_FORMATS,
    TRANSPARENT_MARKER,
    VISIBILITY_CLASSES,
)
from icsfeed.core.event_model import CalendarEvent
from icsfeed.core.policy import ExportPolicy, FieldRules, TimeWindow
from icsfeed.core.timezone_utils import parse_all_day_date, parse_instant, parse_timestamp
from icsfeed.exceptions.errors import (
    CalendarNotFoundError,
    ExportIOError,
    ProviderError,
    UnsupportedFormatError,
)

logger = logging.getLogger(__name__)


def compile_feed(
    policy: ExportPolicy,
    source,
    window: TimeWindow,
    writer: TextIO,
    fmt: str = FORMAT_ICS,
    version: str = __version__,
) -> int:
    """Render the policy's calendar into ``writer``.

    The whole document is built in memory and written in one call, so the
    sink never receives a document without its trailer.

    Args:
        policy: Tenant export policy.
        source: Calendar Source bound to the policy's account.
        window: Range of event times to include.
        writer: Text sink for the document.
        fmt: Requested output format.
        version: Version embedded in the product identifier.

    Returns:
        Number of events rendered.

    Raises:
        UnsupportedFormatError: If ``fmt`` is not an ICS format.
        CalendarNotFoundError: If the calendar name does not resolve.
        ProviderError: If any listing call fails.
        ExportIOError: If writing to ``writer`` fails.
    """
    if fmt not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(fmt)

    logger.debug("Finding calendar id for %r", policy.calendar_name)
    calendar_id = find_calendar_id(source, policy.calendar_name)
    logger.debug("Found calendar id %s for %r", calendar_id, policy.calendar_name)

    metadata = source.get_calendar(calendar_id)
    if not isinstance(metadata, dict):
        raise ProviderError(f"unable to get details for calendar `{calendar_id}'", "empty response")

    cal = build_calendar(metadata, policy.rules, version)

    rendered = 0
    for item in iter_events(source, calendar_id, window):
        event = CalendarEvent.from_dict(item)
        if not event.is_renderable:
            logger.debug("Skipping unrenderable event %r", item.get("id"))
            continue
        cal.add_component(build_event(event, policy))
        rendered += 1

    try:
        writer.write(format_ics_output(cal))
    except (OSError, ValueError) as e:
        raise ExportIOError("unable to write calendar", e) from e

    logger.debug("Written %d events for calendar %s", rendered, calendar_id)
    return rendered


def find_calendar_id(source, calendar_name: str) -> str:
    """Resolve a display name to a calendar id.

    Pages through the account's calendar list and returns the first
    non-deleted entry whose summary equals ``calendar_name`` exactly.

    Raises:
        CalendarNotFoundError: If the pages run out without a match.
    """
    page_token: Optional[str] = None
    while True:
        items, page_token = source.list_calendars(page_token)
        for item in items:
            if item.get("deleted"):
                continue
            if item.get("summary") == calendar_name and item.get("id"):
                return item["id"]
        if not page_token:
            break
    raise CalendarNotFoundError(calendar_name)


def iter_events(source, calendar_id: str, window: TimeWindow) -> Iterator[Dict]:
    """Yield every event in ``window`` across all pages, in listing order."""
    page_token: Optional[str] = None
    while True:
        logger.debug(
            "Finding events in %s from %s to %s (page %s)",
            calendar_id, window.start, window.end, page_token,
        )
        items, page_token = source.list_events(calendar_id, window, page_token)
        logger.debug("Found %d items", len(items))
        yield from items
        if not page_token:
            break


def build_calendar(metadata: Dict, rules: FieldRules, version: str = __version__) -> Calendar:
    """Create the VCALENDAR with its header properties."""
    cal = Calendar()
    cal.add("VERSION", ICS_VERSION)
    cal.add("PRODID", ICS_PRODID_TEMPLATE.format(version=version))
    cal.add("CALSCALE", ICS_CALSCALE)
    cal.add("METHOD", ICS_METHOD)
    cal.add("X-WR-TIMEZONE", metadata.get("timeZone") or "UTC")

    calendar_name = rules.overwrite("calendar_name")
    if calendar_name:
        cal.add("X-WR-CALNAME", calendar_name)
    return cal


def build_event(event: CalendarEvent, policy: ExportPolicy) -> Event:
    """Render one event under the policy's hide/overwrite rules."""
    rules = policy.rules
    ve = Event()

    if not rules.is_hidden("uid"):
        ve.add("UID", event.uid)

    _add_event_time(ve, event)

    ve.add("SUMMARY", event.summary)

    for name in ("description", "location"):
        if rules.is_hidden(name):
            continue
        value = rules.overwrite(name) or getattr(event, name)
        setattr(event, name, value)
        if value:
            ve.add(name.upper(), value)

    if not rules.is_hidden("transparency"):
        event.transparency = rules.overwrite("transparency") or event.transparency
        if event.transparency.lower() == TRANSPARENT_MARKER:
            ve.add("TRANSP", "TRANSPARENT")
        else:
            ve.add("TRANSP", "OPAQUE")

    if not rules.is_hidden("visibility"):
        event.visibility = rules.overwrite("visibility") or event.visibility
        if event.visibility.upper() in VISIBILITY_CLASSES:
            ve.add("CLASS", event.visibility.upper())

    if not rules.is_hidden("conference"):
        uri = rules.overwrite("conference") or event.conference_uri
        if uri:
            ve.add("X-GOOGLE-CONFERENCE", uri)

    if not rules.is_hidden("organizer"):
        _add_organizer(ve, event, rules)

    if not rules.is_hidden("attendees"):
        _add_attendees(ve, event, policy.account)

    if not rules.is_hidden("status"):
        event.status = rules.overwrite("status") or event.status
        if event.status.upper() in EVENT_STATUSES:
            ve.add("STATUS", event.status.upper())

    created = parse_timestamp(event.created)
    if created is not None:
        ve.add("DTSTAMP", created)
        ve.add("CREATED", created)
    updated = parse_timestamp(event.updated)
    if updated is not None:
        ve.add("LAST-MODIFIED", updated)

    return ve


def _add_event_time(ve: Event, event: CalendarEvent) -> None:
    if event.is_all_day:
        start = parse_all_day_date(event.start.date)
        end = parse_all_day_date(event.end.date)
        if start is None or end is None:
            logger.debug("Event %s has malformed all-day dates", event.id)
            return
        ve.add("DTSTART", start)
        ve.add("DTEND", end)
        return

    ve.add("DTSTART", parse_instant(event.start.date_time))
    ve.add("DTEND", parse_instant(event.end.date_time))


def _add_organizer(ve: Event, event: CalendarEvent, rules: FieldRules) -> None:
    overwrite = rules.overwrite("organizer")
    if overwrite:
        ve.add("ORGANIZER", vCalAddress(overwrite))
        return
    if event.organizer is None or not event.organizer.email:
        return
    organizer = vCalAddress(f"mailto:{event.organizer.email}")
    organizer.params["CN"] = event.organizer.common_name
    ve.add("ORGANIZER", organizer)


def _add_attendees(ve: Event, event: CalendarEvent, account: str) -> None:
    for attendee in event.attendees:
        if not attendee.email:
            continue

        address = vCalAddress(f"mailto:{attendee.email}")
        address.params["ROLE"] = "OPT-PARTICIPANT" if attendee.optional else "REQ-PARTICIPANT"
        partstat = ATTENDEE_PARTSTAT.get(attendee.response_status)
        if partstat:
            address.params["PARTSTAT"] = partstat
        address.params["CN"] = attendee.common_name
        ve.add("ATTENDEE", address)

        # The exporting account's own response replaces the organizer-set status.
        if attendee.email.lower() == account.lower():
            event.status = attendee.response_status


def format_ics_output(cal: Calendar) -> str:
    """Format calendar to ICS string with CRLF line endings."""
    decoded_ical = cal.to_ical().decode("utf-8", errors="replace")
    return decoded_ical.replace("\r\n", "\n").replace("\n", "\r\n")
