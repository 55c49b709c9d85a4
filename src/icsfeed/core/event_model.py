"""Event data model for Calendar Source events."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class EventTime:
    """One endpoint of an event: a whole date or a timed instant."""

    date: Optional[str] = None
    date_time: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional["EventTime"]:
        if not isinstance(data, dict):
            return None
        return cls(date=data.get("date") or None, date_time=data.get("dateTime") or None)

    @property
    def is_all_day(self) -> bool:
        return bool(self.date)


@dataclass
class Person:
    email: str = ""
    display_name: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional["Person"]:
        if not isinstance(data, dict):
            return None
        return cls(email=data.get("email") or "", display_name=data.get("displayName") or "")

    @property
    def common_name(self) -> str:
        return self.display_name or self.email


@dataclass
class Attendee(Person):
    optional: bool = False
    response_status: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional["Attendee"]:
        if not isinstance(data, dict):
            return None
        return cls(
            email=data.get("email") or "",
            display_name=data.get("displayName") or "",
            optional=bool(data.get("optional", False)),
            response_status=data.get("responseStatus") or "",
        )


@dataclass
class CalendarEvent:
    """An event as listed by the Calendar Source.

    Instances live for a single export. Overwrite rules mutate them in
    place just before rendering.
    """

    id: str
    summary: str
    start: Optional[EventTime]
    end: Optional[EventTime]
    ical_uid: str = ""
    description: str = ""
    location: str = ""
    organizer: Optional[Person] = None
    attendees: List[Attendee] = field(default_factory=list)
    visibility: str = ""
    transparency: str = ""
    status: str = ""
    conference_uris: List[str] = field(default_factory=list)
    created: str = ""
    updated: str = ""

    @classmethod
    def from_dict(cls, data: Dict) -> "CalendarEvent":
        """Create an event from a Calendar Source event resource."""
        conference = data.get("conferenceData") or {}
        entry_points = conference.get("entryPoints") or []
        return cls(
            id=data.get("id") or "",
            summary=data.get("summary") or "",
            start=EventTime.from_dict(data.get("start")),
            end=EventTime.from_dict(data.get("end")),
            ical_uid=data.get("iCalUID") or "",
            description=data.get("description") or "",
            location=data.get("location") or "",
            organizer=Person.from_dict(data.get("organizer")),
            attendees=[a for a in map(Attendee.from_dict, data.get("attendees") or []) if a],
            visibility=data.get("visibility") or "",
            transparency=data.get("transparency") or "",
            status=data.get("status") or "",
            conference_uris=[
                point.get("uri") or "" for point in entry_points if isinstance(point, dict)
            ],
            created=data.get("created") or "",
            updated=data.get("updated") or "",
        )

    @property
    def uid(self) -> str:
        return self.ical_uid or self.id

    @property
    def is_renderable(self) -> bool:
        """Events without an id, a summary or both endpoints are skipped."""
        return bool(self.id and self.summary and self.start and self.end)

    @property
    def is_all_day(self) -> bool:
        return bool(self.start and self.end and self.start.is_all_day and self.end.is_all_day)

    @property
    def conference_uri(self) -> Optional[str]:
        """First non-empty conference entry-point URI."""
        return next((uri for uri in self.conference_uris if uri), None)
