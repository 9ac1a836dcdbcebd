from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta


@dataclass(slots=True)
class Reminder:
    id: str
    title: str
    list_name: str
    notes: str = ""
    due: datetime | None = None
    completed: bool = False
    priority: int = 0
    created: datetime | None = None


@dataclass(slots=True)
class CalendarInfo:
    name: str
    writable: bool = True


@dataclass(slots=True)
class CalendarEvent:
    uid: str
    title: str
    start: datetime
    end: datetime
    calendar: str
    all_day: bool = False
    location: str = ""
    notes: str = ""


@dataclass(slots=True, frozen=True)
class TimeSlot:
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass(slots=True)
class LabeledValue:
    label: str
    value: str


@dataclass(slots=True)
class Contact:
    id: str
    first_name: str = ""
    last_name: str = ""
    organization: str = ""
    phones: list[LabeledValue] = field(default_factory=list)
    emails: list[LabeledValue] = field(default_factory=list)
    note: str = ""
    birthday: date | None = None
    birthday_has_year: bool = True
    addresses: list[str] = field(default_factory=list)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def display_name(self) -> str:
        return self.full_name or self.organization or "(no name)"


@dataclass(slots=True)
class NoteSummary:
    name: str
    folder: str = ""
    account: str = ""
    modified: datetime | None = None


@dataclass(slots=True)
class MailMessage:
    index: int
    subject: str
    sender: str
    received: datetime | None = None
    read: bool = True
    content: str = ""


@dataclass(slots=True)
class TmuxPane:
    target: str
    window_name: str
    command: str
    path: str
