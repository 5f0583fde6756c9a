"""Google Calendar operations for authorized users."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from calendar_scheduler.calendar.slots import FreeSlot, compute_free_slots
from calendar_scheduler.exceptions import RemoteResponseError, ValidationError
from calendar_scheduler.google import GoogleOAuth
from calendar_scheduler.retry import RetryPolicy, with_backoff
from calendar_scheduler.stores.prefs import (
    DEFAULT_END,
    DEFAULT_START,
    PreferenceStore,
    WorkingHours,
)
from calendar_scheduler.timezones import normalize_zone

logger = logging.getLogger(__name__)


@dataclass
class Calendar:
    """Represents a Google Calendar."""

    id: str
    summary: str
    primary: bool = False
    time_zone: str | None = None


@dataclass
class Attendee:
    """An event attendee."""

    email: str
    display_name: str | None = None


@dataclass
class Event:
    """Represents a timed Google Calendar event."""

    id: str
    start: datetime
    end: datetime
    time_zone: str | None = None
    summary: str = ""
    html_link: str | None = None


def combine_local(day: str, time_of_day: str, zone: str) -> datetime:
    """Build an aware datetime from "YYYY-MM-DD" and "HH:MM" in an IANA zone.

    Raises:
        ValidationError: If either string does not parse.
    """
    try:
        parsed_day = date.fromisoformat(day)
        parsed_time = time.fromisoformat(time_of_day)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid date/time {day!r} {time_of_day!r}: {e}") from e
    return datetime.combine(parsed_day, parsed_time, tzinfo=ZoneInfo(zone))


def event_window(day: str, start: str, end: str, zone: str) -> tuple[datetime, datetime]:
    """Parse a same-day start/end pair, rejecting empty or inverted ranges."""
    start_dt = combine_local(day, start, zone)
    end_dt = combine_local(day, end, zone)
    if end_dt <= start_dt:
        raise ValidationError(f"Event end {end} must be after start {start}")
    return start_dt, end_dt


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class CalendarClient:
    """Timezone-aware calendar operations on a user's primary calendar.

    Every API call is retried on 429/5xx according to ``retry_policy``.

    Usage:
        client = CalendarClient(oauth, PreferenceStore("data/preferences.json"))

        # List calendars
        calendars = await client.list_calendars("demo-user")

        # Create an event
        event = await client.create_event(
            "demo-user",
            summary="Meeting",
            date="2026-01-25",
            start="10:00",
            end="11:00",
        )

        # Find an hour inside working hours
        slots = await client.find_free_slots("demo-user", "2026-01-26", 60)

    Note:
        Requires OAuth authorization. Run `calendar-scheduler auth login` to authorize.
    """

    def __init__(
        self,
        oauth: GoogleOAuth,
        preferences: PreferenceStore,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize Calendar client.

        Args:
            oauth: Resolves per-user credentials and API services.
            preferences: Working-hours store.
            retry_policy: Backoff settings for API calls.
            sleep: Awaitable sleep used between retries.
        """
        self._oauth = oauth
        self._preferences = preferences
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    async def _call(self, make_request: Callable[[], Any]) -> Any:
        """Execute an API request off the event loop, with backoff."""

        async def attempt() -> Any:
            return await asyncio.to_thread(lambda: make_request().execute())

        return await with_backoff(attempt, self.retry_policy, self._sleep)

    # =========================================================================
    # Calendars
    # =========================================================================

    async def _list_calendars(self, service: Any) -> list[Calendar]:
        result = await self._call(lambda: service.calendarList().list())
        return [
            self._parse_calendar(item) for item in result.get("items", []) if item.get("id")
        ]

    async def _primary(self, service: Any) -> Calendar | None:
        calendars = await self._list_calendars(service)
        for calendar in calendars:
            if calendar.primary:
                return calendar
        for calendar in calendars:
            if calendar.id == "primary":
                return calendar
        return None

    async def _require_primary(self, service: Any) -> Calendar:
        calendar = await self._primary(service)
        if calendar is None:
            raise RemoteResponseError("Primary calendar not found")
        return calendar

    async def list_calendars(self, user_id: str) -> list[Calendar]:
        """List all calendars.

        Returns:
            List of Calendar objects with normalized time zones.
        """
        service = self._oauth.build_service(user_id)
        return await self._list_calendars(service)

    async def get_primary_calendar(self, user_id: str) -> Calendar | None:
        """Get the user's primary calendar, or None if the listing has none."""
        service = self._oauth.build_service(user_id)
        return await self._primary(service)

    def _parse_calendar(self, data: dict) -> Calendar:
        """Parse calendar from API response."""
        return Calendar(
            id=data["id"],
            summary=data.get("summary", ""),
            primary=bool(data.get("primary", False)),
            time_zone=normalize_zone(data.get("timeZone")),
        )

    # =========================================================================
    # Working hours
    # =========================================================================

    async def set_working_hours(self, user_id: str, hours: WorkingHours) -> WorkingHours:
        """Store working hours, dropping a time zone that cannot be resolved."""
        stored = WorkingHours(
            days=list(hours.days),
            start=hours.start,
            end=hours.end,
            time_zone=normalize_zone(hours.time_zone),
        )
        self._preferences.set(user_id, stored)
        return stored

    async def get_working_hours(self, user_id: str) -> WorkingHours | None:
        return self._preferences.get(user_id)

    # =========================================================================
    # Events
    # =========================================================================

    @staticmethod
    def _effective_zone(requested: str | None, primary: Calendar | None) -> str:
        """Explicit zone, else the primary calendar's zone, else UTC."""
        return normalize_zone(requested) or (primary.time_zone if primary else None) or "UTC"

    async def create_event(
        self,
        user_id: str,
        summary: str,
        date: str,
        start: str,
        end: str,
        time_zone: str | None = None,
        description: str | None = None,
        attendees: list[Attendee] | None = None,
    ) -> Event:
        """Create an event on the primary calendar.

        Args:
            user_id: Authorized user.
            summary: Event title.
            date: Day as "YYYY-MM-DD".
            start: Start time as "HH:MM".
            end: End time as "HH:MM", strictly after start.
            time_zone: IANA zone. Defaults to the primary calendar's zone, then UTC.
            description: Event description.
            attendees: People to invite.

        Returns:
            Created Event in its resolved zone.

        Raises:
            ValidationError: If the times do not parse or end is not after start.
        """
        service = self._oauth.build_service(user_id)
        primary = await self._require_primary(service)
        zone = self._effective_zone(time_zone, primary)
        start_dt, end_dt = event_window(date, start, end, zone)

        body: dict[str, Any] = {
            "summary": summary,
            "start": {"dateTime": start_dt.isoformat(), "timeZone": zone},
            "end": {"dateTime": end_dt.isoformat(), "timeZone": zone},
        }
        if description:
            body["description"] = description
        if attendees:
            body["attendees"] = [self._format_attendee(a) for a in attendees]

        result = await self._call(
            lambda: service.events().insert(calendarId=primary.id, body=body)
        )
        event = self._parse_event(result, zone)
        logger.info(f"Created event {event.id} for user {user_id}")
        return event

    async def cancel_event(self, user_id: str, event_id: str) -> None:
        """Delete an event from the primary calendar."""
        service = self._oauth.build_service(user_id)
        primary = await self._require_primary(service)
        await self._call(
            lambda: service.events().delete(calendarId=primary.id, eventId=event_id)
        )
        logger.info(f"Cancelled event {event_id} for user {user_id}")

    async def reschedule_event(
        self,
        user_id: str,
        event_id: str,
        new_date: str,
        new_start: str,
        new_end: str,
        time_zone: str | None = None,
    ) -> Event:
        """Move an existing event. Only its start and end are changed.

        Raises:
            ValidationError: If the times do not parse or end is not after start.
        """
        service = self._oauth.build_service(user_id)
        primary = await self._require_primary(service)
        zone = self._effective_zone(time_zone, primary)
        start_dt, end_dt = event_window(new_date, new_start, new_end, zone)

        patch = {
            "start": {"dateTime": start_dt.isoformat(), "timeZone": zone},
            "end": {"dateTime": end_dt.isoformat(), "timeZone": zone},
        }
        result = await self._call(
            lambda: service.events().patch(calendarId=primary.id, eventId=event_id, body=patch)
        )
        event = self._parse_event(result, zone)
        logger.info(f"Rescheduled event {event.id} for user {user_id}")
        return event

    async def find_free_slots(
        self,
        user_id: str,
        date: str,
        duration_mins: int,
        time_zone: str | None = None,
    ) -> list[FreeSlot]:
        """Find free slots on a day within the user's working hours.

        Working hours default to 09:00-17:00. At most one slot of exactly
        ``duration_mins`` is offered per gap between busy events. All-day
        events do not block time.

        Raises:
            ValidationError: If the duration is not positive or the date or
                stored working hours do not parse.
        """
        if duration_mins <= 0:
            raise ValidationError(f"Duration must be positive, got {duration_mins}")

        service = self._oauth.build_service(user_id)
        primary = await self._require_primary(service)
        zone = self._effective_zone(time_zone, primary)

        hours = self._preferences.get(user_id)
        day_start = combine_local(date, hours.start if hours else DEFAULT_START, zone)
        day_end = combine_local(date, hours.end if hours else DEFAULT_END, zone)
        if day_end <= day_start:
            logger.warning(f"Working hours for user {user_id} end before they start")
            return []

        result = await self._call(
            lambda: service.events().list(
                calendarId=primary.id,
                timeMin=day_start.isoformat(),
                timeMax=day_end.isoformat(),
                singleEvents=True,
                orderBy="startTime",
            )
        )
        busy: list[tuple[datetime, datetime]] = []
        for item in result.get("items", []):
            start_raw = (item.get("start") or {}).get("dateTime")
            end_raw = (item.get("end") or {}).get("dateTime")
            # All-day events carry "date" only and never block time
            if not start_raw or not end_raw:
                continue
            try:
                busy.append((_parse_datetime(start_raw), _parse_datetime(end_raw)))
            except ValueError as e:
                raise RemoteResponseError(f"Event response has malformed times: {e}", item) from e

        return compute_free_slots(
            day_start, day_end, busy, timedelta(minutes=duration_mins), zone
        )

    def _format_attendee(self, attendee: Attendee) -> dict[str, str]:
        data = {"email": attendee.email}
        if attendee.display_name:
            data["displayName"] = attendee.display_name
        return data

    def _parse_event(self, data: dict, fallback_zone: str) -> Event:
        """Parse a timed event from an API response.

        Raises:
            RemoteResponseError: If id, start or end is missing or malformed.
        """
        start_data = data.get("start") or {}
        end_data = data.get("end") or {}
        if not data.get("id") or not start_data.get("dateTime") or not end_data.get("dateTime"):
            raise RemoteResponseError("Event response is missing id, start or end", data)

        zone = normalize_zone(start_data.get("timeZone")) or fallback_zone
        try:
            start = _parse_datetime(start_data["dateTime"])
            end = _parse_datetime(end_data["dateTime"])
        except ValueError as e:
            raise RemoteResponseError(f"Event response has malformed times: {e}", data) from e

        tz = ZoneInfo(zone)
        return Event(
            id=data["id"],
            start=start.astimezone(tz),
            end=end.astimezone(tz),
            time_zone=zone,
            summary=data.get("summary", ""),
            html_link=data.get("htmlLink"),
        )
