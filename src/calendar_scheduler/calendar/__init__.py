"""Google Calendar scheduling operations.

Usage:
    from calendar_scheduler.calendar import CalendarClient

    client = CalendarClient(oauth, preferences)

    # List calendars
    calendars = await client.list_calendars("demo-user")

    # Find free time
    slots = await client.find_free_slots("demo-user", "2026-01-26", 30)

OAuth Setup:
    1. Create an OAuth client in Google Cloud Console
    2. Set GOOGLE_CLIENT_ID, GOOGLE_REDIRECT_URI and ENCRYPTION_KEY
    3. Authorize: calendar-scheduler auth login
"""

from __future__ import annotations

from calendar_scheduler.calendar.client import Attendee, Calendar, CalendarClient, Event
from calendar_scheduler.calendar.slots import FreeSlot, compute_free_slots

__all__ = [
    "CalendarClient",
    "Calendar",
    "Event",
    "Attendee",
    "FreeSlot",
    "compute_free_slots",
]
