"""CLI for calendar-scheduler.

Usage:
    calendar-scheduler status                       # Show configuration status
    calendar-scheduler auth login                   # Authorize via local callback listener
    calendar-scheduler auth url                     # Print a consent URL only
    calendar-scheduler auth exchange <code> <verifier>
    calendar-scheduler auth revoke                  # Revoke and forget the stored token
    calendar-scheduler calendars                    # List calendars
    calendar-scheduler primary                      # Show the primary calendar
    calendar-scheduler hours set 09:00 17:00 --days Mon,Tue --tz Europe/London
    calendar-scheduler hours show
    calendar-scheduler events create "Standup" 2026-01-25 10:00 10:15
    calendar-scheduler events cancel <event-id>
    calendar-scheduler events reschedule <event-id> 2026-01-26 11:00 11:15
    calendar-scheduler slots 2026-01-26 30          # Free 30-minute slots

Every command accepts --user (default: DEMO_USER_ID or "demo-user").
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import parse_qs, urlparse

from googleapiclient.errors import HttpError

from calendar_scheduler.calendar import Attendee, CalendarClient
from calendar_scheduler.config import Settings, ensure_data_dir, get_config_status
from calendar_scheduler.crypto import Cipher
from calendar_scheduler.exceptions import (
    AuthExchangeError,
    CalendarSchedulerError,
    ConfigurationError,
)
from calendar_scheduler.google import GoogleOAuth
from calendar_scheduler.stores import PreferenceStore, TokenStore, WorkingHours

CALLBACK_PATH = "/oauth2/callback"


def build_oauth(settings: Settings) -> GoogleOAuth:
    """Wire the token store and OAuth helper from settings."""
    ensure_data_dir(settings)
    cipher = Cipher.from_b64(settings.require_encryption_key())
    return GoogleOAuth(settings, TokenStore(settings.tokens_path, cipher))


def build_client(settings: Settings) -> CalendarClient:
    """Wire a calendar client from settings."""
    return CalendarClient(build_oauth(settings), PreferenceStore(settings.preferences_path))


def _fmt_range(start, end, time_zone: str | None) -> str:
    zone = f" ({time_zone})" if time_zone else ""
    return f"{start.isoformat()} to {end.isoformat()}{zone}"


def cmd_status() -> int:
    """Show configuration status."""
    status = get_config_status()

    print("=" * 60)
    print("CALENDAR-SCHEDULER STATUS")
    print("=" * 60)
    print()
    print(f".env file:              {'[x]' if status['env_file'] else '[ ]'}")
    print()
    print("Google:")
    print(f"  GOOGLE_CLIENT_ID:       {'[x]' if status['google']['client_id'] else '[ ]'}")
    print(f"  GOOGLE_CLIENT_SECRET:   {'[x]' if status['google']['client_secret'] else '[ ]'}")
    print(f"  Redirect URI:           {status['google']['redirect_uri']}")
    print(
        "  GOOGLE_REFRESH_TOKEN:   "
        f"{'[x]' if status['google']['refresh_token_override'] else '[ ]'}"
    )
    print()
    print("Storage:")
    print(f"  ENCRYPTION_KEY:         {'[x]' if status['storage']['encryption_key'] else '[ ]'}")
    print(f"  Data directory:         {status['storage']['data_dir']}")
    print(f"  tokens.json:            {'[x]' if status['storage']['tokens'] else '[ ]'}")
    print(f"  preferences.json:       {'[x]' if status['storage']['preferences'] else '[ ]'}")
    return 0


class _CallbackHandler(BaseHTTPRequestHandler):
    """Receives the OAuth redirect and hands it to the OAuth helper."""

    oauth: GoogleOAuth
    user_id: str
    result: dict

    def do_GET(self) -> None:  # noqa: N802
        url = urlparse(self.path)
        if url.path != CALLBACK_PATH:
            self._reply(404, "Not found")
            return

        params = parse_qs(url.query)
        code = params.get("code", [None])[0]
        state = params.get("state", [None])[0]

        try:
            asyncio.run(self.oauth.handle_callback(self.user_id, code, state))
        except AuthExchangeError as e:
            self.result["error"] = str(e)
            self._reply(400, f"Authorization failed: {e}")
            return
        except Exception as e:
            self.result["error"] = str(e) or type(e).__name__
            self._reply(500, f"Authorization failed: {e}")
            return

        self.result["ok"] = True
        self._reply(200, "Authorization complete. You can close this tab.")

    def _reply(self, status: int, message: str) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "text/plain")
        self.end_headers()
        self.wfile.write(message.encode())

    def log_message(self, format: str, *args) -> None:
        logging.getLogger(__name__).debug(format, *args)


def auth_login(settings: Settings, user_id: str, port: int, no_browser: bool = False) -> int:
    """Authorize a user through a local callback listener."""
    oauth = build_oauth(settings)
    pending = oauth.build_authorization_url()

    print("=" * 60)
    print("GOOGLE CALENDAR AUTHORIZATION (PKCE)")
    print("=" * 60)
    print(f"\nUser ID: {user_id}")
    print(f"\nOpen this URL in your browser to authorize:\n{pending.authorization_url}\n")
    if not no_browser:
        webbrowser.open(pending.authorization_url)

    handler = type(
        "CallbackHandler",
        (_CallbackHandler,),
        {"oauth": oauth, "user_id": user_id, "result": {}},
    )
    server = HTTPServer(("localhost", port), handler)
    print(f"Waiting for callback at http://localhost:{port}{CALLBACK_PATH}")
    try:
        while not handler.result:
            server.handle_request()
    finally:
        server.server_close()

    if "error" in handler.result:
        print(f"\nError: {handler.result['error']}")
        return 1

    print("\nSuccess: refresh token stored securely.")
    return 0


def auth_url(settings: Settings) -> int:
    """Print a consent URL with its verifier and state."""
    pending = build_oauth(settings).build_authorization_url()
    print(f"URL:      {pending.authorization_url}")
    print(f"Verifier: {pending.code_verifier}")
    print(f"State:    {pending.state}")
    return 0


async def auth_exchange(settings: Settings, user_id: str, code: str, verifier: str) -> int:
    """Exchange a code obtained from a URL printed by `auth url`."""
    await build_oauth(settings).exchange_code(user_id, code, verifier)
    print("Success: refresh token stored securely.")
    return 0


async def auth_revoke(settings: Settings, user_id: str) -> int:
    """Revoke a user's stored token."""
    if await build_oauth(settings).revoke(user_id):
        print(f"Token revoked for {user_id}")
    else:
        print(f"No stored token for {user_id}")
    return 0


async def list_calendars(client: CalendarClient, user_id: str) -> int:
    calendars = await client.list_calendars(user_id)
    if not calendars:
        print("No calendars found.")
        return 0

    print("Your calendars:")
    for cal in calendars:
        parts = [cal.summary or cal.id]
        if cal.primary:
            parts.append("(primary)")
        if cal.time_zone:
            parts.append(f"[{cal.time_zone}]")
        print(f"- {' '.join(parts)}")
    return 0


async def show_primary(client: CalendarClient, user_id: str) -> int:
    cal = await client.get_primary_calendar(user_id)
    if cal is None:
        print("Primary calendar not found.")
        return 1
    zone = f" [{cal.time_zone}]" if cal.time_zone else ""
    print(f"Primary calendar: {cal.summary} ({cal.id}){zone}")
    return 0


async def hours_set(client: CalendarClient, user_id: str, args: argparse.Namespace) -> int:
    days = [d.strip() for d in args.days.split(",") if d.strip()] if args.days else []
    stored = await client.set_working_hours(
        user_id, WorkingHours(days=days, start=args.start, end=args.end, time_zone=args.tz)
    )
    zone = f" {stored.time_zone}" if stored.time_zone else ""
    print(f"Saved working hours: days={days} {stored.start}-{stored.end}{zone}")
    return 0


async def hours_show(client: CalendarClient, user_id: str) -> int:
    hours = await client.get_working_hours(user_id)
    if hours is None:
        print("No working hours set (default 09:00-17:00).")
        return 0
    zone = f" {hours.time_zone}" if hours.time_zone else ""
    print(f"Working hours: days={hours.days} {hours.start}-{hours.end}{zone}")
    return 0


def _parse_attendees(values: list[str] | None) -> list[Attendee] | None:
    """Parse "email" or "email=Display Name" values."""
    if not values:
        return None
    attendees = []
    for value in values:
        email, _, name = value.partition("=")
        attendees.append(Attendee(email=email.strip(), display_name=name.strip() or None))
    return attendees


async def events_command(client: CalendarClient, user_id: str, args: argparse.Namespace) -> int:
    if args.events_command == "create":
        event = await client.create_event(
            user_id,
            summary=args.summary,
            date=args.date,
            start=args.start,
            end=args.end,
            time_zone=args.tz,
            description=args.description,
            attendees=_parse_attendees(args.attendee),
        )
        when = _fmt_range(event.start, event.end, event.time_zone)
        print(f"Created event {event.id} from {when}")
    elif args.events_command == "cancel":
        await client.cancel_event(user_id, args.event_id)
        print(f"Cancelled event {args.event_id}")
    elif args.events_command == "reschedule":
        event = await client.reschedule_event(
            user_id,
            args.event_id,
            new_date=args.date,
            new_start=args.start,
            new_end=args.end,
            time_zone=args.tz,
        )
        when = _fmt_range(event.start, event.end, event.time_zone)
        print(f"Rescheduled event {event.id} to {when}")
    return 0


async def free_slots(client: CalendarClient, user_id: str, args: argparse.Namespace) -> int:
    slots = await client.find_free_slots(user_id, args.date, args.duration, time_zone=args.tz)
    if not slots:
        print("No free slots found in your working hours.")
        return 0

    print("Free slots:")
    for slot in slots:
        print(f"- {_fmt_range(slot.start, slot.end, slot.time_zone)}")
    return 0


async def _run_client_command(settings: Settings, args: argparse.Namespace) -> int:
    client = build_client(settings)
    user_id = args.user or settings.default_user_id

    if args.command == "calendars":
        return await list_calendars(client, user_id)
    if args.command == "primary":
        return await show_primary(client, user_id)
    if args.command == "hours":
        if args.hours_command == "set":
            return await hours_set(client, user_id, args)
        return await hours_show(client, user_id)
    if args.command == "events":
        return await events_command(client, user_id, args)
    if args.command == "slots":
        return await free_slots(client, user_id, args)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="calendar-scheduler",
        description="Google Calendar scheduling with PKCE authorization",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--user", type=str, default=None, help="User ID (default: DEMO_USER_ID)")
    subparsers = parser.add_subparsers(dest="command", help="Command")

    # status command
    subparsers.add_parser("status", help="Show configuration status")

    # auth subcommand
    auth_parser = subparsers.add_parser("auth", help="Google OAuth management")
    auth_subparsers = auth_parser.add_subparsers(dest="auth_command", help="Command")

    login_parser = auth_subparsers.add_parser("login", help="Authorize via local callback")
    login_parser.add_argument("--port", type=int, default=None, help="Callback port")
    login_parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Don't open browser automatically",
    )
    auth_subparsers.add_parser("url", help="Print a consent URL")
    exchange_parser = auth_subparsers.add_parser("exchange", help="Exchange a code manually")
    exchange_parser.add_argument("code", help="Authorization code from the redirect")
    exchange_parser.add_argument("verifier", help="Verifier printed by `auth url`")
    auth_subparsers.add_parser("revoke", help="Revoke stored token")

    # calendar commands
    subparsers.add_parser("calendars", help="List calendars")
    subparsers.add_parser("primary", help="Show primary calendar")

    hours_parser = subparsers.add_parser("hours", help="Working hours")
    hours_subparsers = hours_parser.add_subparsers(dest="hours_command", help="Command")
    hours_set_parser = hours_subparsers.add_parser("set", help="Set working hours")
    hours_set_parser.add_argument("start", help="Start time HH:MM")
    hours_set_parser.add_argument("end", help="End time HH:MM")
    hours_set_parser.add_argument("--days", type=str, default=None, help="Comma-separated days")
    hours_set_parser.add_argument("--tz", type=str, default=None, help="IANA time zone")
    hours_subparsers.add_parser("show", help="Show working hours")

    events_parser = subparsers.add_parser("events", help="Manage events")
    events_subparsers = events_parser.add_subparsers(dest="events_command", help="Command")
    create_parser = events_subparsers.add_parser("create", help="Create an event")
    create_parser.add_argument("summary", help="Event title")
    create_parser.add_argument("date", help="YYYY-MM-DD")
    create_parser.add_argument("start", help="HH:MM")
    create_parser.add_argument("end", help="HH:MM")
    create_parser.add_argument("--tz", type=str, default=None, help="IANA time zone")
    create_parser.add_argument("--description", type=str, default=None)
    create_parser.add_argument(
        "--attendee",
        action="append",
        help="Attendee email, optionally email=Display Name (repeatable)",
    )
    cancel_parser = events_subparsers.add_parser("cancel", help="Cancel an event")
    cancel_parser.add_argument("event_id", help="Event ID")
    reschedule_parser = events_subparsers.add_parser("reschedule", help="Reschedule an event")
    reschedule_parser.add_argument("event_id", help="Event ID")
    reschedule_parser.add_argument("date", help="YYYY-MM-DD")
    reschedule_parser.add_argument("start", help="HH:MM")
    reschedule_parser.add_argument("end", help="HH:MM")
    reschedule_parser.add_argument("--tz", type=str, default=None, help="IANA time zone")

    slots_parser = subparsers.add_parser("slots", help="Find free slots on a day")
    slots_parser.add_argument("date", help="YYYY-MM-DD")
    slots_parser.add_argument("duration", type=int, help="Slot length in minutes")
    slots_parser.add_argument("--tz", type=str, default=None, help="IANA time zone")

    args = parser.parse_args(argv if argv is not None else sys.argv[1:])

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "status":
        return cmd_status()

    if args.command == "events" and args.events_command is None:
        events_parser.print_help()
        return 0

    try:
        settings = Settings.from_env()
        user_id = args.user or settings.default_user_id

        if args.command == "auth":
            if args.auth_command == "login":
                return auth_login(
                    settings, user_id, args.port or settings.auth_port, args.no_browser
                )
            elif args.auth_command == "url":
                return auth_url(settings)
            elif args.auth_command == "exchange":
                return asyncio.run(auth_exchange(settings, user_id, args.code, args.verifier))
            elif args.auth_command == "revoke":
                return asyncio.run(auth_revoke(settings, user_id))
            else:
                auth_parser.print_help()
                return 0

        return asyncio.run(_run_client_command(settings, args))
    except ConfigurationError as e:
        print(f"Error: {e}")
        print("Run 'calendar-scheduler status' to check configuration")
        return 1
    except CalendarSchedulerError as e:
        print(f"Error: {e}")
        return 1
    except HttpError as e:
        print(f"Error: Calendar API request failed ({e.resp.status}): {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
