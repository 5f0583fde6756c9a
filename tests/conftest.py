"""Shared fixtures: settings, stores and an in-memory Calendar API service."""

import base64
import copy
from collections.abc import Callable
from typing import Any

import httplib2
import pytest
from googleapiclient.errors import HttpError

from calendar_scheduler.calendar import CalendarClient
from calendar_scheduler.config import Settings
from calendar_scheduler.crypto import Cipher
from calendar_scheduler.google import GoogleOAuth
from calendar_scheduler.retry import RetryPolicy
from calendar_scheduler.stores import PreferenceStore, TokenStore

TEST_KEY = base64.b64encode(bytes(range(32))).decode()


def http_error(status: int) -> HttpError:
    """Build a googleapiclient HttpError with the given status."""
    return HttpError(httplib2.Response({"status": status}), b'{"error": {"message": "test"}}')


class FakeRequest:
    def __init__(self, run: Callable[[], Any]):
        self._run = run

    def execute(self) -> Any:
        return self._run()


class FakeCalendarService:
    """Mimics the subset of the Calendar v3 discovery client the scheduler uses.

    ``failures`` maps a method name (e.g. "events.insert") to exceptions
    raised by successive executions before the call succeeds.
    """

    def __init__(self, calendars: list[dict] | None = None, events: list[dict] | None = None):
        self.calendars = calendars if calendars is not None else [
            {"id": "me@example.com", "summary": "Me", "primary": True, "timeZone": "UTC"}
        ]
        self.events_data = events or []
        self.calls: list[tuple[str, dict]] = []
        self.failures: dict[str, list[Exception]] = {}
        self._next_id = 1

    def _request(self, name: str, kwargs: dict, result: Callable[[], Any]) -> FakeRequest:
        def run() -> Any:
            self.calls.append((name, kwargs))
            pending = self.failures.get(name)
            if pending:
                raise pending.pop(0)
            return result()

        return FakeRequest(run)

    def executed(self, name: str) -> list[dict]:
        return [kwargs for call, kwargs in self.calls if call == name]

    # calendarList()
    def calendarList(self):  # noqa: N802
        service = self

        class CalendarList:
            def list(self, **kwargs):
                return service._request(
                    "calendarList.list", kwargs, lambda: {"items": copy.deepcopy(service.calendars)}
                )

        return CalendarList()

    # events()
    def events(self):
        service = self

        class Events:
            def list(self, **kwargs):
                return service._request(
                    "events.list", kwargs, lambda: {"items": copy.deepcopy(service.events_data)}
                )

            def insert(self, calendarId, body):  # noqa: N803
                def create():
                    event = dict(copy.deepcopy(body), id=f"evt{service._next_id}")
                    service._next_id += 1
                    event["htmlLink"] = f"https://calendar.google.com/event?eid={event['id']}"
                    return event

                return service._request(
                    "events.insert", {"calendarId": calendarId, "body": body}, create
                )

            def patch(self, calendarId, eventId, body):  # noqa: N803
                return service._request(
                    "events.patch",
                    {"calendarId": calendarId, "eventId": eventId, "body": body},
                    lambda: dict(copy.deepcopy(body), id=eventId, summary="Existing"),
                )

            def delete(self, calendarId, eventId):  # noqa: N803
                return service._request(
                    "events.delete", {"calendarId": calendarId, "eventId": eventId}, lambda: ""
                )

        return Events()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        client_id="test-client-id.apps.googleusercontent.com",
        client_secret="test-client-secret",
        redirect_uri="http://localhost:3000/oauth2/callback",
        encryption_key=TEST_KEY,
        data_dir=tmp_path / "data",
    )


@pytest.fixture
def cipher():
    return Cipher.from_b64(TEST_KEY)


@pytest.fixture
def token_store(settings, cipher):
    return TokenStore(settings.tokens_path, cipher)


@pytest.fixture
def pref_store(settings):
    return PreferenceStore(settings.preferences_path)


@pytest.fixture
def fake_service():
    return FakeCalendarService()


@pytest.fixture
def oauth(settings, token_store, fake_service):
    return GoogleOAuth(settings, token_store, service_factory=lambda creds: fake_service)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def client(oauth, pref_store, token_store, sleeps):
    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    token_store.save("demo-user", "1//stored-refresh-token")
    return CalendarClient(
        oauth,
        pref_store,
        retry_policy=RetryPolicy(jitter=False),
        sleep=fake_sleep,
    )
