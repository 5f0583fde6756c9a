"""Tests for the command-line interface."""

import threading
from http.server import HTTPServer

import httpx
import pytest

from calendar_scheduler.cli import CALLBACK_PATH, _CallbackHandler, _parse_attendees, main
from calendar_scheduler.exceptions import AuthExchangeError
from calendar_scheduler.stores import PreferenceStore
from tests.conftest import TEST_KEY

ENV_VARS = [
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "GOOGLE_REDIRECT_URI",
    "GOOGLE_REFRESH_TOKEN",
    "ENCRYPTION_KEY",
    "CALENDAR_DATA_DIR",
    "DEMO_USER_ID",
    "GOOGLE_AUTH_PORT",
]


@pytest.fixture
def env(tmp_path, monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "cid")
    monkeypatch.setenv("ENCRYPTION_KEY", TEST_KEY)
    monkeypatch.setenv("CALENDAR_DATA_DIR", str(tmp_path / "data"))
    return tmp_path / "data"


class TestMain:
    """Test CLI dispatch and error reporting."""

    def test_no_command(self, capsys):
        """Should print help."""
        assert main([]) == 0
        assert "calendar-scheduler" in capsys.readouterr().out

    def test_status(self, env, capsys):
        """Should print configuration status."""
        assert main(["status"]) == 0
        out = capsys.readouterr().out
        assert "CALENDAR-SCHEDULER STATUS" in out
        assert str(env) in out

    def test_missing_client_id(self, env, monkeypatch, capsys):
        """Should report configuration errors and exit non-zero."""
        monkeypatch.delenv("GOOGLE_CLIENT_ID")
        assert main(["calendars"]) == 1
        assert "GOOGLE_CLIENT_ID is required" in capsys.readouterr().out

    def test_missing_encryption_key(self, env, monkeypatch, capsys):
        """Should require an encryption key before touching stored tokens."""
        monkeypatch.delenv("ENCRYPTION_KEY")
        assert main(["auth", "url"]) == 1
        assert "ENCRYPTION_KEY is required" in capsys.readouterr().out

    def test_auth_url(self, env, capsys):
        """Should print a consent URL with its verifier and state."""
        assert main(["auth", "url"]) == 0
        out = capsys.readouterr().out
        assert "code_challenge_method=S256" in out
        assert "Verifier:" in out
        assert "State:" in out

    def test_not_authorized(self, env, capsys):
        """Should tell the user to log in."""
        assert main(["--user", "alice", "calendars"]) == 1
        assert "auth login" in capsys.readouterr().out

    def test_revoke_without_token(self, env, capsys):
        """Should succeed when there is nothing to revoke."""
        assert main(["auth", "revoke"]) == 0
        assert "No stored token for demo-user" in capsys.readouterr().out

    def test_hours_roundtrip(self, env, capsys):
        """Should store working hours and show them back."""
        argv = ["--user", "alice", "hours", "set", "08:30", "16:30"]
        argv += ["--days", "Mon,Tue", "--tz", "utc"]
        assert main(argv) == 0
        stored = PreferenceStore(env / "preferences.json").get("alice")
        assert stored.days == ["Mon", "Tue"]
        assert stored.start == "08:30"
        assert stored.time_zone == "UTC"

        capsys.readouterr()
        assert main(["--user", "alice", "hours", "show"]) == 0
        assert "08:30-16:30 UTC" in capsys.readouterr().out

    def test_hours_show_default(self, env, capsys):
        """Should mention the default window when nothing is stored."""
        assert main(["hours", "show"]) == 0
        assert "default 09:00-17:00" in capsys.readouterr().out


class TestParseAttendees:
    """Test attendee argument parsing."""

    def test_parse(self):
        """Should split optional display names."""
        attendees = _parse_attendees(["a@example.com", "b@example.com=Bea B"])
        assert attendees[0].email == "a@example.com"
        assert attendees[0].display_name is None
        assert attendees[1].display_name == "Bea B"

    def test_empty(self):
        """Should return None for no attendees."""
        assert _parse_attendees(None) is None


class FailingOAuth:
    """Stands in for GoogleOAuth with a callback that always raises."""

    def __init__(self, error):
        self.error = error
        self.calls = []

    async def handle_callback(self, user_id, code, state):
        self.calls.append((user_id, code, state))
        raise self.error


def serve_one(oauth, path):
    """Run the callback listener for a single GET and return (response, result)."""
    handler = type(
        "CallbackHandler",
        (_CallbackHandler,),
        {"oauth": oauth, "user_id": "alice", "result": {}},
    )
    server = HTTPServer(("127.0.0.1", 0), handler)
    port = server.server_address[1]
    thread = threading.Thread(target=server.handle_request)
    thread.start()
    try:
        response = httpx.get(f"http://127.0.0.1:{port}{path}", timeout=5.0, trust_env=False)
    finally:
        thread.join(timeout=5.0)
        server.server_close()
    return response, handler.result


class TestCallbackHandler:
    """Test the local OAuth callback listener."""

    def test_rejected_exchange(self):
        """Should answer 400 and record the error."""
        oauth = FailingOAuth(AuthExchangeError("OAuth state mismatch"))
        response, result = serve_one(oauth, f"{CALLBACK_PATH}?code=c&state=s")

        assert response.status_code == 400
        assert "state mismatch" in result["error"]
        assert oauth.calls == [("alice", "c", "s")]

    def test_unexpected_failure(self):
        """Should answer 500 and record the error so the login loop stops."""
        request = httpx.Request("POST", "https://oauth2.googleapis.com/token")
        oauth = FailingOAuth(httpx.ConnectError("connection refused", request=request))
        response, result = serve_one(oauth, f"{CALLBACK_PATH}?code=c&state=s")

        assert response.status_code == 500
        assert "connection refused" in result["error"]
        assert "Authorization failed" in response.text

    def test_unknown_path(self):
        """Should answer 404 without touching the OAuth helper."""
        oauth = FailingOAuth(RuntimeError("unused"))
        response, result = serve_one(oauth, "/favicon.ico")

        assert response.status_code == 404
        assert result == {}
        assert oauth.calls == []
