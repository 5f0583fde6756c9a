"""Calendar scheduler exceptions."""


class CalendarSchedulerError(Exception):
    """Base exception for calendar scheduler errors."""

    pass


class ConfigurationError(CalendarSchedulerError):
    """Raised when required configuration is missing or malformed."""

    pass


class AuthExchangeError(CalendarSchedulerError):
    """Raised when an authorization code cannot be turned into a refresh token."""

    pass


class NotAuthorizedError(CalendarSchedulerError):
    """Raised when no usable credential exists for a user."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(
            f"User {user_id!r} is not authorized with Google Calendar. "
            "Run 'calendar-scheduler auth login' to authorize."
        )


class ValidationError(CalendarSchedulerError):
    """Raised when date/time input is malformed or inconsistent."""

    pass


class RemoteResponseError(CalendarSchedulerError):
    """Raised when the calendar API returns a payload missing required fields."""

    def __init__(self, message: str, payload: dict | None = None):
        self.payload = payload
        super().__init__(message)


class CredentialCorruptionError(CalendarSchedulerError):
    """Raised when a stored credential fails to decrypt or authenticate."""

    pass


class CipherKeyError(CredentialCorruptionError):
    """Raised when the encryption key is not exactly 32 bytes."""

    def __init__(self, length: int):
        self.length = length
        super().__init__(f"Encryption key must be 32 bytes, got {length}")
