"""File-backed per-user stores for refresh tokens and working-hours preferences."""

from calendar_scheduler.stores.prefs import PreferenceStore, WorkingHours
from calendar_scheduler.stores.tokens import TokenStore

__all__ = ["PreferenceStore", "TokenStore", "WorkingHours"]
