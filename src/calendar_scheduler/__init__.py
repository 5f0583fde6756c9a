"""Google Calendar scheduling engine with PKCE authorization.

Usage:
    from calendar_scheduler.cli import build_client
    from calendar_scheduler.config import Settings

    client = build_client(Settings.from_env())
    slots = await client.find_free_slots("demo-user", "2026-01-26", 30)
"""

__version__ = "0.1.0"
