"""IANA timezone normalization.

The calendar API sometimes reports legacy or Windows zone names. Every zone
that enters or leaves the scheduler goes through :func:`normalize_zone`.
"""

from __future__ import annotations

import functools
import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError, available_timezones

logger = logging.getLogger(__name__)

# Windows and other non-IANA names seen in calendar payloads
ZONE_ALIASES = {
    "utc": "UTC",
    "z": "UTC",
    "coordinated universal time": "UTC",
    "gmt standard time": "Europe/London",
    "greenwich standard time": "Atlantic/Reykjavik",
    "w. europe standard time": "Europe/Berlin",
    "central europe standard time": "Europe/Budapest",
    "romance standard time": "Europe/Paris",
    "e. europe standard time": "Europe/Chisinau",
    "fle standard time": "Europe/Kiev",
    "russian standard time": "Europe/Moscow",
    "eastern standard time": "America/New_York",
    "central standard time": "America/Chicago",
    "mountain standard time": "America/Denver",
    "us mountain standard time": "America/Phoenix",
    "pacific standard time": "America/Los_Angeles",
    "alaskan standard time": "America/Anchorage",
    "hawaiian standard time": "Pacific/Honolulu",
    "atlantic standard time": "America/Halifax",
    "india standard time": "Asia/Kolkata",
    "china standard time": "Asia/Shanghai",
    "tokyo standard time": "Asia/Tokyo",
    "singapore standard time": "Asia/Singapore",
    "aus eastern standard time": "Australia/Sydney",
    "new zealand standard time": "Pacific/Auckland",
    "south africa standard time": "Africa/Johannesburg",
    "arabian standard time": "Asia/Dubai",
    "e. south america standard time": "America/Sao_Paulo",
}


@functools.lru_cache(maxsize=1)
def _known_zones() -> frozenset[str]:
    return frozenset(available_timezones())


@functools.lru_cache(maxsize=1)
def _zones_by_lower_name() -> dict[str, str]:
    return {name.lower(): name for name in _known_zones()}


def _loads(zone: str) -> bool:
    try:
        ZoneInfo(zone)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return False
    return True


def normalize_zone(zone: str | None) -> str | None:
    """Resolve a zone name to an IANA identifier.

    Args:
        zone: IANA name, alias, or None.

    Returns:
        The IANA identifier, or None if the name cannot be resolved.
    """
    if not zone:
        return None

    zone = zone.strip()
    if not zone:
        return None
    if zone in _known_zones():
        return zone

    lowered = zone.lower()
    resolved = ZONE_ALIASES.get(lowered) or _zones_by_lower_name().get(lowered)
    if resolved and (resolved in _known_zones() or _loads(resolved)):
        return resolved

    # Zones the packaged list may not include but the local database has
    if _loads(zone):
        return zone

    logger.debug(f"Unrecognized timezone {zone!r}")
    return None
