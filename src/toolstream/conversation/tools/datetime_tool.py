"""
Date/time tool: the current date and time, optionally in an IANA timezone.

Needs no network access, which makes it the lightweight companion to
:class:`WeatherTool` for demos and tests.  An unknown timezone falls back to
UTC and the result carries an ``"error"`` field explaining why.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


class DateTimeTool:
    """Returns the current date and time."""

    name = "get_current_datetime"
    description = (
        "Get the current date and time. Returns the date, time, day of the "
        "week and Unix timestamp. Optionally accepts an IANA timezone name "
        "such as 'America/New_York'; defaults to UTC."
    )
    input_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "timezone": {
                "type": "string",
                "description": "IANA timezone name, e.g. 'Europe/Paris'. Omit for UTC.",
            }
        },
        "required": [],
    }

    def invoke(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return self.get_datetime(arguments.get("timezone") or None)

    def get_datetime(self, timezone_name: str | None = None) -> dict[str, Any]:
        """Return the current date and time in *timezone_name* (UTC if omitted).

        Keys: ``datetime_iso``, ``date``, ``time``, ``timezone``,
        ``day_of_week``, ``unix_timestamp`` and, for an unknown zone,
        ``error``.
        """
        tz, tz_error = _resolve_timezone(timezone_name)
        now = datetime.now(tz=tz)

        result: dict[str, Any] = {
            "datetime_iso": now.isoformat(timespec="seconds"),
            "date": now.strftime("%Y-%m-%d"),
            "time": now.strftime("%H:%M:%S"),
            "timezone": str(tz),
            "day_of_week": now.strftime("%A"),
            "unix_timestamp": int(now.timestamp()),
        }
        if tz_error:
            result["error"] = tz_error
        return result


def _resolve_timezone(timezone_name: str | None) -> tuple[tzinfo, str | None]:
    if not timezone_name:
        return timezone.utc, None
    try:
        return ZoneInfo(timezone_name), None
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone: %r; falling back to UTC", timezone_name)
        return timezone.utc, f"Unknown timezone {timezone_name!r}; showing UTC instead."
