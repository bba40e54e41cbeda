"""
Timezone helpers. Kickoffs are stored in UTC and shown in the league's zone.
"""

from datetime import timezone

import pytz
from flask import current_app, has_app_context


def get_app_timezone():
    """The configured league timezone, UTC when unknown"""
    timezone_name = "UTC"
    if has_app_context():
        timezone_name = current_app.config.get("TIMEZONE", "UTC")
    try:
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        return pytz.UTC


def ensure_utc(dt):
    """Treat naive datetimes as UTC"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def convert_to_app_timezone(dt):
    if dt is None:
        return None
    return ensure_utc(dt).astimezone(get_app_timezone())


def format_kickoff(dt, format_str="%a %d/%m %H:%M"):
    if dt is None:
        return "A confirmar"
    return convert_to_app_timezone(dt).strftime(format_str)
