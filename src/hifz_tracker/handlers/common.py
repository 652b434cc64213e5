"""
Request helpers shared by the API handlers.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from flask import current_app, request

from hifz_tracker.models import Settings, parse_datetime
from hifz_tracker.utils.errors import ValidationError
from hifz_tracker.utils.timezone_utils import get_now_in_timezone, localize

REPO_KEY = 'HIFZ_REPOSITORY'
SETTINGS_KEY = 'HIFZ_SETTINGS'


def get_repo():
    return current_app.config[REPO_KEY]


def get_settings() -> Settings:
    return current_app.config[SETTINGS_KEY]


def set_settings(settings: Settings) -> None:
    current_app.config[SETTINGS_KEY] = settings


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def parse_when(value: Optional[str]) -> datetime:
    """Optional ISO timestamp from a client; now when absent, naive values read as local time."""
    if not value:
        return get_now_in_timezone()
    try:
        return localize(parse_datetime(value))
    except ValueError:
        raise ValidationError(f"Invalid timestamp: {value!r}. Use ISO format")


def require_int(data: Dict[str, Any], name: str) -> int:
    value = data.get(name)
    if value is None:
        raise ValidationError(f"{name} is required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer, got {value!r}")
