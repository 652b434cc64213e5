from flask import jsonify
import logging

from hifz_tracker.handlers.common import get_repo, get_settings, json_body, set_settings
from hifz_tracker.services import settings_service

logger = logging.getLogger(__name__)


def get_user_settings():
    return jsonify(get_settings().to_dict()), 200


def update_user_settings():
    """
    PUT /api/settings
    Body: partial settings, e.g. {"general": {"murajaah_frequency": 3}}

    Unspecified fields keep their current values.
    """
    current = get_settings().to_dict()
    for section, values in json_body().items():
        if section in current and isinstance(values, dict):
            current[section].update(values)

    settings = settings_service.save_settings(get_repo(), current)
    set_settings(settings)
    return jsonify(settings.to_dict()), 200
