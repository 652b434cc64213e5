"""
Daily Task Handlers

This module provides endpoints to:
- Build today's hafazan and murajaah task list
- Report completion of a memorization or review outside a drill session
- Read progress, calendar and review range views of a plan
"""

from flask import jsonify, request
import logging

from hifz_tracker.handlers.common import (
    get_repo, get_settings, json_body, parse_when, require_int,
)
from hifz_tracker.services import progress_service, review_service, task_service
from hifz_tracker.utils.errors import ValidationError
from hifz_tracker.utils.timezone_utils import get_today_in_timezone

logger = logging.getLogger(__name__)


def _require_plan(plan_id):
    if get_repo().load_plans().find(plan_id) is None:
        return jsonify({"error": f"Plan {plan_id} not found"}), 404
    return None


def get_today_tasks(plan_id):
    """
    GET /api/plans/<plan_id>/tasks?now=2025-03-02T08:00:00

    Response:
        {
            "hafazan": [...], "murajaah": [...],
            "completed_hafazan": [...], "completed_murajaah": [...],
            "can_progress": false
        }
    """
    missing = _require_plan(plan_id)
    if missing:
        return missing

    now = parse_when(request.args.get('now'))
    return jsonify(task_service.get_today_tasks(get_repo(), plan_id, now=now)), 200


def mark_memorized(plan_id):
    """
    POST /api/plans/<plan_id>/memorize
    Body: {"surah_number": 78, "ayah_number": 3, "when": "2025-03-02T08:00:00"}
    """
    data = json_body()
    surah_number = require_int(data, 'surah_number')
    ayah_number = require_int(data, 'ayah_number')

    plan = get_repo().load_plans().find(plan_id)
    if plan is None:
        return jsonify({"error": f"Plan {plan_id} not found"}), 404
    if surah_number == plan.surah_number and not 1 <= ayah_number <= plan.total_ayahs:
        raise ValidationError(f"Ayah {ayah_number} is outside surah {surah_number} (1..{plan.total_ayahs})")

    record = progress_service.mark_memorized(get_repo(), get_settings(), plan_id, surah_number,
                                             ayah_number, when=parse_when(data.get('when')))
    return jsonify(record.to_dict()), 200


def complete_murajaah(plan_id):
    """
    POST /api/plans/<plan_id>/murajaah
    Body: {"surah_number": 78, "start_ayah": 1, "end_ayah": 5}
      or  {"surah_number": 78, "ayah_number": 3} for a single-ayah review

    Response:
        {"next_review": booking or null}
    """
    missing = _require_plan(plan_id)
    if missing:
        return missing

    data = json_body()
    surah_number = require_int(data, 'surah_number')
    when = parse_when(data.get('when'))

    if data.get('start_ayah') is not None:
        start_ayah = require_int(data, 'start_ayah')
        end_ayah = require_int(data, 'end_ayah') if data.get('end_ayah') is not None else start_ayah
        if end_ayah < start_ayah:
            raise ValidationError(f"end_ayah {end_ayah} is before start_ayah {start_ayah}")
        entry = review_service.on_review_completed(get_repo(), get_settings(), plan_id, surah_number,
                                                   start_ayah, end_ayah, when=when)
    else:
        ayah_number = require_int(data, 'ayah_number')
        entry = review_service.mark_murajaah_complete(get_repo(), get_settings(), plan_id, surah_number,
                                                      ayah_number, when=when)

    return jsonify({"next_review": entry.to_dict() if entry else None}), 200


def get_progress(plan_id):
    missing = _require_plan(plan_id)
    if missing:
        return missing
    return jsonify(progress_service.get_progress(get_repo(), plan_id)), 200


def get_calendar(plan_id):
    """GET /api/plans/<plan_id>/calendar?month=3&year=2025 (defaults to the current month)"""
    missing = _require_plan(plan_id)
    if missing:
        return missing

    today = get_today_in_timezone()
    try:
        month = int(request.args.get('month', today.month))
        year = int(request.args.get('year', today.year))
    except ValueError:
        raise ValidationError("month and year must be integers")
    if not 1 <= month <= 12:
        raise ValidationError(f"month must be between 1 and 12, got {month}")

    calendar_data = progress_service.get_calendar_data(get_repo(), plan_id, month, year)
    return jsonify({
        "month": month,
        "year": year,
        "days": {str(day): items for day, items in sorted(calendar_data.items())}
    }), 200


def get_review_ranges(plan_id):
    missing = _require_plan(plan_id)
    if missing:
        return missing

    ranges = review_service.get_review_ranges(get_repo(), plan_id, settings=get_settings())
    return jsonify({"ranges": [r.to_dict() for r in ranges]}), 200
