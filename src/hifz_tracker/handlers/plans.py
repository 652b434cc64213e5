"""
Plan Handlers

Create, list, activate and delete hafazan plans.
"""

from flask import jsonify
import logging

from hifz_tracker.handlers.common import get_repo, json_body, require_int
from hifz_tracker.models import parse_date
from hifz_tracker.services import content_service, plan_service
from hifz_tracker.utils.errors import ValidationError
from hifz_tracker.utils.timezone_utils import get_today_in_timezone

logger = logging.getLogger(__name__)


def _plan_json(plan, active_plan_id):
    return plan.to_dict(active=plan.id == active_plan_id)


def list_plans():
    """
    GET /api/plans

    Response:
        {"plans": [plan, ...], "active_plan_id": "1700000000000"}
    """
    repo = get_repo()
    book = repo.load_plans()
    return jsonify({
        "plans": [_plan_json(p, book.active_plan_id) for p in book.plans],
        "active_plan_id": book.active_plan_id
    }), 200


def create_plan():
    """
    POST /api/plans
    Body: {"surah_number": 78, "ayahs_per_day": 2, "start_date": "2025-03-01"}

    start_date defaults to today. Chapter length and names come from the
    content provider.
    """
    data = json_body()
    surah_number = require_int(data, 'surah_number')
    ayahs_per_day = require_int(data, 'ayahs_per_day') if 'ayahs_per_day' in data else 1

    try:
        start_date = parse_date(data['start_date']) if data.get('start_date') else get_today_in_timezone()
    except ValueError:
        raise ValidationError(f"Invalid start_date: {data.get('start_date')!r}. Use YYYY-MM-DD")

    chapter_meta = content_service.get_chapter_meta(surah_number)
    plan = plan_service.create_plan(get_repo(), chapter_meta, start_date, ayahs_per_day)

    return jsonify(plan.to_dict(active=True)), 201


def get_plan(plan_id):
    repo = get_repo()
    book = repo.load_plans()
    plan = book.find(plan_id)
    if plan is None:
        return jsonify({"error": f"Plan {plan_id} not found"}), 404
    return jsonify(_plan_json(plan, book.active_plan_id)), 200


def get_active_plan():
    plan = plan_service.get_active_plan(get_repo())
    if plan is None:
        return jsonify({"error": "No active plan"}), 404
    return jsonify(plan.to_dict(active=True)), 200


def activate_plan(plan_id):
    plan = plan_service.set_active_plan(get_repo(), plan_id)
    if plan is None:
        return jsonify({"error": f"Plan {plan_id} not found"}), 404
    return jsonify(plan.to_dict(active=True)), 200


def delete_plan(plan_id):
    if not plan_service.delete_plan(get_repo(), plan_id):
        return jsonify({"error": f"Plan {plan_id} not found"}), 404
    return jsonify({"deleted": plan_id}), 200
