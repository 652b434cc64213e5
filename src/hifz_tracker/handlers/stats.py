"""
Stats Handlers

Streaks, completion status and what-next suggestions for a plan.
"""

from flask import jsonify, request
import logging

from hifz_tracker.handlers.common import get_repo, json_body, parse_when
from hifz_tracker.models import parse_date
from hifz_tracker.services import analytics_service
from hifz_tracker.utils.errors import ValidationError

logger = logging.getLogger(__name__)


def get_streaks(plan_id):
    """
    GET /api/plans/<plan_id>/streaks?today=2025-03-02

    Response:
        {"plan_id": "...", "current": 3, "longest": 5}
    """
    today = None
    if request.args.get('today'):
        try:
            today = parse_date(request.args['today'])
        except ValueError:
            raise ValidationError(f"Invalid date: {request.args['today']!r}. Use YYYY-MM-DD")

    streaks = analytics_service.get_streak_data(get_repo(), plan_id, today=today)
    return jsonify({"plan_id": plan_id, **streaks}), 200


def get_completion_status(plan_id):
    status = analytics_service.get_plan_completion_status(get_repo(), plan_id)
    if status is None:
        return jsonify({"error": f"Plan {plan_id} not found"}), 404

    if status['completed']:
        status = dict(status, achievement_level=analytics_service.calculate_achievement_level(status['days_early']))
    return jsonify(status), 200


def complete_plan(plan_id):
    """
    POST /api/plans/<plan_id>/complete

    409 while ayahs remain unmemorized.
    """
    repo = get_repo()
    if repo.load_plans().find(plan_id) is None:
        return jsonify({"error": f"Plan {plan_id} not found"}), 404

    status = analytics_service.mark_plan_completed(repo, plan_id, when=parse_when(json_body().get('when')))
    if not status:
        return jsonify({"error": "Plan is not finished yet"}), 409

    return jsonify({
        **status,
        "achievement_level": analytics_service.calculate_achievement_level(status['days_early']),
        "next_steps": analytics_service.get_next_step_suggestions(repo, plan_id),
    }), 200


def get_next_steps(plan_id):
    suggestions = analytics_service.get_next_step_suggestions(get_repo(), plan_id)
    if suggestions is None:
        return jsonify({"error": "Plan is missing or not finished yet"}), 404
    return jsonify(suggestions), 200
