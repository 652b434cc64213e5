"""
Activity Handlers

Drill session lifecycle over HTTP:
- POST /api/activities starts a session from a today's task
- POST /api/activities/<id>/repetition counts one repetition
- POST /api/activities/<id>/complete | abandon | reset
- GET  /api/activities[?filter=hafazan|murajaah|completed|incomplete]
- GET  /api/activities/<id> includes where the drill resumes
"""

from flask import jsonify, request
import logging

from hifz_tracker.handlers.common import get_repo, get_settings, json_body, parse_when
from hifz_tracker.services import activity_service

logger = logging.getLogger(__name__)


def _activity_json(activity):
    data = activity.to_dict()
    session_settings = get_settings().for_session(activity.session_type)
    data['resume'] = activity_service.resume_position(activity.completed_reps, session_settings)
    return data


def _not_found(activity_id):
    return jsonify({"error": f"Activity {activity_id} not found"}), 404


def list_activities():
    activities = activity_service.list_activities(get_repo(), request.args.get('filter'))
    return jsonify({
        "activities": [a.to_dict() for a in activities],
        "count": len(activities)
    }), 200


def get_activity(activity_id):
    activity = activity_service.get_activity(get_repo(), activity_id)
    if activity is None:
        return _not_found(activity_id)
    return jsonify(_activity_json(activity)), 200


def start_activity():
    """
    POST /api/activities
    Body: a task from /api/plans/<plan_id>/tasks, e.g.
        {"plan_id": "...", "surah_number": 78, "ayah_number": 3, "session_type": "hafazan"}
    """
    data = json_body()
    activity = activity_service.start_session(get_repo(), get_settings(), data,
                                              now=parse_when(data.get('now')))
    return jsonify(_activity_json(activity)), 201


def record_repetition(activity_id):
    activity = activity_service.record_repetition(get_repo(), activity_id,
                                                  now=parse_when(json_body().get('now')))
    if activity is None:
        return _not_found(activity_id)
    return jsonify(_activity_json(activity)), 200


def complete_activity(activity_id):
    activity = activity_service.complete_session(get_repo(), get_settings(), activity_id,
                                                 now=parse_when(json_body().get('now')))
    if activity is None:
        return _not_found(activity_id)
    return jsonify(_activity_json(activity)), 200


def abandon_activity(activity_id):
    activity = activity_service.abandon_session(get_repo(), activity_id,
                                                now=parse_when(json_body().get('now')))
    if activity is None:
        return _not_found(activity_id)
    return jsonify(_activity_json(activity)), 200


def reset_activity(activity_id):
    activity = activity_service.reset_session(get_repo(), activity_id,
                                              now=parse_when(json_body().get('now')))
    if activity is None:
        return _not_found(activity_id)
    return jsonify(_activity_json(activity)), 200
