# Local JSON API for the single learner using this tracker

from flask import Blueprint
from hifz_tracker.handlers.admin import health_check, get_chapter, get_verse
from hifz_tracker.handlers.plans import (
    list_plans, create_plan, get_plan, get_active_plan, activate_plan, delete_plan
)
from hifz_tracker.handlers.tasks import (
    get_today_tasks, mark_memorized, complete_murajaah, get_progress, get_calendar, get_review_ranges
)
from hifz_tracker.handlers.stats import get_streaks, get_completion_status, complete_plan, get_next_steps
from hifz_tracker.handlers.settings import get_user_settings, update_user_settings
from hifz_tracker.handlers.activities import (
    list_activities, get_activity, start_activity, record_repetition,
    complete_activity, abandon_activity, reset_activity
)

api = Blueprint('api', __name__, url_prefix='/api')

# ============================================================================
# PLANS
# ============================================================================

api.route('/plans', methods=['GET'])(list_plans)
api.route('/plans', methods=['POST'])(create_plan)
api.route('/plans/active', methods=['GET'])(get_active_plan)
api.route('/plans/<plan_id>', methods=['GET'])(get_plan)
api.route('/plans/<plan_id>', methods=['DELETE'])(delete_plan)
api.route('/plans/<plan_id>/activate', methods=['POST'])(activate_plan)

# Daily work
api.route('/plans/<plan_id>/tasks', methods=['GET'])(get_today_tasks)
api.route('/plans/<plan_id>/memorize', methods=['POST'])(mark_memorized)
api.route('/plans/<plan_id>/murajaah', methods=['POST'])(complete_murajaah)

# Progress views
api.route('/plans/<plan_id>/progress', methods=['GET'])(get_progress)
api.route('/plans/<plan_id>/calendar', methods=['GET'])(get_calendar)
api.route('/plans/<plan_id>/review-ranges', methods=['GET'])(get_review_ranges)

# Stats and completion
api.route('/plans/<plan_id>/streaks', methods=['GET'])(get_streaks)
api.route('/plans/<plan_id>/completion', methods=['GET'])(get_completion_status)
api.route('/plans/<plan_id>/complete', methods=['POST'])(complete_plan)
api.route('/plans/<plan_id>/next-steps', methods=['GET'])(get_next_steps)

# ============================================================================
# SETTINGS
# ============================================================================

api.route('/settings', methods=['GET'])(get_user_settings)
api.route('/settings', methods=['PUT'])(update_user_settings)

# ============================================================================
# DRILL SESSIONS
# ============================================================================

api.route('/activities', methods=['GET'])(list_activities)
api.route('/activities', methods=['POST'])(start_activity)
api.route('/activities/<activity_id>', methods=['GET'])(get_activity)
api.route('/activities/<activity_id>/repetition', methods=['POST'])(record_repetition)
api.route('/activities/<activity_id>/complete', methods=['POST'])(complete_activity)
api.route('/activities/<activity_id>/abandon', methods=['POST'])(abandon_activity)
api.route('/activities/<activity_id>/reset', methods=['POST'])(reset_activity)

# ============================================================================
# CONTENT AND HEALTH
# ============================================================================

api.route('/chapters/<int:surah_number>', methods=['GET'])(get_chapter)
api.route('/verses/<int:surah_number>/<int:ayah_number>', methods=['GET'])(get_verse)
api.route('/health', methods=['GET'])(health_check)
