"""
Calibration API routes for Workshep.
Handles calculating calibration scores and explaining them to reviewers.
"""
from flask import Blueprint, request, jsonify

from .. import storage
from ..auth import current_user, require_teacher, can_manage
from ..calibration import get_calibration
from ..errors import PermissionDenied
from ..services import examples_service

calibration_bp = Blueprint('calibration', __name__)


def _require_self_or_teacher(state, userid):
    if str(userid) != current_user() and not can_manage(state):
        raise PermissionDenied("You can only view your own calibration")


@calibration_bp.route('/api/workshops/<int:workshop_id>/calibration', methods=['POST'])
def calculate(workshop_id):
    data = request.json or {}
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        method = get_calibration(state)
        scores = method.calculate_calibration_scores(data.get("settings", {}), user=current_user())
        settings = method.get_settings()
    return jsonify({"method": method.name, "settings": settings, "scores": scores})


@calibration_bp.route('/api/workshops/<int:workshop_id>/calibration/scores', methods=['GET'])
def scores(workshop_id):
    state = storage.load_workshop(workshop_id)
    require_teacher(state)
    return jsonify({"scores": get_calibration(state).get_calibration_scores()})


@calibration_bp.route('/api/workshops/<int:workshop_id>/calibration/<userid>', methods=['GET'])
def breakdown(workshop_id, userid):
    state = storage.load_workshop(workshop_id)
    _require_self_or_teacher(state, userid)
    method = get_calibration(state)
    return jsonify({
        "score": method.get_calibration_score_for_user(userid),
        "breakdown": method.prepare_grade_breakdown(userid),
    })


@calibration_bp.route('/api/workshops/<int:workshop_id>/calibration/<userid>/examples', methods=['GET'])
def user_examples(workshop_id, userid):
    with storage.editing(workshop_id) as state:
        _require_self_or_teacher(state, userid)
        examples = examples_service.get_examples_for_reviewer(state, userid)
    return jsonify({"examples": examples})
