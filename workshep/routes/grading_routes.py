"""
Grading API routes for Workshep.
Handles grade aggregation, the clearing tools, the grading report and the
gradebook.
"""
import logging
from flask import Blueprint, request, jsonify

from .. import storage
from ..auth import current_user, require_teacher, can_manage
from ..errors import PermissionDenied
from ..evaluation import get_evaluator
from ..services import aggregation_service, report_service
from ..services import workshop_service as ws

logger = logging.getLogger(__name__)

grading_bp = Blueprint('grading', __name__)


@grading_bp.route('/api/workshops/<int:workshop_id>/evaluation', methods=['GET'])
def get_evaluation(workshop_id):
    state = storage.load_workshop(workshop_id)
    require_teacher(state)
    evaluator = get_evaluator(state)
    data = {"evaluation": evaluator.name, "settings": evaluator.get_settings()}
    if hasattr(evaluator, "no_competent_reviewers"):
        data["nocompetentreviewers"] = evaluator.no_competent_reviewers()
    return jsonify(data)


@grading_bp.route('/api/workshops/<int:workshop_id>/aggregate', methods=['POST'])
def aggregate(workshop_id):
    data = request.json or {}
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        summary = aggregation_service.run_aggregation(state, data.get("settings"), user=current_user())
    return jsonify(summary)


@grading_bp.route('/api/workshops/<int:workshop_id>/clear-aggregated', methods=['POST'])
def clear_aggregated(workshop_id):
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        aggregation_service.clear_aggregated_grades(state, user=current_user())
    return jsonify({"status": "cleared"})


@grading_bp.route('/api/workshops/<int:workshop_id>/clear-assessments', methods=['POST'])
def clear_assessments(workshop_id):
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        ws.clear_assessments(state, user=current_user())
    return jsonify({"status": "cleared"})


@grading_bp.route('/api/workshops/<int:workshop_id>/report', methods=['GET'])
def grading_report(workshop_id):
    state = storage.load_workshop(workshop_id)
    report = report_service.prepare_grading_report(
        state, current_user(),
        sortby=request.args.get('sortby', 'lastname'),
        sorthow=request.args.get('sorthow', 'ASC'),
        page=request.args.get('page', 0, type=int),
        perpage=request.args.get('perpage', 10, type=int),
    )
    if not report:
        raise PermissionDenied("You are not enrolled in this workshop")
    return jsonify(report)


@grading_bp.route('/api/workshops/<int:workshop_id>/gradebook', methods=['GET'])
def gradebook(workshop_id):
    state = storage.load_workshop(workshop_id)
    if can_manage(state):
        return jsonify({"gradebook": state.get("gradebook", {})})
    grades = aggregation_service.get_gradebook_grades(state, current_user())
    return jsonify({"gradebook": {current_user(): grades} if grades else {}})


@grading_bp.route('/api/workshops/<int:workshop_id>/gradebook', methods=['POST'])
def update_gradebook(workshop_id):
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        grades = aggregation_service.update_gradebook(state, user=current_user())
    return jsonify({"gradebook": grades})
