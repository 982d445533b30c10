"""
Assessment API routes for Workshep.
Handles reviewer allocation, assessing, teacher feedback and submitter flags.
"""
import logging
from flask import Blueprint, request, jsonify

from .. import phases, storage
from ..allocation import get_allocator
from ..auth import current_user, require_teacher, can_manage
from ..errors import PermissionDenied
from ..grades import real_grade, real_grading_grade
from ..services import aggregation_service, flagging_service
from ..services import workshop_service as ws

logger = logging.getLogger(__name__)

assessment_bp = Blueprint('assessment', __name__)


def _assessment_view(state: dict, assessment: dict) -> dict:
    workshop = state["workshop"]
    item = dict(assessment)
    item["realgrade"] = real_grade(workshop, assessment.get("grade"))
    item["realgradinggrade"] = real_grading_grade(workshop, assessment.get("gradinggrade"))
    item["realgradinggradeover"] = real_grading_grade(workshop, assessment.get("gradinggradeover"))
    item["dimensiongrades"] = ws.get_dimension_grades(state, assessment["id"])
    return item


def _can_view(state: dict, assessment: dict, userid: str) -> bool:
    if can_manage(state) or assessment["reviewerid"] == userid:
        return True
    submission = ws.get_submission(state, assessment["submissionid"])
    own = submission["authorid"] == userid or (
        state["workshop"].get("teammode") and ws.same_team(state, userid, submission["authorid"]))
    if not own:
        return False
    workshop = state["workshop"]
    return phases.assessments_available(workshop) or phases.flagging_allowed(workshop)


@assessment_bp.route('/api/workshops/<int:workshop_id>/allocations', methods=['GET'])
def list_allocations(workshop_id):
    state = storage.load_workshop(workshop_id)
    require_teacher(state)
    return jsonify({
        "allocations": ws.get_all_assessments(state),
        "scheduled": state["allocation_settings"].get("scheduled"),
    })


@assessment_bp.route('/api/workshops/<int:workshop_id>/allocations', methods=['POST'])
def allocate(workshop_id):
    """Run an allocation method: {"method": "manual"|"random"|"scheduled", "settings": {...}}."""
    data = request.json or {}
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        allocator = get_allocator(state, data.get("method", "manual"))
        result = allocator.init(data.get("settings", {}), user=current_user())
    return jsonify({"result": result.to_dict()})


@assessment_bp.route('/api/workshops/<int:workshop_id>/assessments/pending', methods=['GET'])
def pending_assessments(workshop_id):
    state = storage.load_workshop(workshop_id)
    pending = ws.get_pending_assessments_by_reviewer(state, current_user())
    return jsonify({"assessments": pending})


@assessment_bp.route('/api/workshops/<int:workshop_id>/assessments/<int:assessment_id>', methods=['GET'])
def get_assessment(workshop_id, assessment_id):
    state = storage.load_workshop(workshop_id)
    assessment = ws.get_assessment(state, assessment_id)
    if not _can_view(state, assessment, current_user()):
        raise PermissionDenied("You can not view this assessment")
    return jsonify({"assessment": _assessment_view(state, assessment)})


@assessment_bp.route('/api/workshops/<int:workshop_id>/assessments/<int:assessment_id>', methods=['PUT'])
def save_assessment(workshop_id, assessment_id):
    data = request.json or {}
    with storage.editing(workshop_id) as state:
        assessment = ws.save_assessment(
            state, assessment_id, current_user(), data.get("grades", {}),
            comments=data.get("comments"), feedbackauthor=data.get("feedbackauthor"))
        view = _assessment_view(state, assessment)
    return jsonify({"assessment": view})


@assessment_bp.route('/api/workshops/<int:workshop_id>/assessments/<int:assessment_id>', methods=['DELETE'])
def delete_assessment(workshop_id, assessment_id):
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        ws.get_assessment(state, assessment_id)
        ws.delete_assessment(state, assessment_id, user=current_user())
    return jsonify({"status": "deleted"})


@assessment_bp.route('/api/workshops/<int:workshop_id>/assessments/<int:assessment_id>/override',
                     methods=['POST'])
def override_assessment(workshop_id, assessment_id):
    data = request.json or {}
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        assessment = ws.override_grading_grade(
            state, assessment_id, current_user(),
            gradinggradeover=data.get("gradinggradeover"),
            weight=data.get("weight"),
            feedbackreviewer=data.get("feedbackreviewer"))
        view = _assessment_view(state, assessment)
    return jsonify({"assessment": view})


@assessment_bp.route('/api/workshops/<int:workshop_id>/assessments/<int:assessment_id>/flag',
                     methods=['POST'])
def flag_assessment(workshop_id, assessment_id):
    data = request.json or {}
    with storage.editing(workshop_id) as state:
        assessment = flagging_service.flag_assessment(
            state, assessment_id, current_user(), unflag=bool(data.get("unflag")))
    return jsonify({"assessment": assessment})


@assessment_bp.route('/api/workshops/<int:workshop_id>/flagging', methods=['POST'])
def toggle_flagging(workshop_id):
    data = request.json or {}
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        enabled = flagging_service.set_submitter_flagging(state, data.get("enabled", True), user=current_user())
    return jsonify({"submitterflagging": enabled})


@assessment_bp.route('/api/workshops/<int:workshop_id>/flags', methods=['GET'])
def list_flags(workshop_id):
    state = storage.load_workshop(workshop_id)
    require_teacher(state)
    return jsonify({"flagged": flagging_service.get_flagged_assessments(state)})


@assessment_bp.route('/api/workshops/<int:workshop_id>/flags/resolve', methods=['POST'])
def resolve_flags(workshop_id):
    """Resolve flags: {"decisions": {assessmentid: uphold}}.

    In the evaluation phase the grades are re-aggregated right away.
    """
    data = request.json or {}
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        resolved = flagging_service.resolve_flags(state, data.get("decisions", {}), user=current_user())
        summary = None
        if phases.aggregation_allowed(state["workshop"]):
            summary = aggregation_service.run_aggregation(state, user=current_user())
    return jsonify({"resolved": resolved, "aggregation": summary})
