"""
Submission API routes for Workshep.
Handles submissions, grade overrides, publishing and example submissions.
"""
from flask import Blueprint, request, jsonify

from .. import phases, storage
from ..auth import current_user, require_teacher, can_manage
from ..errors import PermissionDenied
from ..grades import real_grade
from ..services import examples_service
from ..services import workshop_service as ws

submission_bp = Blueprint('submission', __name__)


def _can_view(state: dict, submission: dict, userid: str) -> bool:
    if can_manage(state):
        return True
    if submission.get("example"):
        return ws.is_participant(state, userid)
    if submission["authorid"] == userid:
        return True
    if state["workshop"].get("teammode") and ws.same_team(state, userid, submission["authorid"]):
        return True
    if ws.get_assessment_of_submission_by_user(state, submission["id"], userid) is not None:
        return True
    return bool(submission.get("published")) and state["workshop"]["phase"] == phases.PHASE_CLOSED


def _with_real_grades(state: dict, submission: dict) -> dict:
    item = dict(submission)
    item["realgrade"] = real_grade(state["workshop"], submission.get("grade"))
    item["realgradeover"] = real_grade(state["workshop"], submission.get("gradeover"))
    return item


@submission_bp.route('/api/workshops/<int:workshop_id>/submissions', methods=['GET'])
def list_submissions(workshop_id):
    state = storage.load_workshop(workshop_id)
    userid = current_user()
    submissions = [s for s in ws.get_submissions(state) if _can_view(state, s, userid)]
    return jsonify({"submissions": [_with_real_grades(state, s) for s in submissions]})


@submission_bp.route('/api/workshops/<int:workshop_id>/submissions', methods=['POST'])
def create_submission(workshop_id):
    data = request.json or {}
    with storage.editing(workshop_id) as state:
        submission = ws.create_submission(
            state, current_user(), data.get("title"), data.get("content", ""),
            example=bool(data.get("example")))
    return jsonify({"submission": submission}), 201


@submission_bp.route('/api/workshops/<int:workshop_id>/submissions/<int:submission_id>', methods=['GET'])
def get_submission(workshop_id, submission_id):
    state = storage.load_workshop(workshop_id)
    submission = ws.get_submission(state, submission_id)
    if not _can_view(state, submission, current_user()):
        raise PermissionDenied("You can not view this submission")
    return jsonify({"submission": _with_real_grades(state, submission)})


@submission_bp.route('/api/workshops/<int:workshop_id>/submissions/<int:submission_id>', methods=['PUT'])
def update_submission(workshop_id, submission_id):
    data = request.json or {}
    with storage.editing(workshop_id) as state:
        submission = ws.update_submission(
            state, submission_id, current_user(), title=data.get("title"), content=data.get("content"))
    return jsonify({"submission": submission})


@submission_bp.route('/api/workshops/<int:workshop_id>/submissions/<int:submission_id>', methods=['DELETE'])
def delete_submission(workshop_id, submission_id):
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        ws.delete_submission(state, submission_id, user=current_user())
    return jsonify({"status": "deleted"})


@submission_bp.route('/api/workshops/<int:workshop_id>/submissions/<int:submission_id>/grade', methods=['POST'])
def override_grade(workshop_id, submission_id):
    data = request.json or {}
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        submission = ws.override_submission_grade(
            state, submission_id, data.get("gradeover"), current_user(),
            feedbackauthor=data.get("feedbackauthor"))
    return jsonify({"submission": _with_real_grades(state, submission)})


@submission_bp.route('/api/workshops/<int:workshop_id>/submissions/<int:submission_id>/publish',
                     methods=['POST'])
def publish_submission(workshop_id, submission_id):
    data = request.json or {}
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        submission = ws.publish_submission(state, submission_id, data.get("published", True))
    return jsonify({"submission": submission})


@submission_bp.route('/api/workshops/<int:workshop_id>/examples', methods=['GET'])
def list_examples(workshop_id):
    """Teachers get all examples with their reference grade, reviewers their own selection."""
    with storage.editing(workshop_id) as state:
        if can_manage(state):
            examples = examples_service.get_examples_for_manager(state)
        else:
            if not ws.is_participant(state, current_user()):
                raise PermissionDenied("You are not enrolled in this workshop")
            # the selection is remembered, hence editing
            examples = examples_service.get_examples_for_reviewer(state, current_user())
    return jsonify({"examples": examples})


@submission_bp.route('/api/workshops/<int:workshop_id>/examples/<int:example_id>/assessment',
                     methods=['POST'])
def start_example_assessment(workshop_id, example_id):
    with storage.editing(workshop_id) as state:
        assessment = examples_service.start_example_assessment(state, example_id, current_user())
    return jsonify({"assessment": assessment})
