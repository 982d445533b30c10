"""
Workshop API routes for Workshep.
Handles workshop settings, the assessment form, participants, phase
switching and periodic maintenance.
"""
import logging
from flask import Blueprint, request, jsonify

from .. import phases, storage
from ..allocation import cron
from ..audit import audit_log, get_audit_logs
from ..auth import current_user, require_teacher, can_manage
from ..config import config
from ..errors import PermissionDenied, ValidationError
from ..services import workshop_service as ws

logger = logging.getLogger(__name__)

workshop_bp = Blueprint('workshop', __name__)

# runtime defaults that can be changed, and the workshop setting each one seeds
CONFIG_KEYS = {
    "default_grade": "grade",
    "default_grading_grade": "gradinggrade",
    "default_strategy": "strategy",
    "default_evaluation": "evaluation",
}


def workshop_summary(state: dict) -> dict:
    workshop = dict(state["workshop"])
    workshop["phasename"] = phases.phase_name(workshop["phase"])
    workshop["phases"] = [
        {"code": code, "name": phases.phase_name(code)} for code in phases.available_phases(workshop)
    ]
    return workshop


def require_member(state: dict):
    """Teachers or enrolled participants only."""
    if can_manage(state) or ws.is_participant(state, current_user()):
        return
    raise PermissionDenied("You are not enrolled in this workshop")


@workshop_bp.route('/api/status')
def status():
    return jsonify({"status": "ok"})


@workshop_bp.route('/api/workshops', methods=['GET'])
def list_workshops():
    return jsonify({"workshops": storage.list_workshops()})


@workshop_bp.route('/api/workshops', methods=['POST'])
def create_workshop():
    require_teacher()
    data = request.json or {}
    state = ws.create_workshop(data, user=current_user())
    with storage.editing(state["workshop"]["id"]) as state:
        ws.add_participant(state, current_user(), data.get("firstname", ""), data.get("lastname", ""),
                           role=ws.ROLE_TEACHER)
    return jsonify({"workshop": workshop_summary(state)}), 201


@workshop_bp.route('/api/workshops/<int:workshop_id>', methods=['GET'])
def get_workshop(workshop_id):
    state = storage.load_workshop(workshop_id)
    require_member(state)
    return jsonify({"workshop": workshop_summary(state)})


@workshop_bp.route('/api/workshops/<int:workshop_id>', methods=['PUT'])
def update_workshop(workshop_id):
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        ws.update_workshop(state, request.json or {})
    return jsonify({"workshop": workshop_summary(state)})


@workshop_bp.route('/api/workshops/<int:workshop_id>', methods=['DELETE'])
def delete_workshop(workshop_id):
    state = storage.load_workshop(workshop_id)
    require_teacher(state)
    storage.delete_workshop(workshop_id)
    audit_log("WORKSHOP_DELETED", f"workshop={workshop_id}", current_user())
    return jsonify({"status": "deleted"})


@workshop_bp.route('/api/workshops/<int:workshop_id>/form', methods=['GET'])
def get_form(workshop_id):
    state = storage.load_workshop(workshop_id)
    require_member(state)
    return jsonify({"strategy": state["workshop"]["strategy"], "form": state["form"]})


@workshop_bp.route('/api/workshops/<int:workshop_id>/form', methods=['PUT'])
def save_form(workshop_id):
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        form = ws.save_form(state, request.json or {})
    return jsonify({"form": form})


@workshop_bp.route('/api/workshops/<int:workshop_id>/participants', methods=['GET'])
def get_participants(workshop_id):
    state = storage.load_workshop(workshop_id)
    require_teacher(state)
    return jsonify({"participants": state["participants"]})


@workshop_bp.route('/api/workshops/<int:workshop_id>/participants', methods=['POST'])
def add_participants(workshop_id):
    """Enrol one participant or a list under "participants"."""
    data = request.json or {}
    entries = data.get("participants", [data])
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        added = []
        for entry in entries:
            if not entry.get("id"):
                raise ValidationError("Participant id is required")
            added.append(ws.add_participant(
                state, entry["id"], entry.get("firstname", ""), entry.get("lastname", ""),
                role=entry.get("role", ws.ROLE_STUDENT), group=entry.get("group")))
    return jsonify({"participants": added})


@workshop_bp.route('/api/workshops/<int:workshop_id>/participants/<userid>', methods=['DELETE'])
def remove_participant(workshop_id, userid):
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        ws.remove_participant(state, userid)
    return jsonify({"status": "removed"})


@workshop_bp.route('/api/workshops/<int:workshop_id>/phase', methods=['POST'])
def switch_phase(workshop_id):
    data = request.json or {}
    if "phase" not in data:
        raise ValidationError("phase is required")
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        ws.switch_phase(state, data["phase"], user=current_user())
    return jsonify({"workshop": workshop_summary(state)})


@workshop_bp.route('/api/workshops/<int:workshop_id>/cron', methods=['POST'])
def run_cron(workshop_id):
    data = request.json or {}
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        report = cron(state, now=data.get("now"), user=current_user())
    return jsonify(report)


@workshop_bp.route('/api/workshops/<int:workshop_id>/reset', methods=['POST'])
def reset_workshop(workshop_id):
    data = request.json or {}
    with storage.editing(workshop_id) as state:
        require_teacher(state)
        result = ws.reset_userdata(
            state,
            assessments=bool(data.get("assessments")),
            submissions=bool(data.get("submissions")),
            phase=bool(data.get("phase")),
            user=current_user(),
        )
    return jsonify({"status": result})


@workshop_bp.route('/api/audit-log')
def audit_logs():
    require_teacher()
    limit = request.args.get('limit', 100, type=int)
    return jsonify({"logs": get_audit_logs(limit)})


@workshop_bp.route('/api/config', methods=['GET'])
def get_config():
    require_teacher()
    return jsonify(config.to_dict())


@workshop_bp.route('/api/config', methods=['PUT'])
def update_config():
    require_teacher()
    data = request.json or {}
    unknown = sorted(set(data) - set(CONFIG_KEYS))
    if unknown:
        raise ValidationError(f"Read-only or unknown settings: {', '.join(unknown)}")
    ws.validate_settings({CONFIG_KEYS[key]: value for key, value in data.items()})
    config.update(data)
    audit_log("CONFIG_UPDATED", ", ".join(sorted(data)), current_user())
    return jsonify(config.to_dict())
