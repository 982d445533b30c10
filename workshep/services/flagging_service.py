"""
Submitter Flagging
==================
Authors may contest an assessment of their work as unfair. A contested
assessment is left out of the submission grade until a teacher resolves
the flag, either rejecting the contest (the assessment counts again) or
upholding it (the assessment weight drops to zero).

Flag states: 0 not flagged, 1 pending, -1 resolved.
"""
import logging

from ..audit import audit_log
from ..errors import PermissionDenied, PhaseError, ValidationError
from .. import phases
from . import workshop_service as ws

logger = logging.getLogger(__name__)


def set_submitter_flagging(state: dict, enabled: bool, user: str = "system") -> bool:
    state["workshop"]["submitterflagging"] = bool(enabled)
    audit_log("FLAGGING_" + ("ENABLED" if enabled else "DISABLED"),
              f"workshop={state['workshop']['id']}", user)
    return state["workshop"]["submitterflagging"]


def _owns_submission(state, submission, userid) -> bool:
    if submission["authorid"] == userid:
        return True
    if state["workshop"].get("teammode"):
        return ws.same_team(state, userid, submission["authorid"])
    return False


def flag_assessment(state: dict, assessment_id, userid, unflag: bool = False) -> dict:
    """Contest (or withdraw the contest of) an assessment of the user's own work."""
    userid = str(userid)
    if not phases.flagging_allowed(state["workshop"]):
        raise PhaseError("Flagging assessments is not allowed at the moment")

    assessment = ws.get_assessment(state, assessment_id)
    submission = ws.get_submission(state, assessment["submissionid"])
    if submission.get("example"):
        raise ValidationError("Assessments of example submissions can not be flagged")
    if not _owns_submission(state, submission, userid):
        raise PermissionDenied("Only the author can flag assessments of a submission")
    if assessment.get("grade") is None:
        raise ValidationError("The assessment has not been graded yet")
    if assessment.get("submitterflagged") == ws.FLAG_RESOLVED:
        raise ValidationError("The flag on this assessment has already been resolved")

    assessment["submitterflagged"] = ws.FLAG_NONE if unflag else ws.FLAG_PENDING
    action = "ASSESSMENT_UNFLAGGED" if unflag else "ASSESSMENT_FLAGGED"
    logger.info("Assessment %s %s by %s", assessment["id"], action.lower(), userid)
    audit_log(action, f"workshop={state['workshop']['id']} assessment={assessment['id']}", userid)
    return assessment


def get_flagged_assessments(state: dict) -> list:
    """Assessments with a pending flag, with their submission title and author."""
    flagged = []
    for a in ws.get_all_assessments(state):
        if a.get("submitterflagged") != ws.FLAG_PENDING:
            continue
        submission = ws.get_submission(state, a["submissionid"])
        item = dict(a)
        item["title"] = submission["title"]
        item["authorid"] = submission["authorid"]
        flagged.append(item)
    return sorted(flagged, key=lambda a: (a["reviewerid"], a["id"]))


def resolve_flag(state: dict, assessment_id, uphold: bool, user: str = "system") -> dict:
    """Resolve a pending flag. Upholding the contest discards the assessment."""
    assessment = ws.get_assessment(state, assessment_id)
    if assessment.get("submitterflagged") != ws.FLAG_PENDING:
        raise ValidationError(f"Assessment {assessment['id']} is not flagged")

    assessment["submitterflagged"] = ws.FLAG_RESOLVED
    if uphold:
        assessment["weight"] = 0
    audit_log("FLAG_RESOLVED",
              f"workshop={state['workshop']['id']} assessment={assessment['id']} upheld={int(bool(uphold))}",
              user)
    return assessment


def resolve_flags(state: dict, decisions: dict, user: str = "system") -> list:
    """Resolve several flags at once. decisions maps assessment id to uphold."""
    resolved = []
    for assessment_id, uphold in (decisions or {}).items():
        resolved.append(resolve_flag(state, assessment_id, bool(uphold), user=user))
    return resolved
