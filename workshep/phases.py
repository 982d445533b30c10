"""
Workshop phase state machine.

Phases are stored as integer codes. The activity normally moves
setup -> submission -> assessment -> evaluation -> closed, with an optional
calibration phase inserted after the phase named by `calibrationphase`.
Teachers may switch to any available phase; the predicates below decide
which participant actions are legal in the current one.
"""
import time

PHASE_SETUP = 10
PHASE_SUBMISSION = 20
PHASE_CALIBRATION = 25
PHASE_ASSESSMENT = 30
PHASE_EVALUATION = 40
PHASE_CLOSED = 50

PHASE_NAMES = {
    PHASE_SETUP: "setup",
    PHASE_SUBMISSION: "submission",
    PHASE_CALIBRATION: "calibration",
    PHASE_ASSESSMENT: "assessment",
    PHASE_EVALUATION: "evaluation",
    PHASE_CLOSED: "closed",
}

EXAMPLES_VOLUNTARY = 0
EXAMPLES_BEFORE_SUBMISSION = 1
EXAMPLES_BEFORE_ASSESSMENT = 2


def phase_name(code) -> str:
    return PHASE_NAMES.get(code, "unknown")


def phase_code(value) -> int:
    """Accept either a phase code or its name."""
    if isinstance(value, str) and not value.isdigit():
        for code, name in PHASE_NAMES.items():
            if name == value.lower():
                return code
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def available_phases(workshop: dict) -> list:
    """Phases this workshop can be in, in workflow order."""
    phases = [PHASE_SETUP, PHASE_SUBMISSION, PHASE_ASSESSMENT, PHASE_EVALUATION, PHASE_CLOSED]
    if workshop.get("usecalibration"):
        calibrationphase = workshop.get("calibrationphase")
        if calibrationphase in phases:
            phases.insert(phases.index(calibrationphase) + 1, PHASE_CALIBRATION)
    return phases


def _before(start, now):
    return bool(start) and start > now


def _after(end, now):
    return bool(end) and now > end


def creating_submission_allowed(workshop: dict, ignore_deadlines=False, now=None) -> bool:
    """Is a participant allowed to create their submission?"""
    now = time.time() if now is None else now
    phase = workshop["phase"]

    if workshop.get("latesubmissions"):
        # late submissions are allowed in the submission and assessment phase only
        if phase not in (PHASE_SUBMISSION, PHASE_ASSESSMENT):
            return False
        if not ignore_deadlines and _before(workshop.get("submissionstart"), now):
            return False
        return True

    if phase != PHASE_SUBMISSION:
        return False
    if not ignore_deadlines and _before(workshop.get("submissionstart"), now):
        return False
    if not ignore_deadlines and _after(workshop.get("submissionend"), now):
        return False
    return True


def modifying_submission_allowed(workshop: dict, ignore_deadlines=False, now=None) -> bool:
    """Is a participant allowed to modify their existing submission?

    Late submission does not extend the editing window.
    """
    now = time.time() if now is None else now
    if workshop["phase"] != PHASE_SUBMISSION:
        return False
    if not ignore_deadlines and _before(workshop.get("submissionstart"), now):
        return False
    if not ignore_deadlines and _after(workshop.get("submissionend"), now):
        return False
    return True


def assessing_allowed(workshop: dict, can_override=False, ignore_deadlines=False, now=None) -> bool:
    """Is a reviewer allowed to create or edit their assessments?

    Teachers may also assess during the evaluation phase.
    """
    now = time.time() if now is None else now
    phase = workshop["phase"]
    if phase != PHASE_ASSESSMENT:
        if phase != PHASE_EVALUATION or not can_override:
            return False
    if not ignore_deadlines and _before(workshop.get("assessmentstart"), now):
        return False
    if not ignore_deadlines and _after(workshop.get("assessmentend"), now):
        return False
    return True


def assessing_examples_allowed(workshop: dict):
    """None when examples are disabled, otherwise whether they can be assessed now."""
    if not workshop.get("useexamples"):
        return None
    mode = workshop.get("examplesmode", EXAMPLES_VOLUNTARY)
    phase = workshop["phase"]
    if mode == EXAMPLES_VOLUNTARY:
        return True
    if mode == EXAMPLES_BEFORE_SUBMISSION and phase == PHASE_SUBMISSION:
        return True
    if mode == EXAMPLES_BEFORE_ASSESSMENT and phase == PHASE_ASSESSMENT:
        return True
    if phase == PHASE_CALIBRATION:
        return True
    return False


def assessments_available(workshop: dict) -> bool:
    """Are the peer reviews visible to the authors?"""
    return workshop["phase"] == PHASE_CLOSED


def aggregation_allowed(workshop: dict) -> bool:
    return workshop["phase"] == PHASE_EVALUATION


def flagging_allowed(workshop: dict) -> bool:
    """Can submitters contest the assessments of their work right now?"""
    if not workshop.get("submitterflagging"):
        return False
    return workshop["phase"] in (PHASE_ASSESSMENT, PHASE_EVALUATION)
